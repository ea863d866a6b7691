"""Run one GEMM problem through the verification harness and print a summary.

Exits with status 1 when the accelerated result does not match the reference.
"""

import argparse
import sys

from tiled_gemm.gemm.problem import GemmProblem
from tiled_gemm.gemm.v0 import multiply_reference
from tiled_gemm.gemm.v1 import multiply_accelerated
from tiled_gemm.logger import set_log_level
from tiled_gemm.utils import benchmark_kernel, create_test_problems, print_results
from tiled_gemm.verify import DEFAULT_TOLERANCE, run

RULE = "=" * 40


def non_negative_int(text):
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Tiled GEMM with host-side verification")
    parser.add_argument("-m", type=int, default=512, help="rows of A and C")
    parser.add_argument("-n", type=int, default=512, help="columns of B and C")
    parser.add_argument("-k", type=int, default=512, help="columns of A, rows of B")
    parser.add_argument("--alpha", type=float, default=1.0)
    parser.add_argument("--beta", type=float, default=0.0)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--tolerance", type=float, default=DEFAULT_TOLERANCE)
    parser.add_argument("--samples", type=non_negative_int, default=4, help="result values to print")
    parser.add_argument("--no-accelerator", action="store_true", help="run the reference path only")
    parser.add_argument("--benchmark", action="store_true", help="time both paths on this problem")
    parser.add_argument("--sweep", action="store_true", help="time both paths over a grid of sizes")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def print_summary(result, samples=4):
    problem = result.problem
    print(RULE)
    print("  Tiled GEMM")
    print(RULE)
    print()
    print("Matrix dimensions:")
    print(f"  A: {problem.M} x {problem.K}")
    print(f"  B: {problem.K} x {problem.N}")
    print(f"  C: {problem.M} x {problem.N}")
    print(f"  alpha: {problem.alpha}, beta: {problem.beta}")
    print(f"  seed: {result.seed}")
    print()

    if result.device_name is None:
        print("No accelerator found. Running reference only.")
    else:
        print(f"Device: {result.device_name}")
        print(f"  Compute capability: {result.capability[0]}.{result.capability[1]}")
    print(f"Compute path: {result.path.value}")
    print()

    if result.report is not None:
        status = "PASSED" if result.passed else "FAILED"
        print(f"Verification: {status}, {result.report.describe()}")
        print()

    flat = result.result.reshape(-1)
    reference = result.reference.reshape(-1) if result.reference is not None else None
    count = max(0, min(samples, flat.numel()))
    print(f"Sample results (first {count} elements of C):")
    for i in range(count):
        line = f"  C[{i}] = {flat[i].item():.6f}"
        if reference is not None:
            line += f" (reference: {reference[i].item():.6f})"
        print(line)
    print()
    print(RULE)


def main(argv=None):
    args = parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)

    try:
        problem = GemmProblem(args.m, args.n, args.k, args.alpha, args.beta)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    result = run(problem, args.seed, args.tolerance, accelerate=not args.no_accelerator)
    print_summary(result, args.samples)

    if args.benchmark or args.sweep:
        problems = create_test_problems([64, 256, 512]) if args.sweep else [problem]
        kernels = [multiply_reference]
        if not args.no_accelerator:
            kernels.append(multiply_accelerated)
        print_results(benchmark_kernel(kernels, problems, seed=args.seed))

    return 1 if result.passed is False else 0


if __name__ == "__main__":
    sys.exit(main())
