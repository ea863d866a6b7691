import time

import torch

from tiled_gemm.gemm.problem import GemmProblem


def random_matrix(rows, cols, generator):
    """Uniform float32 values in [-1.0, 1.0) drawn from ``generator``."""
    x = torch.empty((rows, cols), dtype=torch.float32)
    return x.uniform_(-1.0, 1.0, generator=generator)


def random_operands(problem, seed):
    # A is drawn before B from the same stream so a seed fixes both
    generator = torch.Generator().manual_seed(seed)
    a = random_matrix(problem.M, problem.K, generator)
    b = random_matrix(problem.K, problem.N, generator)
    return a, b


def create_test_problems(shapes=(64, 512, 2048), alpha=1.0, beta=0.0):
    problems = []
    for M in shapes:
        for N in shapes:
            for K in shapes:
                problems.append(GemmProblem(M, N, K, alpha, beta))
    return problems


def _timer():
    if torch.cuda.is_available():
        start = torch.cuda.Event(enable_timing=True)
        end = torch.cuda.Event(enable_timing=True)

        def measure(fn):
            start.record()
            fn()
            end.record()
            torch.cuda.synchronize()
            return start.elapsed_time(end)
    else:
        def measure(fn):
            t0 = time.perf_counter()
            fn()
            return (time.perf_counter() - t0) * 1e3
    return measure


def benchmark_kernel(kernels, problems, seed=0, warmup=2, iters=5):
  """Mean milliseconds per call, keyed by kernel name then (M, N, K)."""
  if not isinstance(kernels, list):
    kernels = [kernels]
  if isinstance(problems, GemmProblem):
    problems = [problems]

  measure = _timer()
  results = {k.__name__: {} for k in kernels}

  for problem in problems:
    a, b = random_operands(problem, seed)
    c = torch.zeros((problem.M, problem.N), dtype=torch.float32)

    for kernel in kernels:
      for _ in range(warmup):
        kernel(a, b, c, problem)
      if torch.cuda.is_available():
        torch.cuda.synchronize()

      times = [measure(lambda: kernel(a, b, c, problem)) for _ in range(iters)]
      results[kernel.__name__][problem.shape] = sum(times) / len(times)

  return results


def print_results(results):
    shapes = set()
    kernel_names = list(results.keys())
    for kernel_results in results.values():
        shapes.update(kernel_results.keys())
    shapes = sorted(shapes)

    labels = {shape: "x".join(str(d) for d in shape) for shape in shapes}
    max_shape_width = max([len("M x N x K")] + [len(label) for label in labels.values()])

    header = "M x N x K".ljust(max_shape_width)
    for kernel in kernel_names:
        header += f" | {kernel:>20} (ms) | {'GFLOP/s':>10}"
    print(f"\n{header}")
    print("-" * len(header))

    for shape in shapes:
        M, N, K = shape
        flops = 2 * M * N * K

        row = labels[shape].ljust(max_shape_width)
        for kernel in kernel_names:
            ms = results[kernel].get(shape, float("nan"))
            gflops = flops / (ms * 1e6) if ms == ms and ms > 0 else float("nan")
            row += f" | {ms:>25.3f} | {gflops:>10.1f}"
        print(row)
