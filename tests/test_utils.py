import torch

from tiled_gemm.gemm.problem import GemmProblem
from tiled_gemm.gemm.v0 import multiply_reference
from tiled_gemm.utils import (
    benchmark_kernel,
    create_test_problems,
    print_results,
    random_matrix,
    random_operands,
)


def test_random_matrix_range_and_dtype():
    x = random_matrix(64, 32, torch.Generator().manual_seed(0))
    assert x.shape == (64, 32)
    assert x.dtype == torch.float32
    assert x.is_contiguous()
    assert x.min().item() >= -1.0
    assert x.max().item() < 1.0


def test_random_operands_reproducible():
    problem = GemmProblem(5, 6, 7)
    a1, b1 = random_operands(problem, 42)
    a2, b2 = random_operands(problem, 42)
    assert a1.shape == (5, 7)
    assert b1.shape == (7, 6)
    assert torch.equal(a1, a2)
    assert torch.equal(b1, b2)
    a3, _ = random_operands(problem, 43)
    assert not torch.equal(a1, a3)


def test_random_operands_ignore_global_seed():
    problem = GemmProblem(3, 3, 3)
    torch.manual_seed(0)
    a1, _ = random_operands(problem, 1)
    torch.manual_seed(123)
    a2, _ = random_operands(problem, 1)
    assert torch.equal(a1, a2)


def test_create_test_problems_grid():
    problems = create_test_problems([2, 3], alpha=2.0)
    assert len(problems) == 8
    assert problems[0] == GemmProblem(2, 2, 2, 2.0, 0.0)
    assert {p.shape for p in problems} == {(m, n, k) for m in (2, 3) for n in (2, 3) for k in (2, 3)}


def test_benchmark_and_print(capsys):
    problems = [GemmProblem(4, 4, 4), GemmProblem(8, 4, 2)]
    results = benchmark_kernel(multiply_reference, problems, warmup=1, iters=2)
    assert set(results) == {"multiply_reference"}
    assert set(results["multiply_reference"]) == {(4, 4, 4), (8, 4, 2)}
    assert all(ms >= 0 for ms in results["multiply_reference"].values())

    print_results(results)
    out = capsys.readouterr().out
    assert "multiply_reference" in out
    assert "GFLOP/s" in out
    assert "8x4x2" in out
