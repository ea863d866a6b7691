import math
import os

import pytest
import torch

from tiled_gemm.gemm.problem import GemmProblem
from tiled_gemm.gemm.v0 import multiply_reference
from tiled_gemm.gemm.v1 import BLOCK_SIZE, _launch
from tiled_gemm.utils import random_operands


def _target_device():
    if torch.cuda.is_available():
        return "cuda"
    if os.getenv("TRITON_INTERPRET") == "1":
        return "cpu"
    return None


requires_kernel_target = pytest.mark.skipif(
    _target_device() is None, reason="neither CUDA nor the Triton interpreter is available"
)


def _run_kernel(a, b, c, problem):
    device = _target_device()
    a_dev, b_dev, c_dev = a.to(device), b.to(device), c.to(device, copy=True)
    _launch(a_dev, b_dev, c_dev, problem)
    if device == "cuda":
        torch.cuda.synchronize()
    return c_dev.cpu()


@requires_kernel_target
def test_kernel_two_by_two_exact():
    a = torch.tensor([[1.0, 2.0], [3.0, 4.0]])
    b = torch.tensor([[5.0, 6.0], [7.0, 8.0]])
    c = _run_kernel(a, b, torch.zeros(2, 2), GemmProblem(2, 2, 2))
    assert torch.equal(c, torch.tensor([[19.0, 22.0], [43.0, 50.0]]))


@requires_kernel_target
@pytest.mark.parametrize("shape", [(1, 1, 1), (BLOCK_SIZE + 1, 2 * BLOCK_SIZE + 1, 9), (40, 23, 70)])
def test_kernel_within_tolerance_of_reference(shape):
    problem = GemmProblem(*shape)
    a, b = random_operands(problem, seed=42)
    expected = torch.zeros(problem.M, problem.N)
    multiply_reference(a, b, expected, problem)
    actual = _run_kernel(a, b, torch.zeros(problem.M, problem.N), problem)
    assert (actual - expected).abs().max().item() <= 1e-4


@requires_kernel_target
def test_kernel_identity_returns_a():
    problem = GemmProblem(20, 20, 20)
    a, _ = random_operands(problem, seed=7)
    c = _run_kernel(a, torch.eye(20), torch.zeros(20, 20), problem)
    assert torch.equal(c, a)


@requires_kernel_target
def test_kernel_alpha_zero_ignores_operands():
    problem = GemmProblem(18, 5, 3, alpha=0.0, beta=-3.0)
    a = torch.full((18, 3), math.inf)
    b = torch.ones(3, 5)
    c0 = torch.linspace(-1.0, 1.0, 18 * 5).reshape(18, 5)
    c = _run_kernel(a, b, c0.clone(), problem)
    assert torch.equal(c, -3.0 * c0)


@requires_kernel_target
def test_kernel_beta_accumulates():
    problem = GemmProblem(19, 17, 8, alpha=1.5, beta=0.25)
    a, b = random_operands(problem, seed=9)
    expected = torch.ones(19, 17)
    multiply_reference(a, b, expected, problem)
    actual = _run_kernel(a, b, torch.ones(19, 17), problem)
    assert (actual - expected).abs().max().item() <= 1e-4


@requires_kernel_target
def test_kernel_beta_zero_propagates_nan_in_c():
    problem = GemmProblem(2, 2, 2, alpha=1.0, beta=0.0)
    a = torch.tensor([[1.0, 2.0], [3.0, 4.0]])
    b = torch.tensor([[5.0, 6.0], [7.0, 8.0]])
    c = _run_kernel(a, b, torch.tensor([[math.nan, 0.0], [0.0, 0.0]]), problem)
    assert torch.isnan(c[0, 0])
    assert c[1, 1].item() == 50.0
