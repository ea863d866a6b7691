"""GEMM - V0: Sequential Reference

- C = alpha * A @ B + beta * C, accumulated one k at a time in increasing order
- Same float32 rounding on every call, used as the ground truth for V1
- alpha == 0 skips the product, so A and B are not read
"""

import torch

from tiled_gemm.gemm.problem import ComputePath, GemmProblem, check_operands
from tiled_gemm.utils import create_test_problems, benchmark_kernel, print_results


def multiply_reference(a, b, c, problem):
  check_operands(a, b, c, problem)

  acc = torch.zeros((problem.M, problem.N), dtype=torch.float32, device=c.device)
  if problem.alpha != 0:
    for k in range(problem.K):
      acc += a[:, k:k + 1] * b[k:k + 1, :]

  out = acc.mul_(problem.alpha)
  out += problem.beta * c

  c.copy_(out)
  return ComputePath.REFERENCE


if __name__ == "__main__":
  problem = GemmProblem(2, 2, 2)
  a = torch.tensor([[1.0, 2.0], [3.0, 4.0]])
  b = torch.tensor([[5.0, 6.0], [7.0, 8.0]])
  c = torch.zeros(2, 2)
  multiply_reference(a, b, c, problem)
  print(c)

  results = benchmark_kernel(multiply_reference, create_test_problems([64, 128]))
  print_results(results)
