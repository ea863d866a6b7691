"""GEMM - V1: Tile-wise Partitioning

- Each program computes one BLOCK_SIZE x BLOCK_SIZE tile of C on a 2D grid
- Inner loop walks k in order and accumulates rank-1 updates in float32
- No tl.dot, so no TF32 rounding; results stay within 1e-4 of V0
- Falls back to V0 when no CUDA device is available
"""

import torch
import triton
import triton.language as tl

from tiled_gemm.device import ComputeDevice
from tiled_gemm.gemm.problem import ComputePath, GemmProblem, check_operands
from tiled_gemm.gemm.v0 import multiply_reference
from tiled_gemm.logger import get_logger
from tiled_gemm.utils import create_test_problems, benchmark_kernel, print_results, random_operands

BLOCK_SIZE = 16

logger = get_logger(__name__)


@triton.jit
def gemm_kernel(
  A_ptr,
  B_ptr,
  C_ptr,
  M,
  N,
  K,
  stride_am,
  stride_ak,
  stride_bk,
  stride_bn,
  stride_cm,
  stride_cn,
  alpha,
  beta,
  BLOCK_SIZE: tl.constexpr,
  COMPUTE_PRODUCT: tl.constexpr,
):
  pid_0 = tl.program_id(axis=0)
  pid_1 = tl.program_id(axis=1)

  row_offsets = pid_0 * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
  col_offsets = pid_1 * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)

  row_mask = row_offsets < M
  col_mask = col_offsets < N

  acc = tl.zeros((BLOCK_SIZE, BLOCK_SIZE), dtype=tl.float32)

  if COMPUTE_PRODUCT:
    for k in range(0, K):
      a = tl.load(A_ptr + row_offsets * stride_am + k * stride_ak, mask=row_mask, other=0.0)
      b = tl.load(B_ptr + k * stride_bk + col_offsets * stride_bn, mask=col_mask, other=0.0)
      acc += a[:, None] * b[None, :]

  out = alpha * acc

  c_ptrs = C_ptr + row_offsets[:, None] * stride_cm + col_offsets[None, :] * stride_cn
  c_mask = row_mask[:, None] & col_mask[None, :]

  c = tl.load(c_ptrs, mask=c_mask, other=0.0)
  out += beta * c

  tl.store(c_ptrs, out, mask=c_mask)


def _launch(a, b, c, problem):
  grid = (triton.cdiv(problem.M, BLOCK_SIZE), triton.cdiv(problem.N, BLOCK_SIZE))
  logger.debug("Launching gemm_kernel for %dx%dx%d on grid %s", problem.M, problem.N, problem.K, grid)

  gemm_kernel[grid](
    a, b, c,
    problem.M, problem.N, problem.K,
    a.stride(0), a.stride(1),
    b.stride(0), b.stride(1),
    c.stride(0), c.stride(1),
    float(problem.alpha), float(problem.beta),
    BLOCK_SIZE=BLOCK_SIZE,
    COMPUTE_PRODUCT=problem.alpha != 0,
  )


def multiply_accelerated(a, b, c, problem, device=None):
  """Run the tiled kernel and write the result into ``c`` in place.

  ``device`` is a ComputeDevice held by the caller. Without one, a device is
  acquired for this call and released before returning. Returns the
  ComputePath that actually ran: REFERENCE when no device could be acquired.
  """
  check_operands(a, b, c, problem)

  owned = device is None
  if owned:
    device = ComputeDevice.acquire()
  if device is None:
    logger.info("Running reference path instead of the tiled kernel")
    return multiply_reference(a, b, c, problem)

  try:
    with device:
      a_dev = a.to(device.torch_device)
      b_dev = b.to(device.torch_device)
      c_dev = c.to(device.torch_device, copy=True)

      _launch(a_dev, b_dev, c_dev, problem)
      device.synchronize()

      c.copy_(c_dev)
      del a_dev, b_dev, c_dev
  finally:
    if owned:
      device.release()

  return ComputePath.ACCELERATED


if __name__ == "__main__":
  for problem in [GemmProblem(2, 2, 2), GemmProblem(100, 37, 513), GemmProblem(512, 512, 512)]:
    a, b = random_operands(problem, seed=42)
    expected = torch.zeros(problem.M, problem.N)
    actual = torch.zeros(problem.M, problem.N)
    multiply_reference(a, b, expected, problem)
    path = multiply_accelerated(a, b, actual, problem)
    print(f"Checking problem {problem.shape} on {path.value} path")
    print("Max diff: ", torch.max(torch.abs(expected - actual)).item())
    print("allclose: ", torch.allclose(expected, actual, atol=1e-4, rtol=0))

  kernels = [multiply_reference, multiply_accelerated]
  results = benchmark_kernel(kernels, create_test_problems([64, 256, 512]))
  print_results(results)
