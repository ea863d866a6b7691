"""GEMM problem descriptor and operand checks shared by every multiply path."""

import enum
from dataclasses import dataclass

import torch


class ComputePath(enum.Enum):
  ACCELERATED = "accelerated"
  REFERENCE = "reference"


class DimensionMismatchError(ValueError):
  """Operand shapes do not match the GemmProblem they are used with."""


@dataclass(frozen=True)
class GemmProblem:
  """C = alpha * A @ B + beta * C with A: M x K, B: K x N, C: M x N."""

  M: int
  N: int
  K: int
  alpha: float = 1.0
  beta: float = 0.0

  def __post_init__(self):
    for name in ("M", "N", "K"):
      value = getattr(self, name)
      if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")

  @property
  def flops(self):
    return 2 * self.M * self.N * self.K

  @property
  def shape(self):
    return (self.M, self.N, self.K)


def _check_matrix(name, x, rows, cols):
  if not isinstance(x, torch.Tensor):
    raise ValueError(f"{name} must be a torch.Tensor, got {type(x).__name__}")
  if x.dim() != 2:
    raise ValueError(f"{name} must be 2D, got {x.dim()}D")
  if x.dtype != torch.float32:
    raise ValueError(f"{name} must be float32, got {x.dtype}")
  if not x.is_contiguous():
    raise ValueError(f"{name} must be contiguous row-major")
  if tuple(x.shape) != (rows, cols):
    raise DimensionMismatchError(
      f"{name} must be {rows} x {cols}, got {x.shape[0]} x {x.shape[1]}"
    )


def _overlaps(x, y):
  # operands are contiguous, so each one covers a single byte range
  x_start, y_start = x.data_ptr(), y.data_ptr()
  x_end = x_start + x.numel() * x.element_size()
  y_end = y_start + y.numel() * y.element_size()
  return x.device == y.device and x_start < y_end and y_start < x_end


def check_operands(a, b, c, problem):
  _check_matrix("A", a, problem.M, problem.K)
  _check_matrix("B", b, problem.K, problem.N)
  _check_matrix("C", c, problem.M, problem.N)
  if _overlaps(c, a) or _overlaps(c, b):
    raise ValueError("C must not overlap A or B in memory")
  if not (a.device == b.device == c.device):
    raise ValueError(f"A, B and C must be on one device, got {a.device}, {b.device}, {c.device}")
