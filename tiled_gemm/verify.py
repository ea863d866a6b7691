"""Host-side verification of the tiled GEMM against the sequential reference.

A VerificationHarness runs exactly one problem. It draws A and B from a seeded
generator, computes C on the accelerated path when a CUDA device is available,
and, when that path ran, recomputes C with the reference and compares the two.

    UNINITIALIZED -> COMPUTED -> VERIFIED    (both paths ran)
    UNINITIALIZED -> COMPUTED                (reference only)
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

import torch

from tiled_gemm.device import ComputeDevice
from tiled_gemm.gemm.problem import ComputePath, DimensionMismatchError, GemmProblem
from tiled_gemm.gemm.v0 import multiply_reference
from tiled_gemm.gemm.v1 import multiply_accelerated
from tiled_gemm.logger import get_logger
from tiled_gemm.utils import random_operands

DEFAULT_TOLERANCE = 1e-4

logger = get_logger(__name__)


class HarnessState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    COMPUTED = "computed"
    VERIFIED = "verified"


_TRANSITIONS = {
    HarnessState.UNINITIALIZED: (HarnessState.COMPUTED,),
    HarnessState.COMPUTED: (HarnessState.VERIFIED,),
    HarnessState.VERIFIED: (),
}


class HarnessStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class MatchReport:
    """Outcome of an element-wise comparison.

    ``actual`` comes from the first matrix passed to compare() and
    ``expected`` from the second. Mismatch fields are None on a full match.
    """

    matched: bool
    tolerance: float
    max_abs_diff: float
    index: Optional[int] = None
    location: Optional[Tuple[int, int]] = None
    actual: Optional[float] = None
    expected: Optional[float] = None
    abs_diff: Optional[float] = None
    nonfinite: int = 0

    def __bool__(self):
        return self.matched

    def describe(self):
        if self.matched:
            text = f"match (max abs diff {self.max_abs_diff:.3e}, tolerance {self.tolerance:.0e})"
            if self.nonfinite:
                text += f", {self.nonfinite} non-finite differences"
            return text
        where = f"index {self.index}"
        if self.location is not None:
            where += f" (row {self.location[0]}, col {self.location[1]})"
        return (
            f"mismatch at {where}: actual={self.actual} expected={self.expected} "
            f"diff={self.abs_diff:.3e} (tolerance {self.tolerance:.0e})"
        )


def compare(result_a, result_b, tolerance=DEFAULT_TOLERANCE):
    """Scan both results in row-major order and stop at the first mismatch.

    An element mismatches when ``abs(a - b) > tolerance``. NaN differences
    never compare greater, so they are counted in ``nonfinite`` instead.
    """
    if tuple(result_a.shape) != tuple(result_b.shape):
        raise DimensionMismatchError(
            f"cannot compare shapes {tuple(result_a.shape)} and {tuple(result_b.shape)}"
        )

    flat_a = result_a.detach().reshape(-1).to("cpu", torch.float32)
    flat_b = result_b.detach().reshape(-1).to("cpu", torch.float32)
    diff = (flat_a - flat_b).abs()
    finite = torch.isfinite(diff)
    nonfinite = int((~finite).sum())
    max_abs_diff = diff[finite].max().item() if bool(finite.any()) else 0.0

    bad = torch.nonzero(diff > tolerance)
    if bad.numel() == 0:
        return MatchReport(matched=True, tolerance=tolerance, max_abs_diff=max_abs_diff, nonfinite=nonfinite)

    index = int(bad[0, 0])
    location = divmod(index, result_a.shape[1]) if result_a.dim() == 2 else None
    return MatchReport(
        matched=False,
        tolerance=tolerance,
        max_abs_diff=max_abs_diff,
        index=index,
        location=location,
        actual=flat_a[index].item(),
        expected=flat_b[index].item(),
        abs_diff=diff[index].item(),
        nonfinite=nonfinite,
    )


@dataclass
class VerificationResult:
    problem: GemmProblem
    seed: int
    path: ComputePath
    state: HarnessState
    result: torch.Tensor
    reference: Optional[torch.Tensor] = None
    report: Optional[MatchReport] = None
    device_name: Optional[str] = None
    capability: Optional[Tuple[int, int]] = None

    @property
    def passed(self):
        """None when only the reference path ran and nothing was compared."""
        if self.report is None:
            return None
        return self.report.matched


class VerificationHarness:

    def __init__(self, problem, seed, tolerance=DEFAULT_TOLERANCE, accelerate=True):
        self.problem = problem
        self.seed = seed
        self.tolerance = tolerance
        self.accelerate = accelerate
        self.state = HarnessState.UNINITIALIZED

    def _advance(self, new_state):
        if new_state not in _TRANSITIONS[self.state]:
            raise HarnessStateError(f"cannot move from {self.state.value} to {new_state.value}")
        logger.debug("Harness %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def run(self):
        if self.state is not HarnessState.UNINITIALIZED:
            raise HarnessStateError(f"harness already ran (state {self.state.value})")

        problem = self.problem
        a, b = random_operands(problem, self.seed)
        c = torch.zeros((problem.M, problem.N), dtype=torch.float32)

        device = ComputeDevice.acquire() if self.accelerate else None
        device_name = device.name if device is not None else None
        capability = device.capability if device is not None else None

        try:
            if device is None:
                logger.info("No accelerator, computing %s with the reference only", problem.shape)
                path = multiply_reference(a, b, c, problem)
            else:
                path = multiply_accelerated(a, b, c, problem, device=device)
        finally:
            if device is not None:
                device.release()
        self._advance(HarnessState.COMPUTED)

        result = VerificationResult(
            problem=problem,
            seed=self.seed,
            path=path,
            state=self.state,
            result=c,
            device_name=device_name,
            capability=capability,
        )
        if path is not ComputePath.ACCELERATED:
            return result

        reference = torch.zeros((problem.M, problem.N), dtype=torch.float32)
        multiply_reference(a, b, reference, problem)
        report = compare(c, reference, self.tolerance)
        if not report.matched:
            logger.warning("Verification failed: %s", report.describe())
        self._advance(HarnessState.VERIFIED)

        result.reference = reference
        result.report = report
        result.state = self.state
        return result


def run(problem, seed, tolerance=DEFAULT_TOLERANCE, accelerate=True):
    return VerificationHarness(problem, seed, tolerance, accelerate).run()
