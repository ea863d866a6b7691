"""Compute device handle for the accelerated GEMM path.

A ComputeDevice wraps one CUDA device that Triton kernels can launch on. It is
acquired once per run, entered for each call that touches device memory, and
released when the run is over.
"""

import os
import threading

import torch

from tiled_gemm.logger import get_logger

DISABLE_ACCELERATOR_ENV = "TILED_GEMM_DISABLE_ACCELERATOR"

logger = get_logger(__name__)


def accelerator_disabled():
  return os.getenv(DISABLE_ACCELERATOR_ENV, "").strip().lower() in ("1", "true", "yes", "on")


class ComputeDevice:

  def __init__(self, index=0):
    self.index = index
    self.torch_device = torch.device("cuda", index)
    props = torch.cuda.get_device_properties(index)
    self.name = props.name
    self.capability = (props.major, props.minor)
    self._lock = threading.RLock()
    self._released = False

  @classmethod
  def acquire(cls, index=0):
    """Return a handle for CUDA device ``index``, or None if there is none."""
    if accelerator_disabled():
      logger.info("Accelerator disabled through %s", DISABLE_ACCELERATOR_ENV)
      return None
    if not torch.cuda.is_available() or torch.cuda.device_count() <= index:
      logger.info("No CUDA device available")
      return None

    device = cls(index)
    logger.debug("Acquired %s (compute capability %d.%d)", device.name, *device.capability)
    return device

  @property
  def released(self):
    return self._released

  def synchronize(self):
    torch.cuda.synchronize(self.torch_device)

  def release(self):
    with self._lock:
      if self._released:
        return
      self.synchronize()
      torch.cuda.empty_cache()
      self._released = True
    logger.debug("Released %s", self.name)

  def __enter__(self):
    self._lock.acquire()
    if self._released:
      self._lock.release()
      raise RuntimeError(f"ComputeDevice {self.name} has already been released")
    return self

  def __exit__(self, exc_type, exc_val, exc_tb):
    try:
      self.synchronize()
    finally:
      self._lock.release()

  def __repr__(self):
    return f"ComputeDevice(index={self.index}, name={self.name!r})"
