import os

import pytest
import torch

# Without CUDA, run Triton kernels through the interpreter on CPU tensors.
# This has to happen before tiled_gemm.gemm.v1 is imported.
if not torch.cuda.is_available():
    os.environ.setdefault("TRITON_INTERPRET", "1")


@pytest.fixture
def no_accelerator(monkeypatch):
    monkeypatch.setenv("TILED_GEMM_DISABLE_ACCELERATOR", "1")
