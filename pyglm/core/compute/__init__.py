"""
Shared compute infrastructure for PyGLM.

IMPORTANT: This is NOT where the IRLS algorithm lives. That goes in
pyglm.regression. This module contains shared NUMERIC infrastructure.

Submodules:
    timing: Execution timing utilities
    tolerances: Floating-point bounds and comparison tiers
    linalg: Linear algebra kernels (QR, Cholesky)
"""

from pyglm.core.compute.timing import Timer, timed
from pyglm.core.compute.tolerances import LLMAXABS, ToleranceTier

__all__ = [
    # Timing
    "Timer",
    "timed",
    # Bounds
    "LLMAXABS",
    "ToleranceTier",
]
