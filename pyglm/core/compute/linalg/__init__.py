"""
Linear algebra kernels for PyGLM.

All functions follow these conventions:
    - NumPy/SciPy (LAPACK under the hood), dense float64 only
    - Each factorization returns a structured result dataclass
    - Solves take the factorization, so callers can cache it
    - Errors are raised immediately with clear messages

Submodules:
    qr: QR decomposition and least-squares solve
    cholesky: Cholesky decomposition and SPD solve
"""

from pyglm.core.compute.linalg.qr import (
    QRResult,
    qr_cpu,
    qr_solve_cpu,
)
from pyglm.core.compute.linalg.cholesky import (
    CholeskyResult,
    cholesky_cpu,
    cholesky_solve_cpu,
)

__all__ = [
    # QR decomposition
    "QRResult",
    "qr_cpu",
    "qr_solve_cpu",
    # Cholesky decomposition
    "CholeskyResult",
    "cholesky_cpu",
    "cholesky_solve_cpu",
]
