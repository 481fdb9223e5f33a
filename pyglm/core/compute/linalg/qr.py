"""
QR decomposition and least-squares solve.

Used by the QR-based linear predictor: each IRLS iteration factorizes the
weighted design √W·X afresh and back-substitutes for the coefficients.
Numerical rank is read off the diagonal of R: column j counts toward the
rank only while |R_jj| exceeds 1e-7 times the norm of column j of the input,
the column-wise test of R's dqrdc2.
"""

from dataclasses import dataclass
from typing import Literal, Any
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import solve_triangular

from pyglm.core.exceptions import SingularMatrixError

QR_RANK_TOL = 1e-7


@dataclass(frozen=True)
class QRResult:
    """
    Result of QR decomposition.

    Attributes:
        Q: Orthogonal matrix (n x k where k = min(n, p) for reduced mode)
        R: Upper triangular matrix (k x p)
        rank: Numerical rank determined from R diagonal
        tol: Tolerance on |R_jj| relative to the norm of column j
    """
    Q: NDArray[np.floating[Any]]
    R: NDArray[np.floating[Any]]
    rank: int
    tol: float

    @property
    def n_columns(self) -> int:
        return self.R.shape[1]


def qr_cpu(
    X: NDArray[np.floating[Any]],
    mode: Literal['reduced', 'complete'] = 'reduced',
    tol: float = QR_RANK_TOL,
) -> QRResult:
    """
    QR decomposition using LAPACK (via NumPy).

    Computes X = QR where Q is orthogonal and R is upper triangular.

    Args:
        X: Matrix to decompose (n x p)
        mode: 'reduced' for economy QR (Q is n x k, R is k x p where k = min(n,p))
              'complete' for full QR (Q is n x n, R is n x p)
        tol: Column j counts toward the rank only if |R_jj| exceeds tol
             times the Euclidean norm of column j of X

    Returns:
        QRResult with Q, R, and numerical rank
    """
    Q, R = np.linalg.qr(X, mode=mode)

    diag_R = np.abs(np.diag(R))
    col_norms = np.linalg.norm(X, axis=0)[:len(diag_R)]
    rank = int(np.sum(diag_R > tol * col_norms))

    return QRResult(Q=Q, R=R, rank=rank, tol=tol)


def qr_solve_cpu(
    qr_result: QRResult,
    y: NDArray[np.floating[Any]],
    matrix_name: str = 'X',
) -> NDArray[np.floating[Any]]:
    """
    Solve least squares from an existing QR factorization.

    Solves min_β ||y - Xβ||² given X = QR:
        β = R⁻¹ Q'y

    Args:
        qr_result: Factorization of the (n x p) matrix, n >= p
        y: Right-hand side (n,)
        matrix_name: Name used in error messages

    Returns:
        Coefficient vector β (p,)

    Raises:
        SingularMatrixError: If the factorized matrix is rank-deficient
    """
    p = qr_result.n_columns
    if qr_result.rank < p:
        raise SingularMatrixError(
            f"{matrix_name} is rank-deficient: rank={qr_result.rank}, expected={p}. "
            f"This indicates perfect multicollinearity.",
            matrix_name=matrix_name,
            rank=qr_result.rank,
            expected_rank=p
        )

    # Solve R @ beta = Q'y by back substitution
    Qty = qr_result.Q.T @ y
    return solve_triangular(qr_result.R[:p, :p], Qty[:p], lower=False)
