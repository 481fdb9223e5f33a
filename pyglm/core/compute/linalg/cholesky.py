"""
Cholesky decomposition and symmetric positive-definite solve.

Used by the normal-equations linear predictor: factorize X'WX = U'U and
solve U'U β = X'Wz. Cheaper than QR per iteration, but squares the
condition number, so rank loss in the weighted design must be detected
rather than silently producing huge coefficients.

LAPACK's dpotrf only rejects a pivot that is exactly non-positive. For a
design with a duplicated column, roundoff usually leaves a tiny positive
pivot instead, so the relative pivots U_jj² / A_jj are also checked
against CHOLESKY_PIVOT_TOL.
"""

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from pyglm.core.compute.tolerances import CHOLESKY_PIVOT_TOL
from pyglm.core.exceptions import NotPositiveDefiniteError


@dataclass(frozen=True)
class CholeskyResult:
    """
    Result of Cholesky decomposition A = U'U.

    Attributes:
        factor: Array holding U in its upper triangle (lower triangle is scratch)
        lower: Always False; kept for scipy's cho_solve convention
        min_pivot: Smallest relative pivot U_jj² / A_jj
    """
    factor: NDArray[np.floating[Any]]
    lower: bool
    min_pivot: float

    @property
    def U(self) -> NDArray[np.floating[Any]]:
        """Upper triangular factor with the scratch triangle zeroed."""
        return np.triu(self.factor)


def cholesky_cpu(
    A: NDArray[np.floating[Any]],
    matrix_name: str = 'A',
    pivot_tol: float = CHOLESKY_PIVOT_TOL,
) -> CholeskyResult:
    """
    Cholesky decomposition using LAPACK (via SciPy).

    Args:
        A: Symmetric matrix to decompose (p x p)
        matrix_name: Name used in error messages
        pivot_tol: Smallest acceptable relative pivot

    Returns:
        CholeskyResult with the upper factor

    Raises:
        NotPositiveDefiniteError: If A is not (numerically) positive definite
    """
    try:
        factor, lower = cho_factor(A, lower=False, check_finite=True)
    except (LinAlgError, ValueError) as e:
        raise NotPositiveDefiniteError(
            f"{matrix_name} is not positive definite: {e}",
            matrix_name=matrix_name,
        ) from e

    p = A.shape[0]
    if p == 0:
        return CholeskyResult(factor=factor, lower=lower, min_pivot=1.0)

    pivots = np.diag(factor) ** 2 / np.diag(A)
    min_pivot = float(np.min(pivots))
    if min_pivot <= pivot_tol:
        j = int(np.argmin(pivots))
        raise NotPositiveDefiniteError(
            f"{matrix_name} is not positive definite: relative pivot {min_pivot:.3e} "
            f"at column {j} is below {pivot_tol:.3e} (design lost full column rank)",
            matrix_name=matrix_name,
            min_pivot=min_pivot,
        )

    return CholeskyResult(factor=factor, lower=lower, min_pivot=min_pivot)


def cholesky_solve_cpu(
    chol: CholeskyResult,
    b: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """Solve A x = b given A = U'U."""
    return cho_solve((chol.factor, chol.lower), b)
