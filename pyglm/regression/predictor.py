"""
Linear predictors for GLM fitting.

A LinearPredictor owns the model matrix X and the coefficient vector β,
and recomputes β by weighted least squares each IRLS iteration:

    min_β || s ⊙ (z - Xβ) ||²,   s = √working weights, z = working response

which is ordinary least squares on (diag(s)·X, s ⊙ z). Two solvers:

    DensePredQR    QR of diag(s)·X. Stable; the recommended default.
    DensePredChol  Cholesky of X'WX (normal equations). Cheaper, but
                   squares the condition number and fails outright when
                   the weighted design loses full column rank.

Both raise a NumericalError subclass for an ill-conditioned design and a
DimensionError for mismatched lengths, so the caller can tell them apart.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyglm.core.compute.linalg import (
    CholeskyResult,
    QRResult,
    cholesky_cpu,
    cholesky_solve_cpu,
    qr_cpu,
    qr_solve_cpu,
)
from pyglm.core.exceptions import DimensionError, NumericalError
from pyglm.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_finite,
    check_length,
)


class LinearPredictor(ABC):
    """
    Linear predictor Xβ with a weighted least-squares coefficient update.

    Attributes:
        X: Model matrix (n x p), float64, immutable for the fit
        beta: Coefficient vector (p,), updated in place
    """

    def __init__(self, X: ArrayLike, beta: ArrayLike | None = None):
        X = check_array(X, 'X')
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        check_2d(X, 'X')
        check_finite(X, 'X')

        p = X.shape[1]
        if beta is None:
            beta = np.zeros(p, dtype=np.float64)
        else:
            beta = check_array(beta, 'beta')
            check_1d(beta, 'beta')
            check_finite(beta, 'beta')
            if beta.shape[0] != p:
                raise DimensionError(
                    f"dimension mismatch: beta has length {beta.shape[0]}, "
                    f"X has {p} columns"
                )

        self.X = X
        self.X.setflags(write=False)
        self.beta = beta

    @property
    @abstractmethod
    def kind(self) -> str:
        """Solver identifier used in result metadata ('qr', 'cholesky')."""
        ...

    @property
    def n(self) -> int:
        """Number of observations."""
        return self.X.shape[0]

    @property
    def p(self) -> int:
        """Number of coefficients."""
        return self.X.shape[1]

    def linear_predictor(self) -> NDArray[np.floating[Any]]:
        """Xβ (n,), without any offset."""
        return self.X @ self.beta

    def set_beta(self, beta: ArrayLike) -> None:
        """Overwrite β in place, e.g. with a shortened IRLS step."""
        beta = check_array(beta, 'beta')
        check_1d(beta, 'beta')
        check_length(beta, self.p, 'beta')
        self.beta[:] = beta

    def update(self, target: ArrayLike, sqrt_weights: ArrayLike) -> None:
        """
        Recompute β by weighted least squares.

        Args:
            target: Working response z (n,)
            sqrt_weights: Square roots of the working weights (n,)

        Raises:
            DimensionError: If either vector's length differs from n
            NumericalError: If the inputs are non-finite or the weighted
                design is ill-conditioned (see subclasses)
        """
        z = check_array(target, 'target')
        s = check_array(sqrt_weights, 'sqrt_weights')
        check_1d(z, 'target')
        check_1d(s, 'sqrt_weights')
        check_length(z, self.n, 'target')
        check_length(s, self.n, 'sqrt_weights')
        for arr, name in ((z, 'target'), (s, 'sqrt_weights')):
            if not np.all(np.isfinite(arr)):
                raise NumericalError(
                    f"{name}: {int(np.sum(~np.isfinite(arr)))} non-finite value(s) "
                    f"in the weighted least-squares inputs"
                )

        Xw = self.X * s[:, np.newaxis]
        zw = s * z
        self.beta[:] = self._solve(Xw, zw)

    @abstractmethod
    def _solve(
        self,
        Xw: NDArray[np.floating[Any]],
        zw: NDArray[np.floating[Any]],
    ) -> NDArray[np.floating[Any]]:
        """Least-squares solution of Xw β ≈ zw; refreshes the cached factorization."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n={self.n}, p={self.p})"


class DensePredQR(LinearPredictor):
    """
    Dense linear predictor solved by QR of the weighted design.

    `qr` holds the factorization from the most recent update (None before
    the first one). A rank-deficient weighted design raises
    SingularMatrixError; no minimum-norm fallback is attempted.
    """

    def __init__(self, X: ArrayLike, beta: ArrayLike | None = None):
        super().__init__(X, beta)
        self.qr: QRResult | None = None

    @property
    def kind(self) -> str:
        return 'qr'

    def _solve(self, Xw, zw):
        self.qr = qr_cpu(Xw, mode='reduced')
        return qr_solve_cpu(self.qr, zw, matrix_name='weighted X')


class DensePredChol(LinearPredictor):
    """
    Dense linear predictor solved by Cholesky of the normal equations.

    `chol` holds the factorization of X'WX from the most recent update
    (None before the first one). Loss of full column rank raises
    NotPositiveDefiniteError.
    """

    def __init__(self, X: ArrayLike, beta: ArrayLike | None = None):
        super().__init__(X, beta)
        self.chol: CholeskyResult | None = None

    @property
    def kind(self) -> str:
        return 'cholesky'

    def _solve(self, Xw, zw):
        self.chol = cholesky_cpu(Xw.T @ Xw, matrix_name="X'WX")
        return cholesky_solve_cpu(self.chol, Xw.T @ zw)
