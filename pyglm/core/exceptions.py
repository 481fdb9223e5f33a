"""
Exception hierarchy for PyGLM.

All exceptions inherit from PyGLMError to allow catching any
library-specific error. The split mirrors how a fit can fail:

    - ValidationError: the caller handed us something unusable
      (DimensionError for shapes, DomainError for out-of-domain values)
    - NumericalError: the data were fine but the arithmetic was not
      (zero derivatives, singular or indefinite factorizations)
    - ConvergenceError: IRLS ran but did not reach a fixed point

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PyGLMError(Exception):
    """Base exception for all PyGLM errors."""
    pass


class ValidationError(PyGLMError):
    """
    Input validation failed.

    Raised when user-provided inputs or fit settings fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when vector lengths disagree between the response, the
    predictor and intermediate results. Never silently truncated or padded.
    """
    pass


class DomainError(ValidationError):
    """
    Values fall outside the domain of a link or distribution.

    Raised by Link.valideta / Link.validmu and by the response support
    check. A single bad element fails the whole call.

    Attributes:
        argument: Name of the offending quantity ('eta', 'mu', 'y')
        n_invalid: Number of elements outside the domain
        expected: Human-readable description of the valid domain
    """

    def __init__(
        self,
        message: str,
        argument: str | None = None,
        n_invalid: int | None = None,
        expected: str | None = None
    ):
        super().__init__(message)
        self.argument = argument
        self.n_invalid = n_invalid
        self.expected = expected


class NumericalError(PyGLMError):
    """
    Numerical computation failed.

    Base class for ill-conditioned problems: zero dμ/dη, non-positive
    variance, singular or indefinite weighted designs.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Raised when the weighted design matrix loses full column rank
    during a QR-based coefficient update.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        rank: Numerical rank, if computed
        expected_rank: Expected rank (number of columns)
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.rank = rank
        self.expected_rank = expected_rank


class NotPositiveDefiniteError(NumericalError):
    """
    Matrix is not positive definite.

    Raised when the weighted normal equations X'WX cannot be Cholesky
    factorized, or when a pivot collapses to roundoff.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        min_pivot: Smallest relative Cholesky pivot, if computed
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        min_pivot: float | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.min_pivot = min_pivot


class ConvergenceError(PyGLMError):
    """
    IRLS failed to converge.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final relative deviance change
        reason: 'max_iterations' or 'diverged'
        threshold: The convergence threshold that was not met
        deviance: Last deviance achieved before giving up
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None,
        deviance: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
        self.deviance = deviance
