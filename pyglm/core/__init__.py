"""
Core infrastructure for PyGLM.

Shared abstractions used by the regression package.

Key components:
    protocols: ExponentialFamily protocol consumed by the IRLS core
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, floating-point bounds, linear algebra kernels
"""

from pyglm.core.protocols import ExponentialFamily
from pyglm.core.result import Result
from pyglm.core.exceptions import (
    PyGLMError,
    ValidationError,
    DimensionError,
    DomainError,
    NumericalError,
    SingularMatrixError,
    NotPositiveDefiniteError,
    ConvergenceError,
)

__all__ = [
    # Protocols
    "ExponentialFamily",
    # Result
    "Result",
    # Exceptions
    "PyGLMError",
    "ValidationError",
    "DimensionError",
    "DomainError",
    "NumericalError",
    "SingularMatrixError",
    "NotPositiveDefiniteError",
    "ConvergenceError",
]
