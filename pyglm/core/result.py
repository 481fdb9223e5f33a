"""
Generic result container for PyGLM computations.

The Result class is the standardized envelope a fit returns. It keeps
the numeric payload separate from bookkeeping (how the fit went, how
long it took, which library versions produced it).

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (converged, iterations, step halvings)
    - timing is optional (don't burden unit tests)
    - provenance is filled automatically for reproducibility
    - Immutable (frozen=True)
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

import numpy as np
import scipy

P = TypeVar('P')  # Parameter payload type


def _default_provenance() -> dict[str, str]:
    """Versions of the packages that shaped the numbers in a result."""
    from pyglm import __version__

    return {
        'pyglm_version': __version__,
        'numpy_version': np.__version__,
        'scipy_version': scipy.__version__,
    }


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for a GLM fit.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific parameters (coefficients, deviance, ...)
        info: Structured metadata (method, convergence, diagnostics)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the solver that produced this result
        warnings: Non-fatal issues encountered during computation
        provenance: Library versions used for the computation

    Examples:
        >>> Result(
        ...     params=GLMParams(...),
        ...     info={'method': 'irls_qr', 'converged': True, 'iterations': 5},
        ...     timing={'total_seconds': 0.01, 'irls': 0.009},
        ...     backend_name='cpu_irls_qr'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    provenance: dict[str, str] = field(default_factory=_default_provenance)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
