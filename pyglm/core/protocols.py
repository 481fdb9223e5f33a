"""
Core protocols for PyGLM.

The IRLS core consumes an exponential-family distribution purely as a
capability. Anything that structurally provides the methods below can be
plugged into GLMResponse; the bundled families in
pyglm.regression.families are one implementation, not the only one.

We use Protocol (structural typing) rather than ABC (nominal typing) so
third-party families need not inherit from our base class.
"""

from typing import Protocol, Any, runtime_checkable, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from pyglm.regression.links import Link


@runtime_checkable
class ExponentialFamily(Protocol):
    """
    Minimal protocol for a response distribution used by IRLS.

    All array arguments are float64 vectors of equal length n.
    """

    @property
    def name(self) -> str:
        """Lowercase family identifier, e.g. 'poisson'."""
        ...

    def canonical_link(self) -> 'Link':
        """Link making the natural parameter equal to the linear predictor."""
        ...

    def variance(self, mu: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        """Variance function V(μ), element-wise."""
        ...

    def deviance(
        self,
        y: NDArray[np.floating[Any]],
        mu: NDArray[np.floating[Any]],
        wt: NDArray[np.floating[Any]],
    ) -> float:
        """Total deviance; non-negative, zero only for a perfect fit."""
        ...

    def deviance_residuals(
        self,
        y: NDArray[np.floating[Any]],
        mu: NDArray[np.floating[Any]],
        wt: NDArray[np.floating[Any]],
    ) -> NDArray[np.floating[Any]]:
        """Signed per-observation residuals whose squares sum to deviance()."""
        ...

    def insupport(self, y: NDArray[np.floating[Any]]) -> bool:
        """True if every element of y lies in the distribution's support."""
        ...

    def mustart(
        self,
        y: NDArray[np.floating[Any]],
        wt: NDArray[np.floating[Any]],
    ) -> NDArray[np.floating[Any]]:
        """Starting mean for IRLS, inside the canonical link's μ domain."""
        ...
