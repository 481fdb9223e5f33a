"""
Common data types for GLM fitting.

Contains the IRLS control settings, the fit state machine labels, and the
frozen parameter payload that goes inside the Result[P] envelope. The
payload is a pure data container: no methods, no computation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.core.validation import (
    check_open_unit_interval,
    check_positive_int,
    check_positive_scalar,
)


# Added to |deviance| in the convergence denominator so that a perfect
# fit (deviance -> 0) converges instead of dividing by zero. Same
# constant as R's glm.fit.
DEVIANCE_OFFSET = 0.1


class FitState(Enum):
    """States of the IRLS loop. RUNNING is the only non-terminal state."""
    RUNNING = 'running'
    CONVERGED = 'converged'
    DIVERGED = 'diverged'
    MAX_ITER_EXCEEDED = 'max_iterations'


@dataclass(frozen=True)
class IRLSControl:
    """
    Settings for the IRLS loop.

    Attributes:
        max_iter: Maximum number of IRLS iterations (>= 1).
        min_step_factor: Smallest step fraction tried by step-halving
            before the fit is declared diverged; must lie in (0, 1).
        tol: Convergence threshold on the relative deviance change
            |dev_old - dev| / (|dev| + 0.1).
    """
    max_iter: int = 30
    min_step_factor: float = 0.001
    tol: float = 1e-6

    def validate(self) -> 'IRLSControl':
        """Check the preconditions; raise ValidationError on the first failure."""
        check_positive_int(self.max_iter, 'max_iter')
        check_open_unit_interval(self.min_step_factor, 'min_step_factor')
        check_positive_scalar(self.tol, 'tol')
        return self


@dataclass(frozen=True)
class GLMParams:
    """
    Parameter payload for a fitted GLM.

    This is the immutable data computed by the IRLS solver.
    """
    coefficients: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]       # μ
    linear_predictor: NDArray[np.floating[Any]]    # η, offset included
    residuals_working: NDArray[np.floating[Any]]
    residuals_deviance: NDArray[np.floating[Any]]
    residuals_response: NDArray[np.floating[Any]]
    deviance: float
    null_deviance: float | None                    # None when an offset is present
    deviance_history: tuple[float, ...]            # one entry per accepted iteration
    n_iter: int
    n_step_halvings: int
    converged: bool
    family_name: str
    link_name: str
