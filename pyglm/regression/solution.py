"""
GLM solution type.

Contains the user-facing wrapper around the Result[GLMParams] envelope
returned by fit().
"""

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray

from pyglm.core.result import Result
from pyglm.regression._common import GLMParams


@dataclass
class GLMSolution:
    """
    User-facing GLM results.

    Wraps the solver Result and provides convenient accessors for the
    fitted coefficients, residuals and convergence history.
    """
    _result: Result[GLMParams]

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        return self._result.params.fitted_values

    @property
    def linear_predictor(self) -> NDArray[np.floating[Any]]:
        return self._result.params.linear_predictor

    @property
    def residuals_working(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_working

    @property
    def residuals_deviance(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_deviance

    @property
    def residuals_response(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_response

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        """Deviance residuals (the default residual type, as in R)."""
        return self.residuals_deviance

    @property
    def deviance(self) -> float:
        return self._result.params.deviance

    @property
    def null_deviance(self) -> float | None:
        return self._result.params.null_deviance

    @property
    def deviance_history(self) -> tuple[float, ...]:
        return self._result.params.deviance_history

    @property
    def n_iter(self) -> int:
        return self._result.params.n_iter

    @property
    def n_step_halvings(self) -> int:
        return self._result.params.n_step_halvings

    @property
    def converged(self) -> bool:
        return self._result.params.converged

    @property
    def family_name(self) -> str:
        return self._result.params.family_name

    @property
    def link_name(self) -> str:
        return self._result.params.link_name

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def provenance(self) -> dict[str, str]:
        return self._result.provenance

    def summary(self) -> str:
        """Generate R-style summary output."""
        null_dev = self.null_deviance
        null_str = f"{null_dev:.6f}" if null_dev is not None else "NA"
        lines = [
            "GLM Results",
            "=" * 60,
            f"Family: {self.family_name}",
            f"Link: {self.link_name}",
            f"Observations: {len(self.fitted_values)}",
            f"Coefficients: {len(self.coefficients)}",
            "",
            "Coefficients:",
            "-" * 60,
            f"{'Index':<8} {'Estimate':>14}",
            "-" * 60,
        ]

        for i, coef in enumerate(self.coefficients):
            lines.append(f"{f'β[{i}]':<8} {coef:>14.6f}")

        lines.append("-" * 60)
        lines.append(f"Null deviance:     {null_str}")
        lines.append(f"Residual deviance: {self.deviance:.6f}")
        lines.append(
            f"IRLS iterations: {self.n_iter} "
            f"(step halvings: {self.n_step_halvings})"
        )
        lines.append(f"Backend: {self.backend_name}")
        if self.timing:
            lines.append(f"Time: {self.timing.get('total_seconds', 0):.4f}s")
        for w in self.warnings:
            lines.append(f"Warning: {w}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"GLMSolution(family={self.family_name!r}, link={self.link_name!r}, "
            f"n={len(self.fitted_values)}, p={len(self.coefficients)}, "
            f"deviance={self.deviance:.4f}, n_iter={self.n_iter})"
        )
