"""
IRLS fitting loop for GLMs.

This module provides the fit() function (public API). It drives a
LinearPredictor and a GLMResponse in lock step until the deviance
settles:

    z  = working response,  s = √working weights      (from the response)
    β  = argmin || s ⊙ (z - Xβ) ||²                    (predictor.update)
    η  = Xβ + offset,  μ = g⁻¹(η),  dev = D(y, μ)      (response.update)

Convergence uses R's criterion |dev_old - dev| / (|dev| + 0.1) < tol.
A step that fails to lower the deviance is shortened by step-halving,
β = β_old + f·(β_new - β_old) for f = 1/2, 1/4, ..., until the deviance
drops; once f would fall below min_step_factor the fit has diverged.

Both objects are mutated in place. On success they hold the fitted
state; on failure they hold the last state reached.
"""

import logging

import numpy as np

from pyglm.core.compute.timing import Timer
from pyglm.core.exceptions import ConvergenceError, DimensionError, ValidationError
from pyglm.core.result import Result
from pyglm.regression._common import (
    DEVIANCE_OFFSET,
    FitState,
    GLMParams,
    IRLSControl,
)
from pyglm.regression.predictor import LinearPredictor
from pyglm.regression.response import GLMResponse
from pyglm.regression.solution import GLMSolution

logger = logging.getLogger(__name__)


def fit(
    predictor: LinearPredictor,
    response: GLMResponse,
    *,
    max_iter: int = 30,
    min_step_factor: float = 0.001,
    tol: float = 1e-6,
    control: IRLSControl | None = None,
) -> GLMSolution:
    """
    Fit a GLM by iteratively reweighted least squares.

    Args:
        predictor: Linear predictor holding X and the starting β
        response: Response holding y, weights, offset and starting μ/η
        max_iter: Maximum number of IRLS iterations (>= 1)
        min_step_factor: Smallest step fraction tried by step-halving,
            strictly inside (0, 1)
        tol: Convergence threshold on the relative deviance change
        control: IRLSControl instance; when given, the three settings
            above must be left at their defaults

    Returns:
        GLMSolution with coefficients, fitted values, deviance history
        and convergence metadata

    Raises:
        ValidationError: If a control setting is out of range, or if both
            control and a non-default setting are given
        DimensionError: If predictor and response lengths differ
        DomainError: If an IRLS step leaves the link's domain
        NumericalError: If the working weights or the weighted least-squares
            solve break down
        ConvergenceError: If the loop diverges or runs out of iterations

    Example:
        >>> import numpy as np
        >>> from pyglm import DensePredQR, GLMResponse, fit
        >>>
        >>> x = np.linspace(0, 1, 50)
        >>> X = np.column_stack([np.ones(50), x])
        >>> y = np.random.default_rng(0).poisson(np.exp(1 + 2 * x))
        >>>
        >>> result = fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        >>> print(result.coefficients)
    """
    # === Preconditions ===
    # Checked before anything is mutated
    settings = IRLSControl(
        max_iter=max_iter, min_step_factor=min_step_factor, tol=tol,
    )
    if control is None:
        control = settings
    elif settings != IRLSControl():
        raise ValidationError(
            "control: pass either an IRLSControl or the keyword settings "
            "max_iter, min_step_factor and tol, not both"
        )
    control.validate()

    if not isinstance(predictor, LinearPredictor):
        raise TypeError(
            f"predictor must be a LinearPredictor, got {type(predictor).__name__}"
        )
    if not isinstance(response, GLMResponse):
        raise TypeError(
            f"response must be a GLMResponse, got {type(response).__name__}"
        )
    if predictor.n != response.n:
        raise DimensionError(
            f"dimension mismatch: predictor has {predictor.n} rows, "
            f"response has {response.n} observations"
        )

    timer = Timer()
    timer.start()

    warnings_list: list[str] = []
    history: list[float] = []

    with timer.section('initialize'):
        null_deviance = _null_deviance(response)

    state = FitState.RUNNING
    dev_old = np.inf
    change = np.inf
    n_halvings = 0
    iteration = 0

    with timer.section('irls'):
        while state is FitState.RUNNING:
            if iteration >= control.max_iter:
                state = FitState.MAX_ITER_EXCEEDED
                break
            iteration += 1

            beta_old = predictor.beta.copy()
            predictor.update(
                response.working_response(), response.sqrt_working_weights(),
            )
            dev = response.update(predictor.linear_predictor())
            logger.debug(
                "IRLS iteration %d: deviance %.10g -> %.10g",
                iteration, dev_old, dev,
            )

            if not np.isfinite(dev) and not np.isfinite(dev_old):
                # no previous finite deviance to halve back towards
                state = FitState.DIVERGED
                break

            change = _relative_change(dev_old, dev)
            if change < control.tol:
                history.append(dev)
                state = FitState.CONVERGED
                break

            if not (dev < dev_old):
                dev, halvings = _halve_step(
                    predictor, response, beta_old, dev_old,
                    control.min_step_factor, iteration,
                )
                if dev is None:
                    state = FitState.DIVERGED
                    break
                n_halvings += halvings
                warnings_list.append(
                    f"step-halving applied at iteration {iteration} "
                    f"({halvings} halving(s))"
                )
                change = _relative_change(dev_old, dev)

            history.append(dev)
            dev_old = dev

    timer.stop()

    if state is FitState.DIVERGED:
        raise ConvergenceError(
            f"IRLS diverged at iteration {iteration}: deviance did not decrease "
            f"below {dev_old:.6g} with step factor down to {control.min_step_factor}",
            iterations=iteration,
            final_change=float(change),
            reason=FitState.DIVERGED.value,
            threshold=control.tol,
            deviance=float(dev_old),
        )
    if state is FitState.MAX_ITER_EXCEEDED:
        raise ConvergenceError(
            f"IRLS did not converge in {control.max_iter} iterations "
            f"(deviance={dev_old:.6g}, relative change={change:.3g})",
            iterations=iteration,
            final_change=float(change),
            reason=FitState.MAX_ITER_EXCEEDED.value,
            threshold=control.tol,
            deviance=float(dev_old),
        )

    params = GLMParams(
        coefficients=predictor.beta.copy(),
        fitted_values=response.mu.copy(),
        linear_predictor=response.eta.copy(),
        residuals_working=response.working_residuals(),
        residuals_deviance=response.deviance_residuals(),
        residuals_response=response.y - response.mu,
        deviance=float(dev),
        null_deviance=null_deviance,
        deviance_history=tuple(history),
        n_iter=iteration,
        n_step_halvings=n_halvings,
        converged=True,
        family_name=response.family.name,
        link_name=response.link.name,
    )

    result = Result(
        params=params,
        info={
            'method': f'irls_{predictor.kind}',
            'predictor': predictor.kind,
            'state': state.value,
            'converged': True,
            'iterations': iteration,
            'step_halvings': n_halvings,
            'final_change': float(change),
            'tol': control.tol,
        },
        timing=timer.result(),
        backend_name=f'cpu_irls_{predictor.kind}',
        warnings=tuple(warnings_list),
    )
    return GLMSolution(_result=result)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _relative_change(dev_old: float, dev: float) -> float:
    """R's glm.fit criterion: |dev_old - dev| / (|dev| + 0.1)."""
    if not np.isfinite(dev_old):
        return np.inf
    return abs(dev_old - dev) / (abs(dev) + DEVIANCE_OFFSET)


def _halve_step(
    predictor: LinearPredictor,
    response: GLMResponse,
    beta_old: np.ndarray,
    dev_old: float,
    min_step_factor: float,
    iteration: int,
) -> tuple[float | None, int]:
    """
    Shorten the last coefficient step until the deviance drops below dev_old.

    Returns:
        (deviance, number of halvings) on success; (None, number of
        halvings) once the step factor falls below min_step_factor. The
        predictor and response are left at the last step tried.
    """
    beta_new = predictor.beta.copy()
    step = beta_new - beta_old
    factor = 1.0
    halvings = 0

    while True:
        factor /= 2.0
        if factor < min_step_factor:
            return None, halvings
        halvings += 1

        predictor.set_beta(beta_old + factor * step)
        dev = response.update(predictor.linear_predictor())
        logger.debug(
            "IRLS iteration %d: step factor %g gives deviance %.10g (target < %.10g)",
            iteration, factor, dev, dev_old,
        )
        if np.isfinite(dev) and dev < dev_old:
            return dev, halvings


def _null_deviance(response: GLMResponse) -> float | None:
    """
    Deviance of the intercept-only model, μ = weighted mean of y.

    Returns None when an offset is present (the intercept-only fit then
    needs its own IRLS run) or when all prior weights are zero.
    """
    if np.any(response.offset != 0):
        return None
    wsum = float(np.sum(response.weights))
    if wsum <= 0:
        return None
    wtdmu = np.full(response.n, np.sum(response.weights * response.y) / wsum)
    return response.family.deviance(response.y, wtdmu, response.weights)
