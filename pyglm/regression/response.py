"""
GLM response.

GLMResponse holds the per-observation state of a fit (y, prior weights,
offset, and the current η and μ) together with the family/link pair,
and derives the IRLS working quantities from it:

    working residuals   r = (y - μ) / (dμ/dη)
    working response    z = (η - offset) + r
    √working weights    s = (dμ/dη) * sqrt(wt / V(μ))

update() is the only mutator. It takes the new linear predictor
(without offset), recomputes η and μ, and returns the new deviance.
"""

from __future__ import annotations

from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyglm.core.exceptions import DomainError, NumericalError, ValidationError
from pyglm.core.protocols import ExponentialFamily
from pyglm.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_finite,
    check_length,
)
from pyglm.regression.families import resolve_family
from pyglm.regression.links import Link, resolve_link


def _vector(x: ArrayLike, name: str) -> NDArray[np.floating[Any]]:
    arr = check_array(x, name)
    check_1d(arr, name)
    check_finite(arr, name)
    return arr


def _check_support(family: ExponentialFamily, y: NDArray) -> None:
    if not family.insupport(y):
        n_invalid = sum(not family.insupport(y[i:i + 1]) for i in range(y.shape[0]))
        raise DomainError(
            f"y: {n_invalid} element(s) not in the support of the "
            f"{family.name} distribution",
            argument='y',
            n_invalid=n_invalid,
            expected=f"support of {family.name}",
        )


class GLMResponse:
    """
    Response side of a GLM fit.

    Owns copies of all of its vectors; nothing passed in is aliased.

    Attributes:
        family: Exponential-family distribution (any ExponentialFamily)
        link: Link pairing μ with η
        eta: Linear predictor, offset included (n,)
        mu: Mean response (n,)
        offset: Added to the linear predictor before inverse-linking (n,)
        weights: Prior case weights (n,)
        y: Observed response (n,)
    """

    def __init__(
        self,
        family: ExponentialFamily,
        link: Link,
        eta: ArrayLike,
        mu: ArrayLike,
        offset: ArrayLike,
        weights: ArrayLike,
        y: ArrayLike,
    ):
        eta = _vector(eta, 'eta')
        mu = _vector(mu, 'mu')
        offset = _vector(offset, 'offset')
        weights = _vector(weights, 'weights')
        y = _vector(y, 'y')

        check_consistent_length(
            eta, mu, offset, weights, y,
            names=('eta', 'mu', 'offset', 'weights', 'y'),
        )
        if np.any(weights < 0):
            raise ValidationError(
                f"weights: prior weights must be non-negative "
                f"({int(np.sum(weights < 0))} negative)"
            )
        _check_support(family, y)

        self.family = family
        self.link = link
        self.eta = eta
        self.mu = mu
        self.offset = offset
        self.weights = weights
        self.y = y

    @classmethod
    def from_response(
        cls,
        family: str | ExponentialFamily,
        y: ArrayLike,
        link: str | Link | None = None,
        weights: ArrayLike | None = None,
        offset: ArrayLike | None = None,
    ) -> GLMResponse:
        """
        Build a response with IRLS starting values.

        μ comes from the family's mustart heuristic and η = linkfun(μ).

        Args:
            family: Family instance or name ('poisson', 'bernoulli', ...)
            y: Observed response
            link: Link instance or name; None selects the canonical link
            weights: Prior weights, default all one
            offset: Offset, default all zero
        """
        if isinstance(family, str):
            family = resolve_family(family)
        link = resolve_link(link, family.canonical_link())

        y = _vector(y, 'y')
        _check_support(family, y)

        n = y.shape[0]
        weights = np.ones(n) if weights is None else _vector(weights, 'weights')
        offset = np.zeros(n) if offset is None else _vector(offset, 'offset')
        check_consistent_length(y, weights, offset, names=('y', 'weights', 'offset'))

        mu = family.mustart(y, weights)
        eta = link.linkfun(mu)
        return cls(family, link, eta, mu, offset, weights, y)

    @property
    def n(self) -> int:
        """Number of observations."""
        return self.y.shape[0]

    # === Fit statistics ===

    def deviance(self) -> float:
        return self.family.deviance(self.y, self.mu, self.weights)

    def deviance_residuals(self) -> NDArray[np.floating[Any]]:
        return self.family.deviance_residuals(self.y, self.mu, self.weights)

    def drsum(self) -> float:
        """Sum of squared deviance residuals; equals deviance()."""
        return float(np.sum(self.deviance_residuals() ** 2))

    # === IRLS working quantities ===

    def mu_eta(self) -> NDArray[np.floating[Any]]:
        return self.link.mu_eta(self.eta)

    def variance(self) -> NDArray[np.floating[Any]]:
        return self.family.variance(self.mu)

    def working_residuals(self) -> NDArray[np.floating[Any]]:
        """(y - μ) / (dμ/dη). Raises NumericalError on a zero derivative."""
        d = self.mu_eta()
        if np.any(d == 0):
            raise NumericalError(
                f"mu_eta is exactly zero for {int(np.sum(d == 0))} observation(s); "
                f"working residuals are undefined"
            )
        return (self.y - self.mu) / d

    def working_response(self) -> NDArray[np.floating[Any]]:
        return (self.eta - self.offset) + self.working_residuals()

    def sqrt_working_weights(self) -> NDArray[np.floating[Any]]:
        """(dμ/dη) * sqrt(wt / V(μ)). Raises NumericalError if V(μ) <= 0."""
        v = self.variance()
        bad = ~(v > 0)
        if np.any(bad):
            raise NumericalError(
                f"variance is zero, negative or NaN for {int(np.sum(bad))} "
                f"observation(s); working weights are undefined"
            )
        return self.mu_eta() * np.sqrt(self.weights / v)

    # === Mutation ===

    def update(self, linear_predictor: ArrayLike) -> float:
        """
        Move the response to a new linear predictor.

        Sets η = linear_predictor + offset and μ = linkinv(η). The whole
        new η is validated before anything is written, so a failed
        update leaves the response unchanged.

        Returns:
            The deviance at the new μ.

        Raises:
            DimensionError: If the length differs from n
            DomainError: If any new η is outside the link's domain
        """
        lp = check_array(linear_predictor, 'linear_predictor')
        check_1d(lp, 'linear_predictor')
        check_length(lp, self.n, 'linear_predictor')

        eta = self.link.valideta(lp + self.offset)
        mu = self.link.linkinv(eta)

        self.eta[:] = eta
        self.mu[:] = mu
        return self.deviance()

    def __repr__(self) -> str:
        return (
            f"GLMResponse(family={self.family.name!r}, link={self.link.name!r}, "
            f"n={self.n})"
        )
