"""
GLM family (exponential-family distribution) specifications.

Each Family defines:
- A variance function V(μ) relating variance to the mean
- A unit deviance d(y, μ), from which total deviance and deviance
  residuals are derived
- A support predicate on observed responses
- A starting-mean heuristic for IRLS
- A canonical link function

Families never own a link: the response pairs a family with any Link,
defaulting to the family's canonical one. Families satisfy the
ExponentialFamily protocol in pyglm.core.protocols, which is all the
IRLS core relies on.

Unlike a model-fitting front end, nothing here clips μ into range. The
links guarantee μ stays in its domain, and an out-of-range μ should
surface as a non-finite deviance rather than be papered over.

References:
    McCullagh, P., & Nelder, J. A. (1989). Generalized Linear Models (2nd ed.)
    R Core Team. stats::family
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray
from scipy.special import xlogy

from pyglm.core.protocols import ExponentialFamily
from pyglm.regression.links import (
    Link, IdentityLink, LogitLink, LogLink, InverseLink,
)


# =====================================================================
# Family base class
# =====================================================================

class Family(ABC):
    """
    GLM family specification.

    Subclasses supply the unit deviance; total deviance and deviance
    residuals are derived here so that the squared residuals always
    sum to the deviance.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def canonical_link(self) -> Link:
        ...

    @abstractmethod
    def variance(self, mu: NDArray) -> NDArray:
        """Variance function V(μ)."""
        ...

    @abstractmethod
    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        """Per-observation deviance d(y_i, μ_i), before prior weights."""
        ...

    @abstractmethod
    def insupport(self, y: NDArray) -> bool:
        """Whether every element of y lies in the distribution's support."""
        ...

    @abstractmethod
    def mustart(self, y: NDArray, wt: NDArray) -> NDArray:
        """Initialize μ from y for IRLS starting values.

        Must return values in the μ domain of the canonical link.
        """
        ...

    def deviance(self, y: NDArray, mu: NDArray, wt: NDArray) -> float:
        """Total deviance: Σ wt_i * d(y_i, μ_i).

        The deviance is twice the difference between the saturated
        log-likelihood and the model log-likelihood.
        """
        return float(np.sum(wt * self.unit_deviance(y, mu)))

    def deviance_residuals(self, y: NDArray, mu: NDArray, wt: NDArray) -> NDArray:
        """Signed deviance residuals: sign(y_i - μ_i) * sqrt(wt_i * d_i)."""
        d = wt * self.unit_deviance(y, mu)
        # roundoff can leave d a few ulps below zero at a perfect fit
        return np.sign(y - mu) * np.sqrt(np.maximum(d, 0.0))

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# =====================================================================
# Concrete families
# =====================================================================

class Gaussian(Family):
    """Gaussian (Normal) family. Canonical link: identity.

    V(μ) = 1
    d(y, μ) = (y - μ)²  (deviance = weighted RSS)
    """

    @property
    def name(self) -> str:
        return 'gaussian'

    def canonical_link(self) -> Link:
        return IdentityLink()

    def variance(self, mu: NDArray) -> NDArray:
        return np.ones_like(mu)

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return (y - mu) ** 2

    def insupport(self, y: NDArray) -> bool:
        return bool(np.all(np.isfinite(y)))

    def mustart(self, y: NDArray, wt: NDArray) -> NDArray:
        return y.copy()


class Bernoulli(Family):
    """Bernoulli family (binary 0/1 response). Canonical link: logit.

    V(μ) = μ(1-μ)
    d(y, μ) = 2 * [y log(y/μ) + (1-y) log((1-y)/(1-μ))], with 0 log 0 = 0
    """

    @property
    def name(self) -> str:
        return 'bernoulli'

    def canonical_link(self) -> Link:
        return LogitLink()

    def variance(self, mu: NDArray) -> NDArray:
        return mu * (1.0 - mu)

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        term1 = xlogy(y, y) - xlogy(y, mu)
        term2 = xlogy(1.0 - y, 1.0 - y) - xlogy(1.0 - y, 1.0 - mu)
        return 2.0 * (term1 + term2)

    def insupport(self, y: NDArray) -> bool:
        return bool(np.all((y == 0.0) | (y == 1.0)))

    def mustart(self, y: NDArray, wt: NDArray) -> NDArray:
        # R: (weights * y + 0.5) / (weights + 1)
        return (wt * y + 0.5) / (wt + 1.0)


class Binomial(Bernoulli):
    """Binomial family on proportions. Canonical link: logit.

    y holds the proportion of successes and the prior weights hold the
    number of trials, as in R's binomial() with a proportion response.
    """

    @property
    def name(self) -> str:
        return 'binomial'

    def insupport(self, y: NDArray) -> bool:
        return bool(np.all(np.isfinite(y) & (y >= 0.0) & (y <= 1.0)))


class Poisson(Family):
    """Poisson family. Canonical link: log.

    V(μ) = μ
    d(y, μ) = 2 * [y log(y/μ) - (y - μ)], with 0 log 0 = 0
    """

    @property
    def name(self) -> str:
        return 'poisson'

    def canonical_link(self) -> Link:
        return LogLink()

    def variance(self, mu: NDArray) -> NDArray:
        return mu.copy()

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return 2.0 * (xlogy(y, y) - xlogy(y, mu) - (y - mu))

    def insupport(self, y: NDArray) -> bool:
        finite = np.isfinite(y)
        if not np.all(finite):
            return False
        return bool(np.all((y >= 0.0) & (y == np.floor(y))))

    def mustart(self, y: NDArray, wt: NDArray) -> NDArray:
        # R: y + 0.1 (keeps log(μ) finite for zero counts)
        return y + 0.1


class Gamma(Family):
    """Gamma family. Canonical link: inverse.

    V(μ) = μ²
    d(y, μ) = 2 * [-log(y/μ) + (y - μ)/μ]
    """

    @property
    def name(self) -> str:
        return 'gamma'

    def canonical_link(self) -> Link:
        return InverseLink()

    def variance(self, mu: NDArray) -> NDArray:
        return mu * mu

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return 2.0 * (-np.log(y / mu) + (y - mu) / mu)

    def insupport(self, y: NDArray) -> bool:
        return bool(np.all(np.isfinite(y) & (y > 0.0)))

    def mustart(self, y: NDArray, wt: NDArray) -> NDArray:
        return y.copy()


# =====================================================================
# Family name → class mapping + resolvers
# =====================================================================

_FAMILY_CLASSES: dict[str, type[Family]] = {
    'gaussian': Gaussian,
    'normal': Gaussian,
    'bernoulli': Bernoulli,
    'binomial': Binomial,
    'poisson': Poisson,
    'gamma': Gamma,
}


def resolve_family(family: str | Family) -> Family:
    """
    Resolve a family argument to a Family instance.

    Args:
        family: Either a string name ('gaussian', 'bernoulli', 'binomial',
                'poisson', 'gamma') or a Family instance (passed through).

    Returns:
        Family instance.

    Raises:
        ValueError: If string name is not recognized.
        TypeError: If argument is neither string nor Family.
    """
    if isinstance(family, Family):
        return family
    if isinstance(family, str):
        cls = _FAMILY_CLASSES.get(family.lower())
        if cls is None:
            valid = ', '.join(
                sorted(k for k in _FAMILY_CLASSES.keys() if k != 'normal')
            )
            raise ValueError(
                f"Unknown family: {family!r}. Valid families: {valid}"
            )
        return cls()
    raise TypeError(f"family must be str or Family, got {type(family).__name__}")


def canonical_link(family: str | ExponentialFamily) -> Link:
    """Canonical link of a family (or family name)."""
    if isinstance(family, str):
        family = resolve_family(family)
    return family.canonical_link()
