"""
GLM link functions.

Each Link defines an invertible map between the mean scale μ and the
linear-predictor scale η:

- g(μ) → η              (linkfun)
- g⁻¹(η) → μ            (linkinv)
- dμ/dη = (g⁻¹)'(η)     (mu_eta, for IRLS weights)
- valideta / validmu    (domain checks on each scale)

Every public transform validates its input first and raises DomainError
on any out-of-domain element. Nothing is clamped: an IRLS step that
walks off the domain is a failure the caller must see.

All methods are element-wise over arrays; Python scalars are accepted
and treated as 0-d arrays.

References:
    McCullagh, P., & Nelder, J. A. (1989). Generalized Linear Models (2nd ed.)
    R Core Team. stats::make.link
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.special import expit, ndtr, ndtri

from pyglm.core.compute.tolerances import LLMAXABS
from pyglm.core.exceptions import DomainError


# =====================================================================
# Domain checks
# =====================================================================

def _as_float(x: ArrayLike) -> NDArray:
    return np.asarray(x, dtype=np.float64)


def _require(x: NDArray, ok: NDArray, argument: str, expected: str) -> NDArray:
    """Return x unchanged if every element satisfies ok, else raise."""
    if not np.all(ok):
        n_invalid = int(np.size(ok) - np.count_nonzero(ok))
        bad = x[~ok] if x.ndim else x
        raise DomainError(
            f"{argument}: {n_invalid} value(s) outside domain, require {expected} "
            f"(first offending value: {np.ravel(bad)[0]!r})",
            argument=argument,
            n_invalid=n_invalid,
            expected=expected,
        )
    return x


def chkfinite(x: ArrayLike, argument: str) -> NDArray:
    x = _as_float(x)
    return _require(x, np.isfinite(x), argument, "finite")


def chkpositive(x: ArrayLike, argument: str) -> NDArray:
    x = _as_float(x)
    with np.errstate(invalid='ignore'):
        ok = np.isfinite(x) & (x > 0.0)
    return _require(x, ok, argument, "finite and > 0")


def chk01(x: ArrayLike, argument: str) -> NDArray:
    x = _as_float(x)
    with np.errstate(invalid='ignore'):
        ok = (x > 0.0) & (x < 1.0)
    return _require(x, ok, argument, "0 < value < 1")


# =====================================================================
# Link base class
# =====================================================================

class Link(ABC):
    """
    Abstract link function g(μ) mapping mean to linear predictor.

    Subclasses implement the raw transforms (_linkfun, _linkinv, _mu_eta)
    and the domain checks; the public methods compose the two.
    Links are stateless, so any two instances of the same class are equal.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    # --- domain checks ---

    def valideta(self, eta: ArrayLike) -> NDArray:
        """Return eta as float64 if every element is in the η domain."""
        return chkfinite(eta, 'eta')

    @abstractmethod
    def validmu(self, mu: ArrayLike) -> NDArray:
        """Return mu as float64 if every element is in the μ domain."""
        ...

    # --- validated transforms ---

    def linkfun(self, mu: ArrayLike) -> NDArray:
        """g(μ) → η."""
        return self._linkfun(self.validmu(mu))

    def linkinv(self, eta: ArrayLike) -> NDArray:
        """g⁻¹(η) → μ."""
        return self._linkinv(self.valideta(eta))

    def mu_eta(self, eta: ArrayLike) -> NDArray:
        """dμ/dη = (g⁻¹)'(η)."""
        return self._mu_eta(self.valideta(eta))

    # --- raw transforms ---

    @abstractmethod
    def _linkfun(self, mu: NDArray) -> NDArray:
        ...

    @abstractmethod
    def _linkinv(self, eta: NDArray) -> NDArray:
        ...

    @abstractmethod
    def _mu_eta(self, eta: NDArray) -> NDArray:
        ...

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# =====================================================================
# Concrete links
# =====================================================================

class IdentityLink(Link):
    """Identity link: g(μ) = μ. Canonical for the Gaussian family."""

    @property
    def name(self) -> str:
        return 'identity'

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chkfinite(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return mu.copy()

    def _linkinv(self, eta: NDArray) -> NDArray:
        return eta.copy()

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return np.ones_like(eta)


class LogLink(Link):
    """Log link: g(μ) = log(μ). Canonical for the Poisson family."""

    @property
    def name(self) -> str:
        return 'log'

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chkpositive(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return np.log(mu)

    def _linkinv(self, eta: NDArray) -> NDArray:
        return np.exp(eta)

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return np.exp(eta)


class LogitLink(Link):
    """Logit link: g(μ) = log(μ/(1-μ)). Canonical for Bernoulli/Binomial."""

    @property
    def name(self) -> str:
        return 'logit'

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chk01(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return np.log(mu / (1.0 - mu))

    def _linkinv(self, eta: NDArray) -> NDArray:
        return expit(eta)

    def _mu_eta(self, eta: NDArray) -> NDArray:
        # symmetric in η; exp(-|η|) never overflows
        e = np.exp(-np.abs(eta))
        f = 1.0 + e
        return e / (f * f)


class ProbitLink(Link):
    """Probit link: g(μ) = Φ⁻¹(μ)."""

    @property
    def name(self) -> str:
        return 'probit'

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chk01(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return ndtri(mu)

    def _linkinv(self, eta: NDArray) -> NDArray:
        # Φ(η) = (1 + erf(η/√2)) / 2
        return ndtr(eta)

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return np.exp(-0.5 * eta * eta) / np.sqrt(2.0 * np.pi)


class CloglogLink(Link):
    """Complementary log-log link: g(μ) = log(-log(1-μ))."""

    @property
    def name(self) -> str:
        return 'cloglog'

    def valideta(self, eta: ArrayLike) -> NDArray:
        eta = _as_float(eta)
        with np.errstate(invalid='ignore'):
            ok = np.abs(eta) < LLMAXABS
        return _require(eta, ok, 'eta', f"|eta| < {LLMAXABS:.6g}")

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chk01(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return np.log(-np.log1p(-mu))

    def _linkinv(self, eta: NDArray) -> NDArray:
        return -np.expm1(-np.exp(eta))

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return np.exp(eta) * np.exp(-np.exp(eta))


class CauchitLink(Link):
    """Cauchit link: g(μ) = tan(π(μ - 1/2))."""

    @property
    def name(self) -> str:
        return 'cauchit'

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chk01(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return np.tan(np.pi * (mu - 0.5))

    def _linkinv(self, eta: NDArray) -> NDArray:
        return 0.5 + np.arctan(eta) / np.pi

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return 1.0 / (np.pi * (1.0 + eta * eta))


class InverseLink(Link):
    """Inverse link: g(μ) = 1/μ. Canonical for the Gamma family."""

    @property
    def name(self) -> str:
        return 'inverse'

    def valideta(self, eta: ArrayLike) -> NDArray:
        return chkpositive(eta, 'eta')

    def validmu(self, mu: ArrayLike) -> NDArray:
        return chkpositive(mu, 'mu')

    def _linkfun(self, mu: NDArray) -> NDArray:
        return 1.0 / mu

    def _linkinv(self, eta: NDArray) -> NDArray:
        return 1.0 / eta

    def _mu_eta(self, eta: NDArray) -> NDArray:
        return -1.0 / (eta * eta)


# =====================================================================
# Link name → class mapping
# =====================================================================

_LINK_CLASSES: dict[str, type[Link]] = {
    'identity': IdentityLink,
    'log': LogLink,
    'logit': LogitLink,
    'probit': ProbitLink,
    'cloglog': CloglogLink,
    'cauchit': CauchitLink,
    'inverse': InverseLink,
}


def resolve_link(link: str | Link | None, default: Link | None = None) -> Link:
    """Resolve a link argument to a Link instance.

    Args:
        link: A link name ('logit', 'probit', ...), a Link instance
              (passed through), or None to take `default`.
        default: Link returned when `link` is None.

    Raises:
        ValueError: If the name is unknown, or link and default are both None.
        TypeError: If link is neither str nor Link.
    """
    if link is None:
        if default is None:
            raise ValueError("No link given and no default link available")
        return default
    if isinstance(link, Link):
        return link
    if isinstance(link, str):
        cls = _LINK_CLASSES.get(link.lower())
        if cls is None:
            valid = ', '.join(sorted(_LINK_CLASSES.keys()))
            raise ValueError(f"Unknown link: {link!r}. Valid links: {valid}")
        return cls()
    raise TypeError(f"link must be str or Link, got {type(link).__name__}")
