"""
Generalized linear models fitted by IRLS.

Public API:
    fit(predictor, response, ...) -> GLMSolution

A fit is assembled from three pieces:
    - a Family (Gaussian, Bernoulli, Binomial, Poisson, Gamma) or any
      object satisfying the ExponentialFamily protocol
    - a Link (canonical by default)
    - a LinearPredictor (DensePredQR recommended, DensePredChol for speed)

Example:
    >>> from pyglm.regression import DensePredQR, GLMResponse, fit
    >>> response = GLMResponse.from_response('bernoulli', y)
    >>> result = fit(DensePredQR(X), response)
    >>> print(result.coefficients)
    >>> print(result.summary())
"""

from pyglm.regression.links import (
    Link,
    IdentityLink,
    LogLink,
    LogitLink,
    ProbitLink,
    CloglogLink,
    CauchitLink,
    InverseLink,
    resolve_link,
)
from pyglm.regression.families import (
    Family,
    Gaussian,
    Bernoulli,
    Binomial,
    Poisson,
    Gamma,
    resolve_family,
    canonical_link,
)
from pyglm.regression.response import GLMResponse
from pyglm.regression.predictor import LinearPredictor, DensePredQR, DensePredChol
from pyglm.regression._common import FitState, GLMParams, IRLSControl
from pyglm.regression.solution import GLMSolution
from pyglm.regression.solvers import fit

__all__ = [
    "fit",
    # Links
    "Link",
    "IdentityLink",
    "LogLink",
    "LogitLink",
    "ProbitLink",
    "CloglogLink",
    "CauchitLink",
    "InverseLink",
    "resolve_link",
    # Families
    "Family",
    "Gaussian",
    "Bernoulli",
    "Binomial",
    "Poisson",
    "Gamma",
    "resolve_family",
    "canonical_link",
    # Fit components
    "GLMResponse",
    "LinearPredictor",
    "DensePredQR",
    "DensePredChol",
    # Control and results
    "IRLSControl",
    "FitState",
    "GLMParams",
    "GLMSolution",
]
