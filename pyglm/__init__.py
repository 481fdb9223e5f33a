"""
PyGLM: generalized linear models by iteratively reweighted least squares.

A small numerical engine: link functions with strict domain checks, an
exponential-family response, dense QR / Cholesky weighted least squares,
and an IRLS loop with step-halving.

Submodules:
    core: Exceptions, validation, result envelope, linear algebra kernels
    regression: Links, families, response, predictors and fit()
"""

__version__ = "0.1.0"

from pyglm import regression
from pyglm.regression import (
    fit,
    GLMResponse,
    DensePredQR,
    DensePredChol,
    IRLSControl,
    GLMSolution,
)

__all__ = [
    "__version__",
    "regression",
    "fit",
    "GLMResponse",
    "DensePredQR",
    "DensePredChol",
    "IRLSControl",
    "GLMSolution",
]
