"""
Floating-point bounds and tolerance tiers.

LLMAXABS is derived once from float64 limits and treated as read-only
configuration. It bounds |η| for the complementary log-log link: beyond
it, exp(-exp(η)) underflows to zero or exp(η) loses all precision.

The tolerance tiers are used by the test suite when comparing against
reference solutions.
"""

from dataclasses import dataclass

import numpy as np


# Smallest positive normal float64 (C's DBL_MIN).
FLOAT64_TINY: float = float(np.finfo(np.float64).tiny)

# log(-log(tiny)) ≈ 6.56
LLMAXABS: float = float(np.log(-np.log(FLOAT64_TINY)))

# Relative Cholesky pivot below which X'WX is treated as rank-deficient.
# A duplicated column leaves a pivot of a few ulps of its diagonal entry.
CHOLESKY_PIVOT_TOL: float = 1e3 * float(np.finfo(np.float64).eps)


@dataclass(frozen=True)
class ToleranceTier:
    """Tolerance specification for numerical comparison."""
    rtol: float
    atol: float
    name: str
    description: str


# Well-conditioned problems: agree with a reference solver to near machine precision
CPU_FP64 = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='cpu_fp64',
    description='CPU double precision, well-conditioned',
)

# Iterative results: bounded by the IRLS convergence tolerance, not by eps
IRLS_CONVERGED = ToleranceTier(
    rtol=1e-5,
    atol=1e-6,
    name='irls_converged',
    description='Quantities produced by a converged IRLS fit',
)

# Central finite differences with h ~ 1e-6
FINITE_DIFFERENCE = ToleranceTier(
    rtol=1e-5,
    atol=1e-8,
    name='finite_difference',
    description='Analytic derivative vs. central finite difference',
)
