"""
End-to-end IRLS tests.

Covers the three reference scenarios (noiseless Gaussian, separable
Bernoulli, Poisson), non-canonical links, offsets and prior weights,
precondition failures that must not mutate anything, the
rank-deficient failure paths of both predictors, and the step-halving
and divergence branches of the loop.
"""

import logging

import numpy as np
import pytest

from pyglm.core.compute.tolerances import IRLS_CONVERGED
from pyglm.core.exceptions import (
    ConvergenceError,
    DimensionError,
    NotPositiveDefiniteError,
    SingularMatrixError,
    ValidationError,
)
from pyglm.regression import (
    DensePredChol,
    DensePredQR,
    FitState,
    GLMResponse,
    GLMSolution,
    IRLSControl,
    fit,
)
from pyglm.regression.solvers import _halve_step, _relative_change


PREDICTORS = [DensePredQR, DensePredChol]


@pytest.fixture
def separable_data():
    x = np.array([-1.0, -1.0, -1.0, 1.0, 1.0, 1.0])
    X = np.column_stack([np.ones(6), x])
    y = np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0])
    return X, y


class OvershootingQR(DensePredQR):
    """Takes three times the weighted least-squares step."""

    def _solve(self, Xw, zw):
        target = super()._solve(Xw, zw)
        return self.beta + 3.0 * (target - self.beta)


class ReversingQR(DensePredQR):
    """Steps away from the weighted least-squares solution."""

    def _solve(self, Xw, zw):
        target = super()._solve(Xw, zw)
        return self.beta - (target - self.beta)


# =====================================================================
# Reference scenarios
# =====================================================================

class TestGaussian:

    @pytest.mark.parametrize("cls", PREDICTORS)
    def test_noiseless_line(self, cls):
        x = np.arange(5.0)
        X = np.column_stack([np.ones(5), x])
        y = 2.0 + 3.0 * x
        result = fit(cls(X), GLMResponse.from_response('gaussian', y))

        assert isinstance(result, GLMSolution)
        assert result.converged
        assert result.n_iter == 2
        np.testing.assert_allclose(result.coefficients, [2.0, 3.0], rtol=1e-10)
        assert result.deviance == pytest.approx(0.0, abs=1e-20)
        assert result.n_step_halvings == 0

    @pytest.mark.parametrize("cls", PREDICTORS)
    def test_matches_ols(self, cls, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(cls(X), GLMResponse.from_response('normal', y))
        expected, *_ = np.linalg.lstsq(X, y, rcond=None)
        np.testing.assert_allclose(result.coefficients, expected, rtol=1e-8)
        rss = float(np.sum((y - X @ expected) ** 2))
        assert result.deviance == pytest.approx(rss)
        assert result.null_deviance == pytest.approx(float(np.sum((y - y.mean()) ** 2)))


class TestBernoulli:

    @pytest.mark.parametrize("cls", PREDICTORS)
    def test_separable_data_converges(self, cls, separable_data):
        X, y = separable_data
        result = fit(cls(X), GLMResponse.from_response('bernoulli', y), max_iter=30)

        assert result.converged
        assert result.n_iter <= 30
        assert result.coefficients[1] > 10.0
        assert abs(result.coefficients[0]) < 1e-3
        assert result.deviance < result.null_deviance
        assert result.null_deviance == pytest.approx(12 * np.log(2))
        assert np.all((result.fitted_values > 0) & (result.fitted_values < 1))

    def test_separable_data_runs_out_of_iterations(self, separable_data):
        X, y = separable_data
        response = GLMResponse.from_response('bernoulli', y)
        with pytest.raises(ConvergenceError) as exc_info:
            fit(DensePredQR(X), response, max_iter=5)
        err = exc_info.value
        assert err.reason == 'max_iterations'
        assert err.reason == FitState.MAX_ITER_EXCEEDED.value
        assert err.iterations == 5
        assert err.threshold == 1e-6
        assert err.deviance == pytest.approx(response.deviance())
        assert err.final_change > 1e-6

    def test_grouped_binomial_matches_bernoulli(self):
        x = np.array([-1.0, 0.0, 1.0, 2.0])
        trials = np.array([10, 12, 8, 15])
        successes = np.array([2, 5, 5, 12])

        Xg = np.column_stack([np.ones(4), x])
        grouped = fit(
            DensePredQR(Xg),
            GLMResponse.from_response('binomial', successes / trials, weights=trials),
            tol=1e-10,
        )

        xb = np.repeat(x, trials)
        yb = np.concatenate([
            np.r_[np.ones(s), np.zeros(t - s)] for s, t in zip(successes, trials)
        ])
        Xb = np.column_stack([np.ones(len(xb)), xb])
        ungrouped = fit(
            DensePredQR(Xb), GLMResponse.from_response('bernoulli', yb), tol=1e-10,
        )

        np.testing.assert_allclose(
            grouped.coefficients, ungrouped.coefficients,
            rtol=IRLS_CONVERGED.rtol, atol=IRLS_CONVERGED.atol,
        )

    @pytest.mark.parametrize("link", ['probit', 'cloglog', 'cauchit'])
    def test_non_canonical_links(self, link, rng):
        n = 300
        x = rng.uniform(-2.0, 2.0, n)
        X = np.column_stack([np.ones(n), x])
        y = (rng.uniform(size=n) < 1 / (1 + np.exp(-(0.3 + 0.8 * x)))).astype(float)
        result = fit(DensePredQR(X), GLMResponse.from_response('bernoulli', y, link=link))
        assert result.converged
        assert result.link_name == link
        assert result.coefficients[1] > 0
        assert result.deviance < result.null_deviance


class TestPoisson:

    @pytest.mark.parametrize("cls", PREDICTORS)
    def test_deviance_history_strictly_decreasing(self, cls, poisson_data):
        X, y, _ = poisson_data
        result = fit(cls(X), GLMResponse.from_response('poisson', y))
        history = np.array(result.deviance_history)
        assert result.converged
        assert len(history) == result.n_iter
        assert np.all(np.diff(history) < 0)
        assert history[-1] == pytest.approx(result.deviance)

    def test_score_equations_hold(self, poisson_data):
        X, y, _ = poisson_data
        result = fit(DensePredQR(X), GLMResponse.from_response('poisson', y), tol=1e-10)
        score = X.T @ (y - result.fitted_values)
        np.testing.assert_allclose(score, 0.0, atol=1e-5)

    def test_predictors_agree(self, poisson_data):
        X, y, _ = poisson_data
        qr = fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        chol = fit(DensePredChol(X), GLMResponse.from_response('poisson', y))
        np.testing.assert_allclose(qr.coefficients, chol.coefficients, rtol=1e-8)
        assert qr.deviance == pytest.approx(chol.deviance)

    def test_recovers_true_coefficients(self, poisson_data):
        X, y, beta_true = poisson_data
        result = fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        np.testing.assert_allclose(result.coefficients, beta_true, atol=0.5)

    def test_offset_exposure(self, rng):
        exposure = rng.uniform(1.0, 5.0, 40)
        y = rng.poisson(2.0 * exposure).astype(float)
        response = GLMResponse.from_response(
            'poisson', y, offset=np.log(exposure),
        )
        result = fit(DensePredQR(np.ones((40, 1))), response, tol=1e-10)
        assert result.coefficients[0] == pytest.approx(np.log(y.sum() / exposure.sum()), rel=1e-6)
        assert result.null_deviance is None
        np.testing.assert_allclose(
            result.linear_predictor, result.coefficients[0] + np.log(exposure),
        )

    def test_residuals(self, poisson_data):
        X, y, _ = poisson_data
        result = fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        mu = result.fitted_values
        np.testing.assert_allclose(result.residuals_response, y - mu)
        np.testing.assert_allclose(result.residuals_working, (y - mu) / mu)
        assert np.sum(result.residuals_deviance ** 2) == pytest.approx(result.deviance)
        np.testing.assert_array_equal(result.residuals, result.residuals_deviance)


class TestGamma:

    def test_log_link_score_equations(self, rng):
        n = 200
        x = rng.uniform(0.0, 1.0, n)
        X = np.column_stack([np.ones(n), x])
        mu = np.exp(0.5 + 1.0 * x)
        y = rng.gamma(shape=5.0, scale=mu / 5.0)
        result = fit(
            DensePredQR(X), GLMResponse.from_response('gamma', y, link='log'), tol=1e-10,
        )
        assert result.family_name == 'gamma'
        assert result.link_name == 'log'
        score = X.T @ ((y - result.fitted_values) / result.fitted_values)
        np.testing.assert_allclose(score, 0.0, atol=1e-5)

    def test_inverse_link_intercept_only(self, rng):
        y = rng.gamma(shape=2.0, scale=1.5, size=60)
        result = fit(
            DensePredChol(np.ones((60, 1))), GLMResponse.from_response('gamma', y), tol=1e-10,
        )
        assert result.link_name == 'inverse'
        assert result.coefficients[0] == pytest.approx(1.0 / y.mean(), rel=1e-6)


# =====================================================================
# Preconditions
# =====================================================================

class TestPreconditions:

    @pytest.mark.parametrize("kwargs", [
        {'max_iter': 0},
        {'max_iter': -3},
        {'max_iter': 2.5},
        {'min_step_factor': 0.0},
        {'min_step_factor': 1.0},
        {'tol': 0.0},
        {'tol': np.nan},
    ])
    def test_invalid_settings_raise_without_mutation(self, kwargs, poisson_data):
        X, y, _ = poisson_data
        pred = DensePredQR(X)
        response = GLMResponse.from_response('poisson', y)
        eta0, mu0 = response.eta.copy(), response.mu.copy()

        with pytest.raises(ValidationError):
            fit(pred, response, **kwargs)

        np.testing.assert_array_equal(pred.beta, 0.0)
        assert pred.qr is None
        np.testing.assert_array_equal(response.eta, eta0)
        np.testing.assert_array_equal(response.mu, mu0)

    def test_invalid_control_instance(self, poisson_data):
        X, y, _ = poisson_data
        with pytest.raises(ValidationError, match="max_iter"):
            fit(
                DensePredQR(X), GLMResponse.from_response('poisson', y),
                control=IRLSControl(max_iter=0),
            )

    def test_length_mismatch_raises_without_mutation(self, poisson_data):
        X, y, _ = poisson_data
        pred = DensePredQR(X[:50])
        response = GLMResponse.from_response('poisson', y)
        eta0 = response.eta.copy()
        with pytest.raises(DimensionError, match="50 rows"):
            fit(pred, response)
        np.testing.assert_array_equal(response.eta, eta0)
        assert pred.qr is None

    def test_wrong_types_raise(self, poisson_data):
        X, y, _ = poisson_data
        response = GLMResponse.from_response('poisson', y)
        with pytest.raises(TypeError, match="LinearPredictor"):
            fit(X, response)
        with pytest.raises(TypeError, match="GLMResponse"):
            fit(DensePredQR(X), y)

    def test_control_replaces_keywords(self, separable_data):
        X, y = separable_data
        with pytest.raises(ConvergenceError) as exc_info:
            fit(
                DensePredQR(X), GLMResponse.from_response('bernoulli', y),
                max_iter=30, control=IRLSControl(max_iter=3),
            )
        assert exc_info.value.iterations == 3

    def test_control_with_non_default_keyword_raises(self, poisson_data):
        X, y, _ = poisson_data
        pred = DensePredQR(X)
        response = GLMResponse.from_response('poisson', y)
        with pytest.raises(ValidationError, match="not both"):
            fit(pred, response, tol=1e-10, control=IRLSControl(max_iter=3))
        assert pred.qr is None

    def test_settings_are_keyword_only(self, poisson_data):
        X, y, _ = poisson_data
        with pytest.raises(TypeError):
            fit(DensePredQR(X), GLMResponse.from_response('poisson', y), 30)


# =====================================================================
# Failure paths
# =====================================================================

class TestRankDeficientDesign:

    @pytest.fixture
    def duplicated(self, rng):
        x = rng.uniform(0.0, 1.0, 50)
        X = np.column_stack([np.ones(50), x, x])
        y = rng.poisson(np.exp(0.5 + x)).astype(float)
        return X, y

    def test_cholesky_fails(self, duplicated):
        X, y = duplicated
        with pytest.raises(NotPositiveDefiniteError):
            fit(DensePredChol(X), GLMResponse.from_response('poisson', y))

    def test_qr_fails(self, duplicated):
        X, y = duplicated
        with pytest.raises(SingularMatrixError) as exc_info:
            fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        assert exc_info.value.expected_rank == 3


class TestBadlyScaledDesign:

    @pytest.mark.parametrize("cls", PREDICTORS)
    def test_gaussian_fit_matches_closed_form(self, cls, rng):
        x = np.arange(1.0, 11.0) * 1e9
        X = np.column_stack([np.ones(10), x])
        y = 2.0 + 3e-9 * x + rng.uniform(-0.1, 0.1, 10)
        xc = x - x.mean()
        slope = np.sum(xc * (y - y.mean())) / np.sum(xc ** 2)
        intercept = y.mean() - slope * x.mean()

        result = fit(cls(X), GLMResponse.from_response('gaussian', y))

        np.testing.assert_allclose(
            result.coefficients, [intercept, slope], rtol=1e-6,
        )


class TestConvergenceFailures:

    def test_single_iteration_is_not_enough(self, poisson_data):
        X, y, _ = poisson_data
        response = GLMResponse.from_response('poisson', y)
        with pytest.raises(ConvergenceError) as exc_info:
            fit(DensePredQR(X), response, max_iter=1)
        err = exc_info.value
        assert err.reason == 'max_iterations'
        assert err.iterations == 1
        assert np.isfinite(err.deviance)
        assert err.deviance == pytest.approx(response.deviance())

    def test_diverging_steps(self, simple_regression_data):
        X, y, _ = simple_regression_data
        response = GLMResponse.from_response('gaussian', y)
        with pytest.raises(ConvergenceError) as exc_info:
            fit(ReversingQR(X), response)
        err = exc_info.value
        assert err.reason == 'diverged'
        assert err.reason == FitState.DIVERGED.value
        assert err.iterations == 2
        assert np.isfinite(err.deviance)

    def test_non_finite_first_deviance_diverges(self):
        class HugeStep(DensePredQR):
            def _solve(self, Xw, zw):
                return np.full(self.p, 1000.0)

        y = np.array([1.0, 2.0, 0.0, 4.0])
        with np.errstate(over='ignore', invalid='ignore'):
            with pytest.raises(ConvergenceError) as exc_info:
                fit(HugeStep(np.ones((4, 1))), GLMResponse.from_response('poisson', y))
        assert exc_info.value.reason == 'diverged'
        assert exc_info.value.iterations == 1


# =====================================================================
# Step-halving
# =====================================================================

class TestStepHalving:

    def test_overshooting_steps_are_halved(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(OvershootingQR(X), GLMResponse.from_response('gaussian', y), max_iter=50)

        assert result.converged
        assert result.n_step_halvings >= 1
        assert result.info['step_halvings'] == result.n_step_halvings
        assert result._result.has_warning("step-halving applied at iteration 2")

        history = np.array(result.deviance_history)
        assert np.all(np.diff(history[:-1]) < 0)

        expected, *_ = np.linalg.lstsq(X, y, rcond=None)
        np.testing.assert_allclose(result.coefficients, expected, rtol=1e-3, atol=1e-3)

    def test_halve_step_success(self):
        pred = DensePredQR(np.ones((2, 1)))
        response = GLMResponse.from_response('gaussian', [0.0, 2.0])
        dev_old = response.update(np.zeros(2))
        beta_old = pred.beta.copy()

        pred.set_beta([3.0])
        assert response.update(pred.linear_predictor()) == pytest.approx(10.0)

        dev, halvings = _halve_step(pred, response, beta_old, dev_old, 0.001, 2)
        assert dev == pytest.approx(2.5)
        assert halvings == 1
        np.testing.assert_allclose(pred.beta, [1.5])
        np.testing.assert_allclose(response.mu, [1.5, 1.5])

    def test_halve_step_exhausted(self):
        pred = DensePredQR(np.ones((2, 1)), beta=[1.0])
        response = GLMResponse.from_response('gaussian', [0.0, 2.0])
        dev_old = response.update(pred.linear_predictor())
        beta_old = pred.beta.copy()

        pred.set_beta([5.0])
        response.update(pred.linear_predictor())

        dev, halvings = _halve_step(pred, response, beta_old, dev_old, 0.001, 2)
        assert dev is None
        # 1/2, 1/4, ..., 1/512 tried; 1/1024 is below the floor
        assert halvings == 9


class TestRelativeChange:

    def test_first_iteration_is_infinite(self):
        assert _relative_change(np.inf, 3.0) == np.inf

    def test_zero_deviance_is_well_defined(self):
        assert _relative_change(1e-30, 0.0) == pytest.approx(1e-29)

    def test_formula(self):
        assert _relative_change(10.0, 9.9) == pytest.approx(0.1 / 10.0)


# =====================================================================
# Solution interface
# =====================================================================

class TestSolution:

    @pytest.fixture
    def result(self, poisson_data):
        X, y, _ = poisson_data
        return fit(DensePredQR(X), GLMResponse.from_response('poisson', y))

    def test_info(self, result):
        assert result.info['method'] == 'irls_qr'
        assert result.info['predictor'] == 'qr'
        assert result.info['state'] == 'converged'
        assert result.info['converged'] is True
        assert result.info['iterations'] == result.n_iter
        assert result.info['final_change'] < result.info['tol']

    def test_backend_name(self, result, poisson_data):
        X, y, _ = poisson_data
        chol = fit(DensePredChol(X), GLMResponse.from_response('poisson', y))
        assert result.backend_name == 'cpu_irls_qr'
        assert chol.backend_name == 'cpu_irls_cholesky'

    def test_timing_populated(self, result):
        assert result.timing is not None
        assert {'total_seconds', 'initialize', 'irls'} <= set(result.timing)

    def test_no_warnings_without_halving(self, result):
        assert result.warnings == ()

    def test_provenance(self, result):
        assert 'pyglm_version' in result.provenance

    def test_coefficients_are_a_snapshot(self, poisson_data):
        X, y, _ = poisson_data
        pred = DensePredQR(X)
        result = fit(pred, GLMResponse.from_response('poisson', y))
        np.testing.assert_array_equal(result.coefficients, pred.beta)
        pred.set_beta(np.zeros(2))
        assert np.any(result.coefficients != 0.0)

    def test_summary(self, result):
        text = result.summary()
        assert "GLM Results" in text
        assert "Family: poisson" in text
        assert "Link: log" in text
        assert "Residual deviance" in text

    def test_summary_rows_align_with_header(self, result):
        lines = result.summary().splitlines()
        header = lines.index(f"{'Index':<8} {'Estimate':>14}")
        rows = lines[header + 2:header + 2 + len(result.coefficients)]
        assert rows[0].startswith("β[0]")
        assert all(len(row) == len(lines[header]) for row in rows)

    def test_summary_without_null_deviance(self, rng):
        y = rng.poisson(3.0, 20).astype(float)
        result = fit(
            DensePredQR(np.ones((20, 1))),
            GLMResponse.from_response('poisson', y, offset=np.full(20, 0.5)),
        )
        assert "Null deviance:     NA" in result.summary()

    def test_repr(self, result):
        assert repr(result).startswith("GLMSolution(family='poisson', link='log'")


class TestLogging:

    def test_iterations_logged_at_debug(self, caplog, poisson_data):
        X, y, _ = poisson_data
        with caplog.at_level(logging.DEBUG, logger='pyglm.regression.solvers'):
            result = fit(DensePredQR(X), GLMResponse.from_response('poisson', y))
        messages = [r.getMessage() for r in caplog.records]
        assert sum("IRLS iteration" in m for m in messages) == result.n_iter
