"""
Unit Tests -- GEV maximum-likelihood fitting
============================================
Parameter recovery on simulated block maxima, agreement with scipy's MLE, standard
errors, support feasibility of the estimate, and the failure modes.
"""

from types import SimpleNamespace

import numpy as np
import pytest
from scipy.stats import genextreme

import market_extremes.analysis.gev_fit as gev_fit_module
from market_extremes.analysis.gev import GEVParameters, in_support, log_density, to_scipy
from market_extremes.analysis.gev_fit import estimate_parameters, fit_gev, negative_log_likelihood
from market_extremes.config import FitConfig
from market_extremes.errors import (
    ConvergenceError,
    InsufficientDataError,
    InvalidArgumentError,
    InvalidParameterError,
    NonIdentifiableError,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
def _simulate(params, size, seed):
    return genextreme.rvs(size=size, random_state=np.random.default_rng(seed), **to_scipy(params))


@pytest.fixture
def frechet_maxima():
    """Block maxima of daily losses: xi=0.3, mu=2%, sigma=1%."""
    return _simulate(GEVParameters(0.3, 0.02, 0.01), size=300, seed=2024)


@pytest.fixture
def frechet_fit(frechet_maxima):
    return fit_gev(frechet_maxima)


# ---------------------------------------------------------------------------
# Estimates
# ---------------------------------------------------------------------------
class TestFitEstimates:
    """The MLE recovers the generating parameters."""

    def test_heavy_tail_scenario(self, frechet_fit):
        """xi=0.3 maxima converge with xi_hat in [0.15, 0.45]."""
        assert 0.15 <= frechet_fit.params.xi <= 0.45
        assert frechet_fit.params.mu == pytest.approx(0.02, abs=0.003)
        assert frechet_fit.params.sigma == pytest.approx(0.01, abs=0.003)

    @pytest.mark.parametrize(
        "true, seed",
        [
            (GEVParameters(0.1, 0.0, 1.0), 1),
            (GEVParameters(0.0, 5.0, 2.0), 2),
            (GEVParameters(-0.2, 5.0, 2.0), 3),
        ],
    )
    def test_consistency_large_sample(self, true, seed):
        """Each estimate lies within four standard errors of the truth."""
        sample = _simulate(true, size=2000, seed=seed)
        fit = fit_gev(sample)
        estimates = fit.params.as_array()
        ses = np.array([fit.standard_errors.xi, fit.standard_errors.mu, fit.standard_errors.sigma])
        assert np.all(np.abs(estimates - true.as_array()) <= 4 * ses)

    def test_sample_inside_support(self, frechet_maxima, frechet_fit):
        assert np.all(in_support(frechet_maxima, frechet_fit.params))

    def test_log_likelihood_matches_density(self, frechet_maxima, frechet_fit):
        expected = float(np.sum(log_density(frechet_maxima, frechet_fit.params)))
        assert frechet_fit.log_likelihood == pytest.approx(expected, rel=1e-9)
        assert frechet_fit.n_obs == 300

    def test_at_least_as_good_as_scipy(self, frechet_maxima, frechet_fit):
        c, loc, scale = genextreme.fit(frechet_maxima)
        scipy_ll = float(np.sum(genextreme.logpdf(frechet_maxima, c, loc=loc, scale=scale)))
        assert frechet_fit.log_likelihood >= scipy_ll - 1e-4

    def test_deterministic(self, frechet_maxima, frechet_fit):
        again = fit_gev(frechet_maxima)
        assert again.params == frechet_fit.params
        assert again.log_likelihood == frechet_fit.log_likelihood

    def test_estimate_parameters_matches_fit(self, frechet_maxima, frechet_fit):
        params, log_lik, n_iter = estimate_parameters(frechet_maxima)
        assert params == frechet_fit.params
        assert log_lik == pytest.approx(frechet_fit.log_likelihood)
        assert n_iter > 0

    def test_explicit_start(self, frechet_maxima, frechet_fit):
        fit = fit_gev(frechet_maxima, start=GEVParameters(0.2, 0.02, 0.012))
        assert fit.params.xi == pytest.approx(frechet_fit.params.xi, abs=1e-3)

    def test_nan_blocks_are_dropped(self, frechet_maxima, frechet_fit):
        padded = np.concatenate([frechet_maxima, [np.nan]])
        assert fit_gev(padded).params == frechet_fit.params


# ---------------------------------------------------------------------------
# Standard errors
# ---------------------------------------------------------------------------
class TestStandardErrors:
    """Asymptotic standard errors from the observed information."""

    def test_positive_and_finite(self, frechet_fit):
        ses = frechet_fit.standard_errors.to_dict()
        assert all(np.isfinite(v) and v > 0 for v in ses.values())

    def test_diagonal_of_covariance(self, frechet_fit):
        np.testing.assert_allclose(
            np.sqrt(np.diag(frechet_fit.covariance)),
            [frechet_fit.standard_errors.xi, frechet_fit.standard_errors.mu, frechet_fit.standard_errors.sigma],
        )

    def test_covariance_read_only(self, frechet_fit):
        with pytest.raises(ValueError):
            frechet_fit.covariance[0, 0] = 1.0

    def test_shape_error_plausible(self, frechet_fit):
        """Shape SE for 300 maxima should be a few hundredths."""
        assert 0.02 < frechet_fit.standard_errors.xi < 0.2

    def test_very_heavy_tail_keeps_standard_errors(self):
        """xi >= 0.5 has no finite GEV variance, but the likelihood is regular."""
        fit = fit_gev(_simulate(GEVParameters(0.6, 0.02, 0.01), size=500, seed=7))
        assert fit.params.xi > 0.4
        assert all(np.isfinite(v) and v > 0 for v in fit.standard_errors.to_dict().values())

    def test_to_frame(self, frechet_fit):
        frame = frechet_fit.to_frame()
        assert list(frame.index) == ["xi", "mu", "sigma"]
        assert frame.loc["xi", "estimate"] == frechet_fit.params.xi


# ---------------------------------------------------------------------------
# Failure modes
# ---------------------------------------------------------------------------
class TestFitErrors:
    """Too little data, bad starts, non-convergence and singular information."""

    @pytest.mark.parametrize("sample", [[], [0.05]])
    def test_insufficient_data(self, sample):
        with pytest.raises(InsufficientDataError):
            fit_gev(sample)

    def test_constant_sample(self):
        with pytest.raises(InsufficientDataError):
            fit_gev([0.03, 0.03, 0.03, 0.03])

    def test_infinite_value(self):
        with pytest.raises(InvalidArgumentError):
            fit_gev([0.01, 0.02, np.inf])

    def test_iteration_budget(self, frechet_maxima):
        with pytest.raises(ConvergenceError):
            fit_gev(frechet_maxima, config=FitConfig(maxiter=3))

    def test_infeasible_start(self, frechet_maxima):
        with pytest.raises(InvalidArgumentError):
            fit_gev(frechet_maxima, start=GEVParameters(0.5, 10.0, 0.01))

    def test_invalid_start_scale(self, frechet_maxima):
        with pytest.raises(InvalidParameterError):
            fit_gev(frechet_maxima, start=GEVParameters(0.1, 0.02, -0.01))

    def test_singular_hessian(self, frechet_maxima, monkeypatch):
        monkeypatch.setattr(gev_fit_module.nd, "Hessian", lambda f: (lambda theta: np.zeros((3, 3))))
        with pytest.raises(NonIdentifiableError):
            fit_gev(frechet_maxima)

    def test_indefinite_hessian(self, frechet_maxima, monkeypatch):
        monkeypatch.setattr(
            gev_fit_module.nd, "Hessian", lambda f: (lambda theta: np.diag([1.0, 1.0, -1.0]))
        )
        with pytest.raises(NonIdentifiableError):
            fit_gev(frechet_maxima)

    def test_ill_conditioned_hessian(self, frechet_maxima, monkeypatch):
        monkeypatch.setattr(
            gev_fit_module.nd, "Hessian", lambda f: (lambda theta: np.diag([1.0, 1.0, 1e-14]))
        )
        with pytest.raises(NonIdentifiableError):
            fit_gev(frechet_maxima)

    def test_uniform_sample_has_bounded_tail(self):
        """Uniform maxima land in the Weibull domain, still inside the regular regime."""
        sample = np.random.default_rng(5).uniform(0.0, 1.0, size=200)
        fit = fit_gev(sample)
        assert -0.5 < fit.params.xi < 0.0

    def test_irregular_shape_is_rejected(self, frechet_maxima, monkeypatch):
        """An optimum with xi <= -0.5 has no asymptotic standard errors."""
        stopped = SimpleNamespace(x=np.array([-0.7, 0.0, 1.0]), fun=10.0, nit=42, success=True, message="")
        monkeypatch.setattr(gev_fit_module, "minimize", lambda *args, **kwargs: stopped)
        params, _, _ = estimate_parameters(frechet_maxima)
        assert params.xi == pytest.approx(-0.7)
        with pytest.raises(NonIdentifiableError, match="regular"):
            fit_gev(frechet_maxima)

    def test_non_identifiable_is_not_convergence_error(self):
        assert not issubclass(NonIdentifiableError, ConvergenceError)


class TestNegativeLogLikelihood:
    """Infeasible parameters get the finite penalty."""

    def test_penalty_for_non_positive_scale(self):
        assert negative_log_likelihood((0.1, 0.0, 0.0), np.array([0.1, 0.2]), penalty=123.0) == 123.0

    def test_penalty_outside_support(self):
        # xi=0.5, mu=0, sigma=1 has lower endpoint -2.
        assert negative_log_likelihood((0.5, 0.0, 1.0), np.array([-3.0, 0.0]), penalty=7.0) == 7.0

    def test_matches_log_density(self):
        x = np.array([0.1, 0.5, 1.5])
        params = GEVParameters(0.2, 0.3, 0.7)
        expected = -float(np.sum(log_density(x, params)))
        assert negative_log_likelihood(params.as_array(), x) == pytest.approx(expected)
