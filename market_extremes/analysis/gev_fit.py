"""Generalised Extreme Value (GEV) maximum-likelihood fitting.

The fit mirrors QRM's ``fit.GEV``:

- start values come from the Gumbel method of moments
  (``sigma0 = sqrt(6 var) / pi``, ``mu0 = mean - 0.5772 sigma0``) with ``xi0 = 0.1``;
- the negative log-likelihood is minimised with Nelder-Mead, and any iterate with
  ``sigma <= 0`` or a sample point on/outside the support gets a large finite penalty
  instead of ``inf`` so the simplex keeps moving;
- standard errors come from inverting the numerical Hessian at the optimum.

Block maxima of daily returns live on a scale of ~1e-2, so the optimizer and the Hessian
both work on the standardised sample ``(x - mean) / std`` and results are mapped back.
The shape is scale-free; location and scale (and their covariances) are rescaled.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import numdifftools as nd
import numpy as np
import pandas as pd
from scipy.optimize import minimize

from market_extremes.analysis.gev import (
    GEVParameters,
    _log_density_terms,
    in_support,
    validate_parameters,
)
from market_extremes.config import FitConfig
from market_extremes.errors import (
    ConvergenceError,
    InsufficientDataError,
    InvalidArgumentError,
    NonIdentifiableError,
)

logger = logging.getLogger(__name__)

# Below this shape the MLE is no longer asymptotically normal (Smith 1985).
REGULAR_XI_LOWER = -0.5
MAX_START_HALVINGS = 60

SampleLike = Union[Sequence[float], np.ndarray, pd.Series]


@dataclass(frozen=True)
class GEVStandardErrors:
    """Asymptotic standard errors, one per GEV parameter."""

    xi: float
    mu: float
    sigma: float

    def to_dict(self) -> dict[str, float]:
        return {"xi": self.xi, "mu": self.mu, "sigma": self.sigma}


@dataclass(frozen=True)
class GEVFitResult:
    """Outcome of a converged GEV maximum-likelihood fit."""

    params: GEVParameters
    standard_errors: GEVStandardErrors
    log_likelihood: float
    n_obs: int
    n_iterations: int
    # Order: xi, mu, sigma.
    covariance: np.ndarray = field(repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "params": self.params.to_dict(),
            "standard_errors": self.standard_errors.to_dict(),
            "log_likelihood": self.log_likelihood,
            "n_obs": self.n_obs,
            "n_iterations": self.n_iterations,
        }

    def to_frame(self) -> pd.DataFrame:
        """Estimates and standard errors as a small table indexed by parameter name."""
        return pd.DataFrame(
            {
                "estimate": pd.Series(self.params.to_dict()),
                "std_error": pd.Series(self.standard_errors.to_dict()),
            }
        )


@dataclass(frozen=True)
class _Standardised:
    values: np.ndarray
    center: float
    scale: float

    def to_raw(self, theta: np.ndarray) -> GEVParameters:
        xi, mu, sigma = (float(v) for v in theta)
        return GEVParameters(xi=xi, mu=self.center + self.scale * mu, sigma=self.scale * sigma)

    def from_raw(self, params: GEVParameters) -> np.ndarray:
        return np.array(
            [params.xi, (params.mu - self.center) / self.scale, params.sigma / self.scale]
        )

    def raw_log_likelihood(self, standardised_value: float) -> float:
        # Density of x = center + scale * y picks up a 1/scale Jacobian per point.
        return standardised_value - self.values.size * math.log(self.scale)


def _prepare_sample(sample: SampleLike) -> np.ndarray:
    """Drop missing blocks, reject infinities and enforce a fittable size."""
    arr = np.asarray(sample, dtype=float).ravel()
    arr = arr[~np.isnan(arr)]
    if not np.all(np.isfinite(arr)):
        raise InvalidArgumentError("GEV sample contains infinite values")
    if arr.size < 2:
        raise InsufficientDataError(f"Need at least 2 block maxima to fit a GEV, got {arr.size}")
    if np.ptp(arr) == 0:
        raise InsufficientDataError("GEV sample is constant; scale cannot be estimated")
    return arr


def _standardise(arr: np.ndarray) -> _Standardised:
    center = float(arr.mean())
    scale = float(arr.std(ddof=1))
    return _Standardised(values=(arr - center) / scale, center=center, scale=scale)


def negative_log_likelihood(
    theta: Sequence[float],
    sample: np.ndarray,
    penalty: float = 1e10,
) -> float:
    """GEV negative log-likelihood at ``theta = (xi, mu, sigma)``.

    Infeasible parameters return ``penalty`` rather than ``inf``.
    """
    xi, mu, sigma = theta
    if not (math.isfinite(xi) and math.isfinite(mu) and math.isfinite(sigma)) or sigma <= 0:
        return penalty
    terms = _log_density_terms(sample, xi, mu, sigma)
    if not np.all(np.isfinite(terms)):
        return penalty
    return -float(terms.sum())


def _moment_start(y: np.ndarray, start_xi: float) -> np.ndarray:
    """Gumbel method-of-moments location/scale with a feasible shape start."""
    sigma0 = math.sqrt(6.0 * float(np.var(y, ddof=1))) / math.pi
    mu0 = float(np.mean(y)) - np.euler_gamma * sigma0
    xi0 = start_xi
    for _ in range(MAX_START_HALVINGS):
        if np.all(1.0 + xi0 * (y - mu0) / sigma0 > 0):
            break
        xi0 /= 2.0
    else:
        xi0 = 0.0
    return np.array([xi0, mu0, sigma0])


def _check_start(start: GEVParameters, arr: np.ndarray) -> None:
    validate_parameters(start)
    if not np.all(in_support(arr, start)):
        raise InvalidArgumentError(f"start values {start} leave sample points outside the support")


def _minimise(std: _Standardised, theta0: np.ndarray, config: FitConfig):
    if config.method == "Nelder-Mead":
        options = {"maxiter": config.maxiter, "xatol": config.xatol, "fatol": config.fatol}
        tol = None
    else:
        options = {"maxiter": config.maxiter}
        tol = config.fatol
    result = minimize(
        negative_log_likelihood,
        theta0,
        args=(std.values, config.penalty),
        method=config.method,
        tol=tol,
        options=options,
    )
    if not result.success:
        raise ConvergenceError(
            f"GEV optimizer ({config.method}) did not converge after {result.nit} iterations: "
            f"{result.message}"
        )
    if not math.isfinite(result.fun) or result.fun >= config.penalty:
        raise ConvergenceError("GEV optimizer stopped at an infeasible point")
    return result


def _fit_standardised(
    sample: SampleLike,
    config: Optional[FitConfig],
    start: Optional[GEVParameters],
):
    cfg = config or FitConfig()
    arr = _prepare_sample(sample)
    std = _standardise(arr)
    if start is not None:
        _check_start(start, arr)
        theta0 = std.from_raw(start)
    else:
        theta0 = _moment_start(std.values, cfg.start_xi)
    logger.debug("GEV fit start (standardised): xi=%.4f mu=%.4f sigma=%.4f", *theta0)
    result = _minimise(std, theta0, cfg)
    return std, result, cfg


def estimate_parameters(
    sample: SampleLike,
    config: Optional[FitConfig] = None,
    start: Optional[GEVParameters] = None,
) -> tuple[GEVParameters, float, int]:
    """Maximum-likelihood estimates without standard errors.

    Returns ``(params, log_likelihood, n_iterations)``.
    """
    std, result, _ = _fit_standardised(sample, config, start)
    params = std.to_raw(result.x)
    return params, std.raw_log_likelihood(-float(result.fun)), int(result.nit)


def _standardised_covariance(theta: np.ndarray, y: np.ndarray, config: FitConfig) -> np.ndarray:
    """Invert the observed information; every failure mode is ``NonIdentifiableError``."""
    hessian = nd.Hessian(lambda th: negative_log_likelihood(th, y, penalty=np.inf))(theta)
    hessian = np.atleast_2d(np.asarray(hessian, dtype=float))
    if not np.all(np.isfinite(hessian)):
        raise NonIdentifiableError("Hessian of the GEV log-likelihood is not finite at the optimum")
    eigenvalues = np.linalg.eigvalsh((hessian + hessian.T) / 2.0)
    if np.any(eigenvalues <= 0):
        raise NonIdentifiableError(
            f"observed information is not positive definite (eigenvalues {eigenvalues})"
        )
    condition = float(eigenvalues.max() / eigenvalues.min())
    if condition > config.max_condition:
        raise NonIdentifiableError(f"observed information is near-singular (condition {condition:.3g})")
    try:
        covariance = np.linalg.inv(hessian)
    except np.linalg.LinAlgError as exc:
        raise NonIdentifiableError("observed information matrix is singular") from exc
    if np.any(np.diag(covariance) <= 0):
        raise NonIdentifiableError("non-positive asymptotic variance at the optimum")
    return covariance


def fit_gev(
    sample: SampleLike,
    config: Optional[FitConfig] = None,
    start: Optional[GEVParameters] = None,
) -> GEVFitResult:
    """Fit a GEV distribution to block maxima by maximum likelihood.

    Args:
        sample: Block maxima. Missing values (NaN) are dropped.
        config: Optimizer settings; ``FitConfig()`` defaults when omitted.
        start: Optional starting parameters on the data scale. They must be feasible.

    Standard errors are refused only at or below ``xi = -0.5``, where the likelihood is
    non-regular. Heavy tails with ``xi >= 0.5`` still get Hessian-based errors: the ML
    asymptotics depend on the shape of the likelihood, not on finite GEV moments.

    Returns:
        ``GEVFitResult`` with estimates, standard errors, covariance and log-likelihood.

    Raises:
        InsufficientDataError: Fewer than 2 points, or a constant sample.
        ConvergenceError: Optimizer ran out of iterations or ended infeasible.
        NonIdentifiableError: Observed information not invertible, or ``xi <= -0.5``.
    """
    std, result, cfg = _fit_standardised(sample, config, start)
    theta = np.asarray(result.x, dtype=float)
    params = std.to_raw(theta)
    if params.xi <= REGULAR_XI_LOWER:
        raise NonIdentifiableError(
            f"xi={params.xi:.4f} is outside the regular ML regime (xi > {REGULAR_XI_LOWER}); "
            "standard errors are undefined"
        )

    jacobian = np.diag([1.0, std.scale, std.scale])
    covariance = jacobian @ _standardised_covariance(theta, std.values, cfg) @ jacobian
    covariance.setflags(write=False)
    ses = np.sqrt(np.diag(covariance))

    fit = GEVFitResult(
        params=params,
        standard_errors=GEVStandardErrors(xi=float(ses[0]), mu=float(ses[1]), sigma=float(ses[2])),
        log_likelihood=std.raw_log_likelihood(-float(result.fun)),
        n_obs=int(std.values.size),
        n_iterations=int(result.nit),
        covariance=covariance,
    )
    logger.info(
        "GEV fit on %d maxima: xi=%.4f (%.4f) mu=%.6g (%.3g) sigma=%.6g (%.3g)",
        fit.n_obs,
        params.xi,
        fit.standard_errors.xi,
        params.mu,
        fit.standard_errors.mu,
        params.sigma,
        fit.standard_errors.sigma,
    )
    return fit
