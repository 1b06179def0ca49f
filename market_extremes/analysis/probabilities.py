"""Exceedance probabilities, return levels and return periods from a fitted GEV.

With ``H`` the fitted block-maximum distribution (McNeil et al. 2015, Example 5.15):

- exceedance probability of ``u``: ``1 - H(u)``,
- k-block return level: ``r_k = H^-(1 - 1/k)``, exceeded once every ``k`` blocks on average,
- return period of ``u``: ``k_u = 1 / (1 - H(u))`` blocks.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Union

import numpy as np
import pandas as pd

from market_extremes.analysis.gev import GEVParameters, quantile, sf, validate_parameters
from market_extremes.analysis.gev_fit import GEVFitResult, estimate_parameters
from market_extremes.config import FitConfig
from market_extremes.errors import ConvergenceError, InvalidArgumentError, MarketExtremesError

logger = logging.getLogger(__name__)

FitLike = Union[GEVFitResult, GEVParameters]


def _params(fit: FitLike) -> GEVParameters:
    params = fit.params if isinstance(fit, GEVFitResult) else fit
    return validate_parameters(params)


def _reciprocal(probability: float) -> float:
    return math.inf if probability <= 0 else 1.0 / probability


def _finite_level(level: float, name: str) -> float:
    value = float(level)
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be a finite number, got {level}")
    return value


def exceedance_probability(fit: FitLike, historical_max: float) -> float:
    """Probability that the next block maximum exceeds ``historical_max``."""
    params = _params(fit)
    return float(sf(_finite_level(historical_max, "historical_max"), params))


def return_level(fit: FitLike, k: float) -> float:
    """Level exceeded on average once every ``k`` blocks (``k > 1``)."""
    params = _params(fit)
    if not math.isfinite(k) or k <= 1:
        raise InvalidArgumentError(f"return period k must be a finite number > 1, got {k}")
    return float(quantile(1.0 - 1.0 / k, params))


def return_period(fit: FitLike, level: float) -> float:
    """Expected number of blocks until one maximum exceeds ``level``.

    Returns ``math.inf`` when ``level`` lies at or beyond the upper endpoint.
    """
    params = _params(fit)
    return _reciprocal(float(sf(_finite_level(level, "level"), params)))


def return_period_bootstrap(
    block_maxima: pd.Series,
    level: float,
    n_boot: int = 1000,
    random_seed: int = 42,
    config: FitConfig | None = None,
) -> Dict[str, float]:
    """Estimate a return period (in blocks) with nonparametric bootstrap uncertainty.

    Each resample is refit by maximum likelihood. Resamples whose refit fails are skipped
    and counted in ``n_failed``.
    """
    sample = pd.Series(block_maxima).dropna().astype(float).to_numpy()
    base_params, _, _ = estimate_parameters(sample, config=config)
    base_prob = exceedance_probability(base_params, level)

    rng = np.random.default_rng(random_seed)
    boot_probs: list[float] = []
    n_failed = 0
    for _ in range(n_boot):
        resample = rng.choice(sample, size=sample.size, replace=True)
        try:
            params, _, _ = estimate_parameters(resample, config=config)
        except MarketExtremesError as exc:
            n_failed += 1
            logger.debug("bootstrap refit failed: %s", exc)
            continue
        boot_probs.append(exceedance_probability(params, level))

    if n_failed:
        logger.warning("%d of %d bootstrap refits failed and were skipped", n_failed, n_boot)
    if not boot_probs:
        raise ConvergenceError(f"all {n_boot} bootstrap refits failed")

    probs = np.array(boot_probs)
    # High exceedance probability means a short return period, so the percentiles swap.
    return {
        "probability": base_prob,
        "return_period": _reciprocal(base_prob),
        "return_period_p5": _reciprocal(float(np.percentile(probs, 95))),
        "return_period_p50": _reciprocal(float(np.percentile(probs, 50))),
        "return_period_p95": _reciprocal(float(np.percentile(probs, 5))),
        "n_boot": len(boot_probs),
        "n_failed": n_failed,
    }
