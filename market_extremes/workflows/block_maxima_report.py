"""End-to-end Block Maxima Method analysis for one price series.

Steps: compute risk-factor changes (negative log-returns), optionally restrict the date
window, extract block maxima per granularity, fit a GEV to each set of maxima, and derive:

1. the probability that the next block maximum exceeds all previous ones,
2. k-block return levels,
3. the return period (in blocks) of an observed event level.

Each granularity is fitted independently, so fits can run in a thread pool.
"""

from __future__ import annotations

import concurrent.futures as cf
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import pandas as pd

from market_extremes.analysis import (
    GEVFitResult,
    exceedance_probability,
    fit_gev,
    return_level,
    return_period,
    return_period_bootstrap,
)
from market_extremes.config import (
    BlockConfig,
    FitConfig,
    ReportConfig,
    load_block_config,
    load_fit_config,
    load_report_config,
)
from market_extremes.processing import (
    compute_risk_factor_changes,
    extract_block_maxima,
    parse_granularity,
    slice_window,
)
from market_extremes.processing.returns import value_at

logger = logging.getLogger(__name__)


@dataclass
class BlockMaximaResult:
    granularity: str
    block_maxima: pd.Series
    fit: GEVFitResult
    prior_max: float
    exceedance_probability: float
    return_levels: dict[float, float] = field(default_factory=dict)
    event_return_period: Optional[float] = None
    event_bootstrap: Optional[dict] = None

    def summary(self) -> dict:
        """Flat dictionary for printing."""
        return {
            "granularity": self.granularity,
            "n_blocks": len(self.block_maxima),
            **self.fit.params.to_dict(),
            **{f"se_{name}": value for name, value in self.fit.standard_errors.to_dict().items()},
            "log_likelihood": self.fit.log_likelihood,
            "prior_max": self.prior_max,
            "exceedance_probability": self.exceedance_probability,
            **{f"return_level_k{k:g}": level for k, level in self.return_levels.items()},
            "event_return_period": self.event_return_period,
        }


def _analyze_granularity(
    risk_factors: pd.Series,
    granularity: str,
    return_periods: Iterable[float],
    event_level: Optional[float],
    fit_config: FitConfig,
    block_config: BlockConfig,
    bootstrap: Optional[ReportConfig],
) -> BlockMaximaResult:
    maxima = extract_block_maxima(
        risk_factors,
        granularity,
        min_blocks=block_config.min_blocks,
        min_obs_per_block=block_config.min_obs_per_block,
    )
    fit = fit_gev(maxima, config=fit_config)

    # "All previous" blocks exclude the final (current) block.
    prior_max = float(maxima.iloc[:-1].max())
    levels = {float(k): return_level(fit, k) for k in return_periods}

    event_period = None
    event_boot = None
    if event_level is not None:
        event_period = return_period(fit, event_level)
        if bootstrap is not None:
            event_boot = return_period_bootstrap(
                maxima,
                event_level,
                n_boot=bootstrap.n_boot,
                random_seed=bootstrap.random_seed,
                config=fit_config,
            )

    return BlockMaximaResult(
        granularity=granularity,
        block_maxima=maxima,
        fit=fit,
        prior_max=prior_max,
        exceedance_probability=exceedance_probability(fit, prior_max),
        return_levels=levels,
        event_return_period=event_period,
        event_bootstrap=event_boot,
    )


def analyze_block_maxima(
    prices: pd.Series,
    granularities: Optional[Iterable[str]] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    return_periods: Optional[dict[str, Iterable[float]]] = None,
    event_level: Optional[float] = None,
    event_date: Optional[str] = None,
    bootstrap: bool = False,
    max_workers: int = 1,
    fit_config: Optional[FitConfig] = None,
    block_config: Optional[BlockConfig] = None,
    report_config: Optional[ReportConfig] = None,
) -> dict:
    """Run the BMM pipeline on a price series.

    Args:
        prices: Price series indexed by strictly increasing timestamps.
        granularities: Block rules to fit; defaults to the configured list.
        start, end: Optional analysis window applied to the risk-factor changes.
        return_periods: ``{granularity: [k, ...]}``; defaults to the configured periods.
        event_level: Risk-factor change whose return period is wanted.
        event_date: Alternative to ``event_level``; the level is read from the full
            (unwindowed) risk-factor series on that date.
        bootstrap: Also bootstrap the event return period.
        max_workers: Thread pool size for fitting granularities in parallel.

    Returns a dictionary with:
    - risk-factor changes (full and windowed)
    - the event level used
    - one ``BlockMaximaResult`` per granularity
    """
    fit_cfg = fit_config or load_fit_config()
    block_cfg = block_config or load_block_config()
    report_cfg = report_config or load_report_config()

    risk_factors = compute_risk_factor_changes(prices, method="log")
    window = slice_window(risk_factors, start, end)

    if event_level is None and event_date is not None:
        event_level = value_at(risk_factors, event_date)

    grans = [parse_granularity(g).value for g in (granularities or block_cfg.granularities)]
    periods = return_periods or report_cfg.return_periods

    def task(gran: str) -> BlockMaximaResult:
        return _analyze_granularity(
            window,
            gran,
            periods.get(gran, ()),
            event_level,
            fit_cfg,
            block_cfg,
            report_cfg if bootstrap else None,
        )

    if max_workers > 1 and len(grans) > 1:
        with cf.ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(task, grans))
    else:
        results = [task(gran) for gran in grans]

    for res in results:
        logger.info(
            "%s: %d blocks, xi=%.4f, P(next max > %.4f)=%.4f",
            res.granularity,
            len(res.block_maxima),
            res.fit.params.xi,
            res.prior_max,
            res.exceedance_probability,
        )

    return {
        "risk_factors": risk_factors,
        "window": window,
        "event_level": event_level,
        "results": {res.granularity: res for res in results},
    }
