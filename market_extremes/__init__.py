"""Extreme-value toolkit for financial risk-factor changes via the Block Maxima Method.

Follows McNeil, Frey & Embrechts (2015), Examples 5.12 and 5.15. The package supports:

- negative log-returns (and classical returns) from a price series
- yearly / half-yearly / quarterly / monthly / custom block maxima
- GEV maximum-likelihood fitting with standard errors
- exceedance probabilities, return levels and return periods
"""

from market_extremes.config import load_block_config, load_fit_config, load_report_config

__all__ = [
    "load_block_config",
    "load_fit_config",
    "load_report_config",
]
