"""Closed-form Generalised Extreme Value (GEV) distribution functions.

Parameterisation follows McNeil, Frey & Embrechts: shape ``xi``, location ``mu``, scale
``sigma`` with ``H(x) = exp(-(1 + xi (x - mu) / sigma) ** (-1 / xi))``. ``xi > 0`` is the
Fréchet (heavy-tailed) case, ``xi < 0`` the Weibull case with a finite upper endpoint.

SciPy's ``genextreme`` uses the opposite sign for the shape (``c = -xi``); use
``to_scipy`` / ``from_scipy`` when moving between the two.

For ``|xi| < GUMBEL_TOLERANCE`` every function switches to the Gumbel limit
``H(x) = exp(-exp(-(x - mu) / sigma))``; at that size the ``xi != 0`` formulas lose more to
cancellation than the limit error they would avoid.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

import numpy as np
import pandas as pd

from market_extremes.errors import DomainError, InvalidArgumentError, InvalidParameterError

GUMBEL_TOLERANCE = 1e-6

ArrayLike = Union[float, np.ndarray, pd.Series, list]


@dataclass(frozen=True)
class GEVParameters:
    """Shape, location and scale of a GEV distribution."""

    xi: float
    mu: float
    sigma: float

    @property
    def is_gumbel(self) -> bool:
        return abs(self.xi) < GUMBEL_TOLERANCE

    def as_array(self) -> np.ndarray:
        return np.array([self.xi, self.mu, self.sigma], dtype=float)

    def to_dict(self) -> dict[str, float]:
        return {"xi": self.xi, "mu": self.mu, "sigma": self.sigma}


def validate_parameters(params: GEVParameters) -> GEVParameters:
    """Raise ``InvalidParameterError`` unless sigma > 0 and every value is finite."""
    values = (params.xi, params.mu, params.sigma)
    if not all(math.isfinite(v) for v in values):
        raise InvalidParameterError(f"GEV parameters must be finite, got {params}")
    if params.sigma <= 0:
        raise InvalidParameterError(f"GEV scale must be positive, got sigma={params.sigma}")
    return params


def to_scipy(params: GEVParameters) -> dict[str, float]:
    """Keyword arguments for ``scipy.stats.genextreme`` (note ``c = -xi``)."""
    return {"c": -params.xi, "loc": params.mu, "scale": params.sigma}


def from_scipy(c: float, loc: float, scale: float) -> GEVParameters:
    """Build parameters from SciPy's ``(c, loc, scale)`` convention."""
    return GEVParameters(xi=-float(c), mu=float(loc), sigma=float(scale))


def support(params: GEVParameters) -> tuple[float, float]:
    """Return the (lower, upper) endpoints of the support."""
    validate_parameters(params)
    if params.is_gumbel:
        return -math.inf, math.inf
    endpoint = params.mu - params.sigma / params.xi
    if params.xi > 0:
        return endpoint, math.inf
    return -math.inf, endpoint


def in_support(x: ArrayLike, params: GEVParameters) -> np.ndarray:
    """Boolean mask of points strictly inside the support."""
    validate_parameters(params)
    x_arr = np.asarray(x, dtype=float)
    if params.is_gumbel:
        return np.isfinite(x_arr)
    return 1.0 + params.xi * (x_arr - params.mu) / params.sigma > 0


def _restore(values: np.ndarray, like: ArrayLike):
    """Return a float for scalar input and keep the index of pandas input."""
    if isinstance(like, pd.Series):
        return pd.Series(values, index=like.index, name=like.name)
    if np.ndim(like) == 0:
        return float(values)
    return values


def _log_density_terms(x: np.ndarray, xi: float, mu: float, sigma: float) -> np.ndarray:
    """Per-point log density without validation; ``-inf`` outside the support."""
    z = (x - mu) / sigma
    if abs(xi) < GUMBEL_TOLERANCE:
        with np.errstate(over="ignore"):
            return -math.log(sigma) - z - np.exp(-z)
    t = 1.0 + xi * z
    inside = t > 0
    safe_t = np.where(inside, t, 1.0)
    with np.errstate(over="ignore"):
        terms = -math.log(sigma) - (1.0 + 1.0 / xi) * np.log(safe_t) - safe_t ** (-1.0 / xi)
    return np.where(inside, terms, -np.inf)


def _survival(x: np.ndarray, params: GEVParameters) -> np.ndarray:
    z = (x - params.mu) / params.sigma
    with np.errstate(over="ignore", invalid="ignore"):
        if params.is_gumbel:
            out = -np.expm1(-np.exp(-z))
        else:
            t = 1.0 + params.xi * z
            inside = t > 0
            safe_t = np.where(inside, t, 1.0)
            tail = -np.expm1(-(safe_t ** (-1.0 / params.xi)))
            # All mass lies above the lower endpoint (xi > 0); none above the upper (xi < 0).
            out = np.where(inside, tail, 1.0 if params.xi > 0 else 0.0)
    return np.where(np.isnan(x), np.nan, out)


def cdf(x: ArrayLike, params: GEVParameters):
    """P(X <= x). Returns 0 below the lower endpoint and 1 above the upper endpoint."""
    validate_parameters(params)
    x_arr = np.asarray(x, dtype=float)
    z = (x_arr - params.mu) / params.sigma
    with np.errstate(over="ignore", invalid="ignore"):
        if params.is_gumbel:
            out = np.exp(-np.exp(-z))
        else:
            t = 1.0 + params.xi * z
            inside = t > 0
            safe_t = np.where(inside, t, 1.0)
            out = np.where(
                inside,
                np.exp(-(safe_t ** (-1.0 / params.xi))),
                0.0 if params.xi > 0 else 1.0,
            )
    out = np.where(np.isnan(x_arr), np.nan, out)
    return _restore(out, x)


def sf(x: ArrayLike, params: GEVParameters):
    """Survival function ``1 - cdf``, computed with ``expm1`` so tiny tails stay accurate."""
    validate_parameters(params)
    x_arr = np.asarray(x, dtype=float)
    return _restore(_survival(x_arr, params), x)


def quantile(p: ArrayLike, params: GEVParameters):
    """Inverse of ``cdf`` for 0 < p < 1."""
    validate_parameters(params)
    p_arr = np.asarray(p, dtype=float)
    if np.any(~((p_arr > 0) & (p_arr < 1))):
        raise InvalidArgumentError(f"probabilities must lie in (0, 1), got {p}")
    log_y = np.log(-np.log(p_arr))
    if params.is_gumbel:
        out = params.mu - params.sigma * log_y
    else:
        # (y ** -xi - 1) written as expm1 keeps small xi continuous with the Gumbel branch.
        out = params.mu + params.sigma / params.xi * np.expm1(-params.xi * log_y)
    return _restore(out, p)


def log_density(x: ArrayLike, params: GEVParameters, strict: bool = False):
    """Log of the GEV density.

    Points outside the support get ``-inf``; with ``strict=True`` they raise ``DomainError``.
    """
    validate_parameters(params)
    x_arr = np.asarray(x, dtype=float)
    out = _log_density_terms(x_arr, params.xi, params.mu, params.sigma)
    if strict and np.any(~np.isfinite(out)):
        lower, upper = support(params)
        raise DomainError(f"point(s) outside GEV support ({lower}, {upper})")
    return _restore(out, x)
