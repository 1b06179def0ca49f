"""Exception types raised by the block-maxima toolkit.

Every error derives from ``MarketExtremesError`` so drivers can catch the whole family in
one place. Argument and data problems also subclass ``ValueError``; optimizer failures
subclass ``RuntimeError``.
"""

from __future__ import annotations


class MarketExtremesError(Exception):
    """Base class for all toolkit errors."""


class InvalidArgumentError(MarketExtremesError, ValueError):
    """Malformed query input, e.g. a probability outside (0, 1)."""


class InvalidParameterError(MarketExtremesError, ValueError):
    """Infeasible GEV parameters (sigma <= 0 or non-finite values)."""


class DomainError(MarketExtremesError, ValueError):
    """Evaluation point outside the distribution support."""


class InsufficientDataError(MarketExtremesError, ValueError):
    """Sample too small (or too degenerate) to fit."""


class EmptyInputError(InsufficientDataError):
    """Series has zero length."""


class InsufficientBlocksError(InsufficientDataError):
    """Partition produced fewer blocks than a fit needs."""


class ConvergenceError(MarketExtremesError, RuntimeError):
    """Optimizer stopped without meeting its tolerance."""


class NonIdentifiableError(MarketExtremesError, RuntimeError):
    """Observed information matrix is singular at the optimum; standard errors undefined."""
