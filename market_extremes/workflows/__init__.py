"""High-level workflows for the Block Maxima Method."""

from market_extremes.workflows.block_maxima_report import BlockMaximaResult, analyze_block_maxima

__all__ = ["BlockMaximaResult", "analyze_block_maxima"]
