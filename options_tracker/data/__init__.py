"""External market data sources."""

from options_tracker.data.marks import HttpMarkProvider, OptionQuote

__all__ = ["HttpMarkProvider", "OptionQuote"]
