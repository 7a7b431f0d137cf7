"""Options trade journal: reconstructs positions and P&L from individual option trades."""

__version__ = "0.1.0"
