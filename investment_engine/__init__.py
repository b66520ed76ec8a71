"""Fixed-rate investment lifecycle and valuation service."""

__version__ = "1.0.0"
