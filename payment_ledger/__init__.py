"""Payment ledger and point-in-time loan snapshot engine."""

__version__ = "0.1.0"
