"""HTTP API for the paid-question escrow service."""

__version__ = "1.0.0"
