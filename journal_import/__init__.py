"""Imports broker trade reports into the trading journal."""

__version__ = "1.0.0"
