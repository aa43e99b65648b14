"""Mutual-interest matching engine for campus dating."""

__version__ = "0.1.0"
