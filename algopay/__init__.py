"""Algorand payment submission and transaction lifecycle tracking."""

__version__ = "0.1.0"
