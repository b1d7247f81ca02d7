"""Database models for algopay."""

from .transaction import Transaction

__all__ = ["Transaction"]
