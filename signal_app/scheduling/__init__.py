"""Periodic scheduling primitives."""

from .ticker import Ticker

__all__ = ["Ticker"]
