"""
Feature engineering package.

This package includes:
- `indicators`: moving average and RSI over daily bars

All modules are pure computations with no I/O.
"""

from . import indicators

__all__ = ["indicators"]
