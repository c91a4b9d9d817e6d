"""Pure Python utilities for Momentum.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Local calendar dates, parsing, month arithmetic
    - math_utils: Half-up rounding, progress percentages, completion ratios

Usage:
    from . import dt_utils
    from .math_utils import calculate_percentage
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
