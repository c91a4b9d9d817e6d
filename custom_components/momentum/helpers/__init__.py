# File: helpers/__init__.py
"""Helper functions for Momentum that sit above the pure utils.

Submodules:
    - write_helpers: Ordered multi-record writes with reverse compensation

Usage:
    from .helpers.write_helpers import RollbackStep, async_run_with_rollback
"""

from . import write_helpers

__all__ = ["write_helpers"]
