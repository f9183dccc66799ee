# File: utils/__init__.py
"""Pure Python utilities for the reminder scheduler.

Submodules:
    - dt_utils: Strict date/time parsing, formatting and month arithmetic

Usage:
    from .utils import dt_utils
    from .utils.dt_utils import dt_parse_date
"""

from . import dt_utils

__all__ = ["dt_utils"]
