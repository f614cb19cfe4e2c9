"""Security and validation module.

Contains the check applied to generated join expressions.
"""

from .sql_guard import is_safe_sql

__all__ = [
    "is_safe_sql",
]
