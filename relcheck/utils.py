# File: relcheck/utils.py
"""
RelCheck - Utility Functions & Helpers
=======================================
Small comparison and formatting helpers shared by the metadata builder and
the validators, plus a profiling ``Timer``.

No external dependencies beyond the Python standard library.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck.utils")


# ---------------------------------------------------------------------------
# Comparison helpers
# ---------------------------------------------------------------------------


def values_equal(left: Any, right: Any) -> bool:
    """
    Type-strict equality for configured values.

    Python considers ``1 == 1.0 == True``; a column default or discriminator
    of ``1`` is not the same configuration as ``True`` or ``1.0``, so the
    types must match as well.  Lists, tuples and dicts are compared element
    by element under the same rule.
    """
    if left is None or right is None:
        return left is right
    if type(left) is not type(right):
        return False
    if isinstance(left, (list, tuple)):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(
            values_equal(left[k], right[k]) for k in left
        )
    return left == right


def value_key(value: Any) -> Any:
    """Hashable key that keeps values of different types apart."""
    return (type(value).__name__, value)


def equals_ignore_case(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive compare; ``None`` only equals ``None``."""
    if left is None or right is None:
        return left is right
    return left.casefold() == right.casefold()


def format_table_name(schema: Optional[str], name: str) -> str:
    """``schema.name``, or just ``name`` when the schema is empty."""
    return f"{schema}.{name}" if schema else name


def join_name(prefix: str, table: str, columns: Sequence[str] = ()) -> str:
    """Build a conventional constraint name, e.g. ``IX_Vehicles_Name``."""
    return "_".join([prefix, table, *columns])


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("validate model") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.info(
            "Timer [%s]: %.4f seconds",
            self.label,
            self.elapsed,
        )

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "values_equal",
    "value_key",
    "equals_ignore_case",
    "format_table_name",
    "join_name",
    "Timer",
]
