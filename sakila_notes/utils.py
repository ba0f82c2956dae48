"""
Utility Functions

This module provides utility functions for the Sakila notes project,
including time formatting, result-set normalization and comparison,
and logging setup.
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from sakila_notes.config import LOGGING_CONFIG

_logging_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger from LOGGING_CONFIG.

    Calling it again only updates the level.

    Args:
        level: Optional level name overriding LOGGING_CONFIG['level']
    """
    global _logging_configured
    level_name = (level or LOGGING_CONFIG['level']).upper()

    if not _logging_configured:
        logging.basicConfig(
            level=level_name,
            format=LOGGING_CONFIG['format'],
            datefmt=LOGGING_CONFIG['datefmt']
        )
        _logging_configured = True
    else:
        logging.getLogger().setLevel(level_name)


def format_time(seconds: float) -> str:
    """
    Format time duration in human-readable format.

    Args:
        seconds: Time duration in seconds

    Returns:
        Formatted string (e.g., "500ms", "2.3s", "1.5μs")

    Examples:
        >>> format_time(0.0005)
        '500μs'
        >>> format_time(0.5)
        '500ms'
        >>> format_time(2.345)
        '2.345s'
    """
    if seconds < 0.001:
        return f"{seconds * 1000000:.0f}μs"
    elif seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    else:
        return f"{seconds:.3f}s"


def format_number(number: int) -> str:
    """
    Format large numbers with thousand separators.

    Examples:
        >>> format_number(16044)
        '16,044'
    """
    return f"{number:,}"


def normalize_value(value: Any) -> Any:
    """
    Convert a driver value into a JSON-friendly value.

    DECIMAL columns come back as Decimal, DATE/DATETIME as date objects and
    TIME as timedelta; recorded expectations store them as float and strings.

    Examples:
        >>> normalize_value(Decimal('2.99'))
        2.99
        >>> normalize_value(date(2005, 7, 1))
        '2005-07-01'
        >>> normalize_value(None) is None
        True
    """
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', errors='replace')
    return value


def normalize_rows(rows: Optional[Sequence[Sequence[Any]]]) -> List[List[Any]]:
    """
    Normalize every value of a result set.

    Args:
        rows: Rows as returned by the driver (tuples) or loaded from JSON (lists)

    Returns:
        List of lists with normalized values
    """
    if not rows:
        return []
    return [[normalize_value(value) for value in row] for row in rows]


def _sort_key(row: Sequence[Any]) -> tuple:
    # NULLs sort first; values of one column share a type after normalization
    return tuple((value is not None, value if value is not None else 0) for value in row)


def values_equal(val1: Any, val2: Any, tolerance: float = 0.001) -> bool:
    """
    Compare two normalized values, with tolerance for numbers.

    Examples:
        >>> values_equal(2.0, 2.0004)
        True
        >>> values_equal(1, 1.0)
        True
        >>> values_equal('a', 'b')
        False
    """
    if isinstance(val1, bool) or isinstance(val2, bool):
        return val1 == val2
    if isinstance(val1, (int, float)) and isinstance(val2, (int, float)):
        return abs(val1 - val2) <= tolerance
    return val1 == val2


def compare_results(results1: Optional[Sequence[Sequence[Any]]],
                    results2: Optional[Sequence[Sequence[Any]]],
                    tolerance: float = 0.001,
                    ordered: bool = False) -> bool:
    """
    Compare two result sets for equality (with floating point tolerance).

    Args:
        results1: First result set (list of tuples or lists)
        results2: Second result set (list of tuples or lists)
        tolerance: Tolerance for numeric comparison
        ordered: If True, row order must match as well

    Returns:
        True if results match, False otherwise

    Examples:
        >>> compare_results([(1, 2.0)], [[1, 2.001]], tolerance=0.01)
        True
        >>> compare_results([(1, 'a'), (2, 'b')], [(2, 'b'), (1, 'a')], ordered=True)
        False
    """
    if results1 is None or results2 is None:
        return False

    if len(results1) != len(results2):
        return False

    rows1 = normalize_rows(results1)
    rows2 = normalize_rows(results2)

    if not ordered:
        try:
            rows1 = sorted(rows1, key=_sort_key)
            rows2 = sorted(rows2, key=_sort_key)
        except TypeError:
            # Mixed types within a column; fall back to a textual ordering
            rows1 = sorted(rows1, key=repr)
            rows2 = sorted(rows2, key=repr)

    for row1, row2 in zip(rows1, rows2):
        if len(row1) != len(row2):
            return False

        for val1, val2 in zip(row1, row2):
            if not values_equal(val1, val2, tolerance):
                return False

    return True
