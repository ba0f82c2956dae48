"""
Recorded Expectations

Result sets recorded from a known-good run are stored as one JSON file per
exercise. The runner compares later runs against them.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

from sakila_notes.config import EXPECTED_DIR, TIMESTAMP_FORMAT
from sakila_notes.utils import normalize_rows

logger = logging.getLogger(__name__)


def _expected_path(query_key: str, directory: Optional[Path] = None) -> Path:
    return Path(directory or EXPECTED_DIR) / f"{query_key}.json"


def save_expected(query_key: str, columns: Sequence[str], rows: Sequence[Sequence[Any]],
                  directory: Optional[Path] = None) -> Path:
    """
    Record the result set of an exercise.

    Args:
        query_key: Exercise key
        columns: Column names, in result order
        rows: Result rows as returned by the driver

    Returns:
        Path to the written JSON file
    """
    path = _expected_path(query_key, directory)
    path.parent.mkdir(parents=True, exist_ok=True)

    normalized = normalize_rows(rows)
    payload = {
        'key': query_key,
        'columns': list(columns),
        'rows': normalized,
        'row_count': len(normalized),
        'recorded_at': datetime.now().strftime(TIMESTAMP_FORMAT)
    }

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=1, ensure_ascii=False)

    logger.debug("Recorded %d rows for %s at %s", len(normalized), query_key, path)
    return path


def load_expected(query_key: str, directory: Optional[Path] = None) -> Optional[dict]:
    """
    Load the recorded result set of an exercise.

    Returns:
        Dictionary with columns and rows, or None if nothing was recorded

    Raises:
        ValueError: If the file exists but is not a recorded result set
    """
    path = _expected_path(query_key, directory)
    if not path.exists():
        return None

    with open(path, 'r', encoding='utf-8') as f:
        payload = json.load(f)

    if 'columns' not in payload or 'rows' not in payload:
        raise ValueError(f"Malformed expectation file: {path}")

    return payload


def list_recorded(directory: Optional[Path] = None) -> List[str]:
    """
    Get the keys of all recorded exercises, sorted.
    """
    directory = Path(directory or EXPECTED_DIR)
    if not directory.exists():
        return []
    return sorted(path.stem for path in directory.glob('*.json'))


def delete_expected(query_key: str, directory: Optional[Path] = None) -> bool:
    """
    Remove a recorded result set.

    Returns:
        True if a file was removed
    """
    path = _expected_path(query_key, directory)
    if path.exists():
        path.unlink()
        return True
    return False
