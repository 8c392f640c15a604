"""Lenient readers for fields of untyped API payloads.

Reports print whatever the API sent; a malformed value degrades to a
default instead of aborting a run whose calls are already paid for.
"""

from typing import Any, Dict, List

from metquery.domain.models.common import JSONDocument


def number(value: Any, default: float = 0.0) -> float:
    """`value` as a float, or `default` if it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def dict_rows(data: JSONDocument) -> List[Dict[str, Any]]:
    """The object rows of a list payload; anything else yields no rows."""
    return [row for row in data if isinstance(row, dict)] if isinstance(data, list) else []
