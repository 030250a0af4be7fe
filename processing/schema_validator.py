"""
Schema validator — checks decoded sheet headers against the required columns.

Matching is exact and case-sensitive, and header whitespace is NOT trimmed:
a header typed as "Buyer " does not satisfy "Buyer".  When that happens the
error points at the near miss so the operator can fix the sheet.

Any missing column blocks generation; there is no partial-schema mode.

Public API:
    required_columns(require_head_count) → list[str]
    validate(headers, require_head_count) → set[str]
    ensure_valid(headers, require_head_count) → None (raises SchemaError)
"""

import logging
from collections.abc import Sequence

from config.schema import HEAD_COUNT_COLUMN, REQUIRED_COLUMNS
from processing.errors import SchemaError
from utils.fuzzy_match import best_match

logger = logging.getLogger(__name__)

# Minimum thefuzz score for a found header to be offered as a suggestion.
SUGGESTION_THRESHOLD: int = 80


def required_columns(require_head_count: bool = False) -> list[str]:
    """Required columns in report order for the chosen variant."""
    columns = list(REQUIRED_COLUMNS)
    if require_head_count:
        columns.append(HEAD_COUNT_COLUMN)
    return columns


def validate(headers: Sequence[str], require_head_count: bool = False) -> set[str]:
    """
    Return the required columns missing from *headers*.

    Args:
        headers: Column names exactly as decoded.
        require_head_count: Also require the "Head Count" column.

    Returns:
        Set of missing column names; empty when the sheet is valid.
    """
    present = set(headers)
    return {
        column
        for column in required_columns(require_head_count)
        if column not in present
    }


def ensure_valid(headers: Sequence[str], require_head_count: bool = False) -> None:
    """
    Raise SchemaError if any required column is missing.

    The error lists the missing columns in schema order, every header that
    was found, and a near-miss suggestion per missing column when one exists.
    """
    missing = validate(headers, require_head_count)
    if not missing:
        logger.info(f"Schema check passed ({len(headers)} columns)")
        return

    ordered_missing = [
        column for column in required_columns(require_head_count)
        if column in missing
    ]
    suggestions = _suggest_headers(ordered_missing, headers)

    logger.warning(
        f"Schema check failed: missing {ordered_missing}, "
        f"suggestions {suggestions}"
    )
    raise SchemaError(ordered_missing, list(headers), suggestions)


def _suggest_headers(missing: list[str], headers: Sequence[str]) -> dict[str, str]:
    """Map each missing column to the closest unused found header, if close enough."""
    known = set(REQUIRED_COLUMNS) | {HEAD_COUNT_COLUMN}
    candidates = [header for header in headers if header not in known]

    suggestions: dict[str, str] = {}
    for column in missing:
        match, _score = best_match(
            column,
            candidates,
            threshold=SUGGESTION_THRESHOLD,
            exclude=set(suggestions.values()),
        )
        if match is not None:
            suggestions[column] = match
    return suggestions
