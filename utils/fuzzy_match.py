"""
Near-miss header matching on top of thefuzz.

Headers are compared trimmed and lower-cased with token_sort_ratio, so
"Buyer ", "buyer" and "Number Lot #2" all score high against the required
"Buyer" / "Lot Number #2".

Public API:
    rank_headers(column, headers, threshold) → list[(header, score)]
    best_match(column, headers, threshold, exclude) → (header | None, score)
"""

import logging
from collections.abc import Collection, Iterable

from thefuzz import fuzz

logger = logging.getLogger(__name__)


def _comparable(text: str) -> str:
    return text.strip().lower()


def rank_headers(
    column: str,
    headers: Iterable[str],
    threshold: int = 80,
) -> list[tuple[str, int]]:
    """
    Score every header against *column*, best first.

    Headers that are blank once trimmed are skipped.  Ties keep sheet order.

    Returns:
        (header as found, score) pairs scoring at least *threshold*.
    """
    target = _comparable(column)
    if not target:
        return []

    scored: list[tuple[str, int]] = []
    for header in headers:
        candidate = _comparable(header)
        if not candidate:
            continue
        score = fuzz.token_sort_ratio(target, candidate)
        if score >= threshold:
            scored.append((header, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored


def best_match(
    column: str,
    headers: Iterable[str],
    threshold: int = 80,
    exclude: Collection[str] = (),
) -> tuple[str | None, int]:
    """
    Closest header to *column* that is not in *exclude*.

    Returns:
        (header, score), or (None, 0) when nothing reaches *threshold*.
    """
    for header, score in rank_headers(column, headers, threshold):
        if header in exclude:
            continue
        logger.debug(f"'{column}' looks like header '{header}' (score={score})")
        return header, score

    logger.debug(f"No header close to '{column}' above {threshold}")
    return None, 0
