"""
Filename deriver — builds the buyer and seller contract filenames for a lot.

Naming convention (fixed):
    buyer:  {contract_no}-{buyer}.docx
    seller: {consignor}-{contract_no}.docx

Each component is sanitized on its own:
  1. Runs of filesystem-reserved characters (/ \\ : * ? " < > |) → "-"
  2. Runs of whitespace → one space
  3. Leading/trailing dots and spaces stripped
  4. Empty result → "UNKNOWN"

Buyer and seller files land in one ZIP, so both share a single UsedNameSet
per generation pass.  Collisions are resolved case-insensitively by inserting
" (2)", " (3)", ... before the extension, in allocation order: buyer before
seller, rows ascending.  The first claimant keeps the plain name.

Public API:
    sanitize_component(value) → str
    UsedNameSet.allocate(candidate) → str
    derive_names(record, used) → LotFilenames
"""

import logging
from dataclasses import dataclass, field

from config.naming import (
    BUYER_FILENAME_PATTERN,
    COLLISION_SUFFIX,
    DOCX_EXTENSION,
    FIRST_COLLISION_NUMBER,
    PLACEHOLDER_TOKEN,
    RESERVED_CHARS_PATTERN,
    SELLER_FILENAME_PATTERN,
    WHITESPACE_PATTERN,
)
from processing.normalizer import NormalizedRecord

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LotFilenames:
    """The two filenames allocated for one lot."""

    buyer: str
    seller: str


@dataclass
class UsedNameSet:
    """Lower-cased filenames already handed out in the current pass."""

    _names: set[str] = field(default_factory=set)

    def __contains__(self, filename: object) -> bool:
        return isinstance(filename, str) and filename.lower() in self._names

    def __len__(self) -> int:
        return len(self._names)

    def reset(self) -> None:
        self._names.clear()

    def allocate(self, candidate: str) -> str:
        """
        Claim *candidate*, or the first free " (n)" variant of it.

        Args:
            candidate: Sanitized filename including extension.

        Returns:
            The filename actually registered.
        """
        stem, extension = _split_extension(candidate)
        chosen = candidate
        number = FIRST_COLLISION_NUMBER

        while chosen.lower() in self._names:
            chosen = f"{stem}{COLLISION_SUFFIX.format(n=number)}{extension}"
            number += 1

        if chosen != candidate:
            logger.debug(f"Filename '{candidate}' taken; using '{chosen}'")

        self._names.add(chosen.lower())
        return chosen


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def sanitize_component(value: str) -> str:
    """
    Make one filename component safe for every common filesystem.

    Idempotent: sanitizing an already-sanitized component returns it unchanged.
    """
    cleaned = RESERVED_CHARS_PATTERN.sub("-", value or "")
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned)
    cleaned = cleaned.strip(". ")
    return cleaned or PLACEHOLDER_TOKEN


def derive_names(record: NormalizedRecord, used: UsedNameSet) -> LotFilenames:
    """
    Allocate the buyer then seller filename for *record*.

    Args:
        record: Normalized row data (contract_no, buyer, consignor are used).
        used: The pass-wide name set; both names are registered in it.

    Returns:
        LotFilenames with collision-free names.
    """
    contract_no = sanitize_component(record.contract_no)
    buyer = sanitize_component(record.buyer)
    consignor = sanitize_component(record.consignor)

    buyer_name = used.allocate(
        BUYER_FILENAME_PATTERN.format(contract_no=contract_no, buyer=buyer)
    )
    seller_name = used.allocate(
        SELLER_FILENAME_PATTERN.format(consignor=consignor, contract_no=contract_no)
    )
    return LotFilenames(buyer=buyer_name, seller=seller_name)


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _split_extension(filename: str) -> tuple[str, str]:
    if filename.lower().endswith(DOCX_EXTENSION):
        return filename[: -len(DOCX_EXTENSION)], filename[-len(DOCX_EXTENSION):]
    stem, dot, extension = filename.rpartition(".")
    if not dot or not stem:
        return filename, ""
    return stem, f".{extension}"
