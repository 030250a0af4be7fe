"""
Bundle assembler — packs generated contracts into one in-memory ZIP.

Archive layout:
    Buyer Contracts/{contract_no}-{buyer}.docx
    Seller Contracts/{consignor}-{contract_no}.docx

Modes:
    buyer   buyer contracts only
    seller  seller contracts only
    all     both groupings; a lot missing one side still adds the other

Selection: a non-empty set of lot ids limits the bundle to those lots; an
empty (or missing) selection means every lot.  A bundle with nothing in it
is an AssemblyError, never an empty ZIP.

Public API:
    BundleMode
    ArchiveWriter
    assemble(lots, mode, selection=None) → bytes
    archive_filename(mode, on=None) → str
"""

import io
import logging
import zipfile
from collections.abc import Collection, Sequence
from datetime import date
from enum import Enum

from config.naming import ARCHIVE_FILENAME_PATTERN, BUYER_GROUP, SELLER_GROUP
from processing.errors import AssemblyError
from processing.lot_builder import Lot

logger = logging.getLogger(__name__)


class BundleMode(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ALL = "all"

    @classmethod
    def parse(cls, value: "BundleMode | str") -> "BundleMode":
        """Accept a BundleMode or its string value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unknown bundle mode '{value}' (expected {valid})"
            ) from None

    @property
    def includes_buyer(self) -> bool:
        return self in (BundleMode.BUYER, BundleMode.ALL)

    @property
    def includes_seller(self) -> bool:
        return self in (BundleMode.SELLER, BundleMode.ALL)


class ArchiveWriter:
    """Collects named files under groupings and produces ZIP bytes."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, "w", compression=zipfile.ZIP_DEFLATED)
        self._file_count = 0
        self._finalized = False

    @property
    def file_count(self) -> int:
        return self._file_count

    def add_file(self, group: str, filename: str, data: bytes) -> None:
        if self._finalized:
            raise RuntimeError("Archive already finalized")
        path = f"{group}/{filename}" if group else filename
        self._zip.writestr(path, data)
        self._file_count += 1

    def finalize(self) -> bytes:
        if not self._finalized:
            self._zip.close()
            self._finalized = True
        return self._buffer.getvalue()


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def assemble(
    lots: Sequence[Lot],
    mode: BundleMode | str,
    selection: Collection[str] | None = None,
) -> bytes:
    """
    Build a ZIP of the contracts for *mode* from the selected lots.

    Args:
        lots: Lots of the current generation pass, in row order.
        mode: "buyer", "seller" or "all".
        selection: Lot ids to include; empty or None means all lots.

    Returns:
        ZIP archive bytes.

    Raises:
        AssemblyError: If no document matches the mode and selection.
    """
    bundle_mode = BundleMode.parse(mode)
    participating = _select(lots, selection)

    writer = ArchiveWriter()
    for lot in participating:
        if bundle_mode.includes_buyer and lot.buyer_doc is not None:
            writer.add_file(BUYER_GROUP, lot.buyer_filename, lot.buyer_doc)
        if bundle_mode.includes_seller and lot.seller_doc is not None:
            writer.add_file(SELLER_GROUP, lot.seller_filename, lot.seller_doc)

    if writer.file_count == 0:
        writer.finalize()
        scope = "selected lots" if selection else "generated lots"
        kind = "" if bundle_mode is BundleMode.ALL else f"{bundle_mode.value} "
        raise AssemblyError(
            bundle_mode.value,
            f"No {kind}contracts available in the {len(participating)} {scope}.",
        )

    archive = writer.finalize()
    logger.info(
        f"Assembled '{bundle_mode.value}' bundle: {writer.file_count} documents "
        f"from {len(participating)} lots ({len(archive):,} bytes)"
    )
    return archive


def archive_filename(mode: BundleMode | str, on: date | None = None) -> str:
    """Download name, e.g. "buyer_contracts_2024-03-15.zip"."""
    stamp = (on or date.today()).isoformat()
    return ARCHIVE_FILENAME_PATTERN.format(mode=BundleMode.parse(mode).value, date=stamp)


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _select(lots: Sequence[Lot], selection: Collection[str] | None) -> list[Lot]:
    if not selection:
        return list(lots)
    wanted = set(selection)
    return [lot for lot in lots if lot.lot_id in wanted]
