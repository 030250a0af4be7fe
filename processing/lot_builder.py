"""
Lot builder — runs one generation pass over every sheet row.

Flow per pass:
  1. Skip blank rows (no cell with non-whitespace content).  They are not
     errors and are dropped before lots are numbered.
  2. Normalizing phase: normalize each remaining row and allocate its buyer
     and seller filenames, in row order, against one fresh UsedNameSet.
     Allocation order decides which of two colliding names keeps the plain
     form, so it always happens here, before any rendering.
  3. Rendering phase: render the buyer then the seller contract per lot.
     A RenderError leaves that document as None and is reported in the
     result; it never stops the pass.

succeeded / failed count lots (rows), not documents: a lot with one failed
side counts as failed.  Every failed lot gets exactly one RowError entry
naming its row number and contract number.

Public API:
    build_lots(rows, buyer_template, seller_template, ...) → GenerationResult
    filter_lots(lots, only_with_buyer, only_with_consignor) → list[Lot]
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from config.schema import FieldSpec
from output.docx_filler import fill_template
from output.document_renderer import TemplateEngine, render_document
from processing.errors import PreconditionError, RenderError
from processing.filename_deriver import UsedNameSet, derive_names
from processing.normalizer import NormalizedRecord, RowNormalizer, is_blank_row

logger = logging.getLogger(__name__)

PHASE_NORMALIZING: str = "normalizing"
PHASE_RENDERING: str = "rendering"

# progress(phase, done, total)
ProgressCallback = Callable[[str, int, int], None]


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Lot:
    """One generated unit of output: a sheet row and its two contracts."""

    lot_id: str
    index: int                      # 0-based among non-blank rows
    source_row: int                 # 1-based data row in the uploaded sheet
    record: NormalizedRecord
    buyer_filename: str
    seller_filename: str
    buyer_doc: bytes | None = None
    seller_doc: bytes | None = None
    errors: dict[str, str] = field(default_factory=dict)
    """side ("buyer"/"seller") → render failure explanation."""
    selected: bool = False

    @property
    def row_number(self) -> int:
        return self.index + 1

    @property
    def contract_no(self) -> str:
        return self.record.contract_no

    @property
    def buyer(self) -> str:
        return self.record.buyer

    @property
    def consignor(self) -> str:
        return self.record.consignor

    @property
    def has_buyer_doc(self) -> bool:
        return self.buyer_doc is not None

    @property
    def has_seller_doc(self) -> bool:
        return self.seller_doc is not None

    @property
    def is_complete(self) -> bool:
        return self.has_buyer_doc and self.has_seller_doc


@dataclass(frozen=True)
class RowError:
    """
    A row whose contracts could not all be rendered.

    row_number counts non-blank rows (the Row column of the results table);
    source_row is the data row in the uploaded sheet, blank rows included.
    """

    row_number: int
    source_row: int
    contract_no: str
    message: str

    def __str__(self) -> str:
        contract = self.contract_no or "no contract #"
        return (
            f"Row {self.row_number} (sheet data row {self.source_row}, "
            f"contract {contract}): {self.message}"
        )


@dataclass
class GenerationResult:
    """Everything one pass produced."""

    lots: list[Lot] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    errors: list[RowError] = field(default_factory=list)
    skipped_blank_rows: int = 0
    duplicate_keys: list[str] = field(default_factory=list)
    """Rows repeating an earlier row's contract # + buyer (names were suffixed)."""

    @property
    def total(self) -> int:
        return len(self.lots)

    def lot_by_id(self, lot_id: str) -> Lot | None:
        for lot in self.lots:
            if lot.lot_id == lot_id:
                return lot
        return None


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def build_lots(
    rows: Sequence[Mapping[str, object]],
    buyer_template: bytes | None,
    seller_template: bytes | None,
    field_map: Mapping[str, FieldSpec] | None = None,
    engine: TemplateEngine = fill_template,
    progress: ProgressCallback | None = None,
) -> GenerationResult:
    """
    Build one lot per non-blank row and render both contracts for each.

    Args:
        rows: Raw sheet rows in sheet order.
        buyer_template: Buyer contract .docx bytes.
        seller_template: Seller contract .docx bytes.
        field_map: Field map for the normalizer (default FIELD_MAP).
        engine: Template engine callable.
        progress: Optional callback, called as progress(phase, done, total).

    Returns:
        GenerationResult with lots in row order, counts, and row errors.

    Raises:
        PreconditionError: If either template is missing.  Row-level
            render failures never raise.
    """
    if not buyer_template:
        raise PreconditionError("No buyer template loaded.")
    if not seller_template:
        raise PreconditionError("No seller template loaded.")

    result = GenerationResult()
    normalizer = RowNormalizer(field_map)
    used_names = UsedNameSet()
    first_row_for_key: dict[tuple[str, str], int] = {}

    # ------------------------------------------------------------------
    # Phase 1: normalize and allocate filenames, strictly in row order
    # ------------------------------------------------------------------
    total_rows = len(rows)
    for position, row in enumerate(rows):
        if progress is not None:
            progress(PHASE_NORMALIZING, position + 1, total_rows)

        if is_blank_row(row):
            result.skipped_blank_rows += 1
            continue

        record = normalizer.normalize(row)
        names = derive_names(record, used_names)
        index = len(result.lots)

        lot = Lot(
            lot_id=f"{record.contract_no}|{record.lot_no}|{index}",
            index=index,
            source_row=position + 1,
            record=record,
            buyer_filename=names.buyer,
            seller_filename=names.seller,
        )
        result.lots.append(lot)

        business_key = (record.contract_no.lower(), record.buyer.lower())
        if business_key in first_row_for_key:
            warning = (
                f"Row {lot.row_number} repeats contract {record.contract_no or '(blank)'} "
                f"/ buyer {record.buyer or '(blank)'} from row "
                f"{first_row_for_key[business_key]}; saved as '{lot.buyer_filename}'"
            )
            result.duplicate_keys.append(warning)
            logger.warning(warning)
        else:
            first_row_for_key[business_key] = lot.row_number

    # ------------------------------------------------------------------
    # Phase 2: render both contracts per lot
    # ------------------------------------------------------------------
    total_lots = len(result.lots)
    for lot in result.lots:
        if progress is not None:
            progress(PHASE_RENDERING, lot.index + 1, total_lots)

        lot.buyer_doc = _render_side(lot, "buyer", buyer_template, engine)
        lot.seller_doc = _render_side(lot, "seller", seller_template, engine)

        if lot.is_complete:
            result.succeeded += 1
            continue

        result.failed += 1
        message = "; ".join(
            f"{side} contract failed: {explanation}"
            for side, explanation in lot.errors.items()
        )
        row_error = RowError(lot.row_number, lot.source_row, lot.contract_no, message)
        result.errors.append(row_error)
        logger.warning(str(row_error))

    logger.info(
        f"Generation pass complete: {result.total} lots, "
        f"{result.succeeded} succeeded, {result.failed} failed, "
        f"{result.skipped_blank_rows} blank rows skipped"
    )
    return result


def filter_lots(
    lots: Sequence[Lot],
    only_with_buyer: bool = False,
    only_with_consignor: bool = False,
) -> list[Lot]:
    """Display filter: keep lots whose buyer / consignor field is filled in."""
    return [
        lot for lot in lots
        if (not only_with_buyer or lot.buyer)
        and (not only_with_consignor or lot.consignor)
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _render_side(
    lot: Lot,
    side: str,
    template: bytes,
    engine: TemplateEngine,
) -> bytes | None:
    """Render one side of a lot; on failure record the reason and return None."""
    try:
        return render_document(template, lot.record, engine, label=f"{side} contract")
    except RenderError as exc:
        lot.errors[side] = exc.explanation
        logger.debug(f"Row {lot.row_number}: {side} render failed: {exc.explanation}")
        return None
