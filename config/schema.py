"""
Input schema and field mapping for the contract generator.

Defines the columns an uploaded sale sheet must carry, and how each canonical
placeholder key used by the contract templates is read from a sheet row.

Source of truth: the buyer/seller DOCX templates. Every {placeholder} they
use is either a key in FIELD_MAP or a raw column name passed through as-is.
"""

from dataclasses import dataclass


# Columns that must be present in the decoded header row, in report order.
# Matching is exact and case-sensitive.
REQUIRED_COLUMNS: list[str] = [
    "Contract #",
    "Consignor",
    "Buyer",
    "Lot Number #2",
]

# Required as well when the Head-Count variant is switched on
# (see config/settings.py).
HEAD_COUNT_COLUMN: str = "Head Count"


@dataclass(frozen=True)
class FieldSpec:
    """Where a canonical field key reads its value from."""

    column: str
    fallbacks: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Canonical field key → source column (+ ordered fallback columns).
# Fallbacks are only consulted when the preferred cell is empty.
# ---------------------------------------------------------------------------
FIELD_MAP: dict[str, FieldSpec] = {
    "contract_no": FieldSpec("Contract #"),
    "consignor": FieldSpec("Consignor"),
    "buyer": FieldSpec("Buyer"),
    "lot_no": FieldSpec("Lot Number #2"),
    "head_count": FieldSpec("Head Count"),
    "breed": FieldSpec("Breed"),
    "sex": FieldSpec("Sex"),
    "base_weight": FieldSpec("Base Weight"),
    "delivery": FieldSpec("Delivery"),
    "year": FieldSpec("Year"),
    "location": FieldSpec("Location"),
    "shrink": FieldSpec("Shrink"),
    "slide": FieldSpec("Slide"),
    "description": FieldSpec("Description"),
    "second_description": FieldSpec("Second Description"),
    "price_cwt": FieldSpec("Calculated High Bid", ("High Bid", "Price")),
    "down_money_due": FieldSpec("Down Money Due", ("Down Money",)),
}

# Monetary keys: "$" and "," are stripped from these values.
MONEY_FIELDS: frozenset[str] = frozenset({"price_cwt", "down_money_due"})

# Older templates use {Location} instead of {location}.
LOCATION_ALIAS: tuple[str, str] = ("Location", "location")
