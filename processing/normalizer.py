"""
Row normalizer — turns one raw sheet row into the data a contract is filled with.

For each canonical key in the field map:
  1. Read the preferred column's cell, trimmed.
  2. If empty, try each fallback column in order until one is non-empty.
  3. For money keys (price_cwt, down_money_due), strip every "$" and ","
     and trim again.

Missing columns and empty cells become "", never an error.  Optional lot
details (breed, sex, description, ...) vary from sale to sale and templates
simply print nothing for them.

A "Location" alias mirrors "location" for templates written with either
casing.  All raw columns are also passed through (trimmed) so a template can
use a sheet column name directly as a placeholder.

Public API:
    RowNormalizer(field_map).normalize(row) → NormalizedRecord
    normalize(row, field_map=None) → NormalizedRecord
    is_blank_row(row) → bool
"""

import logging
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from config.schema import FIELD_MAP, LOCATION_ALIAS, MONEY_FIELDS, FieldSpec

logger = logging.getLogger(__name__)

_MONEY_CHARS: str = "$,"


# ═══════════════════════════════════════════════════════════════════════════
# Data class
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NormalizedRecord(Mapping):
    """
    Cleaned document data for one row.

    Behaves as a read-only mapping over the canonical fields (plus the
    Location alias).  ``record[key]`` raises KeyError for keys outside the
    field map; ``record.value(key)`` reads them as "".  Records compare by
    value and are not hashable.
    """

    __hash__ = None

    fields: Mapping[str, str] = field(default_factory=dict)
    passthrough: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(
            self, "passthrough", MappingProxyType(dict(self.passthrough))
        )

    def __getitem__(self, key: str) -> str:
        return self.fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def value(self, key: str) -> str:
        """Field value, or "" when *key* is not in the field map."""
        return self.fields.get(key, "")

    @property
    def contract_no(self) -> str:
        return self.value("contract_no")

    @property
    def buyer(self) -> str:
        return self.value("buyer")

    @property
    def consignor(self) -> str:
        return self.value("consignor")

    @property
    def lot_no(self) -> str:
        return self.value("lot_no")

    def placeholders(self) -> dict[str, str]:
        """Values handed to the template engine; canonical fields win on a clash."""
        merged = dict(self.passthrough)
        merged.update(self.fields)
        return merged


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

class RowNormalizer:
    """Normalizes rows against one field map."""

    def __init__(self, field_map: Mapping[str, FieldSpec] | None = None) -> None:
        self.field_map: Mapping[str, FieldSpec] = MappingProxyType(
            dict(FIELD_MAP if field_map is None else field_map)
        )

    def normalize(self, row: Mapping[str, object]) -> NormalizedRecord:
        """
        Map one raw row to a NormalizedRecord.

        Args:
            row: {column name: cell value} as produced by the sheet reader.

        Returns:
            NormalizedRecord with every field-map key present.
        """
        values: dict[str, str] = {}

        for key, spec in self.field_map.items():
            value = _cell(row, spec.column)
            if not value:
                for fallback in spec.fallbacks:
                    value = _cell(row, fallback)
                    if value:
                        logger.debug(f"'{key}' resolved from fallback '{fallback}'")
                        break
            if key in MONEY_FIELDS:
                value = clean_money(value)
            values[key] = value

        alias, source_key = LOCATION_ALIAS
        values[alias] = values.get(source_key, "")

        passthrough = {str(column): _cell(row, column) for column in row}
        return NormalizedRecord(fields=values, passthrough=passthrough)


_DEFAULT_NORMALIZER = RowNormalizer()


def normalize(
    row: Mapping[str, object],
    field_map: Mapping[str, FieldSpec] | None = None,
) -> NormalizedRecord:
    """Normalize one row with *field_map* (default: config.schema.FIELD_MAP)."""
    if field_map is None:
        return _DEFAULT_NORMALIZER.normalize(row)
    return RowNormalizer(field_map).normalize(row)


def is_blank_row(row: Mapping[str, object]) -> bool:
    """True when no cell in *row* has non-whitespace content."""
    return not any(_as_text(value).strip() for value in row.values())


def clean_money(value: str) -> str:
    """Strip currency symbols and thousands separators: "$1,250.00" → "1250.00"."""
    for char in _MONEY_CHARS:
        value = value.replace(char, "")
    return value.strip()


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _cell(row: Mapping[str, object], column: str) -> str:
    return _as_text(row.get(column)).strip()


def _as_text(value: object) -> str:
    """None and NaN read as empty; everything else as str()."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)
