"""
Output naming configuration.

Filename patterns, archive groupings, and content types used by
processing/filename_deriver.py and output/bundle_assembler.py.

The buyer/seller filename patterns and grouping names are relied on by the
sale office's filing scripts; do not change them.
"""

import re

# ---------------------------------------------------------------------------
# Per-lot contract filenames.  Each {component} is sanitized separately.
# ---------------------------------------------------------------------------
BUYER_FILENAME_PATTERN: str = "{contract_no}-{buyer}.docx"
SELLER_FILENAME_PATTERN: str = "{consignor}-{contract_no}.docx"

DOCX_EXTENSION: str = ".docx"

# Characters Windows/macOS refuse in filenames.  A run of them becomes one "-".
RESERVED_CHARS_PATTERN: re.Pattern = re.compile(r'[/\\:*?"<>|]+')
WHITESPACE_PATTERN: re.Pattern = re.compile(r"\s+")

# Stands in for a filename component that sanitizes to nothing.
PLACEHOLDER_TOKEN: str = "UNKNOWN"

# Collision suffix inserted before the extension: "A1-Jones (2).docx".
COLLISION_SUFFIX: str = " ({n})"
FIRST_COLLISION_NUMBER: int = 2

# ---------------------------------------------------------------------------
# Archive layout
# ---------------------------------------------------------------------------
BUYER_GROUP: str = "Buyer Contracts"
SELLER_GROUP: str = "Seller Contracts"

# {mode} is buyer / seller / all; {date} is the ISO date of the download.
ARCHIVE_FILENAME_PATTERN: str = "{mode}_contracts_{date}.zip"

# ---------------------------------------------------------------------------
# MIME types for the download buttons
# ---------------------------------------------------------------------------
DOCX_MIME: str = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
ZIP_MIME: str = "application/zip"
