"""
Shared fixtures: in-memory DOCX templates and sale sheets.

Templates are built with python-docx so tests never depend on binary files.
"""

import csv
import io

import pytest
from docx import Document


def _build_docx(
    paragraphs: list[str] | None = None,
    table: list[list[str]] | None = None,
    header: str | None = None,
    footer: str | None = None,
    split_runs: list[list[str]] | None = None,
) -> bytes:
    document = Document()
    for text in paragraphs or []:
        document.add_paragraph(text)
    for pieces in split_runs or []:
        paragraph = document.add_paragraph()
        for piece in pieces:
            paragraph.add_run(piece)
    if table:
        docx_table = document.add_table(rows=len(table), cols=len(table[0]))
        for row_idx, row in enumerate(table):
            for col_idx, text in enumerate(row):
                docx_table.cell(row_idx, col_idx).text = text
    section = document.sections[0]
    if header is not None:
        section.header.is_linked_to_previous = False
        section.header.paragraphs[0].text = header
    if footer is not None:
        section.footer.is_linked_to_previous = False
        section.footer.paragraphs[0].text = footer

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def docx_text(data: bytes) -> str:
    """All body, table, header and footer text of a .docx, newline-joined."""
    document = Document(io.BytesIO(data))
    lines = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            for cell in row.cells:
                lines.extend(p.text for p in cell.paragraphs)
    section = document.sections[0]
    if not section.header.is_linked_to_previous:
        lines.extend(p.text for p in section.header.paragraphs)
    if not section.footer.is_linked_to_previous:
        lines.extend(p.text for p in section.footer.paragraphs)
    return "\n".join(lines)


@pytest.fixture
def make_docx():
    """Factory fixture: make_docx(paragraphs=[...], table=[[...]], ...) → bytes."""
    return _build_docx


@pytest.fixture
def read_docx_text():
    return docx_text


@pytest.fixture
def buyer_template() -> bytes:
    return _build_docx([
        "BUYER CONTRACT {contract_no}",
        "Buyer: {buyer}",
        "Lot {lot_no}: {head_count} head {breed} {sex}",
        "Price: ${price_cwt}/cwt  Down: ${down_money_due}",
        "Location: {Location}",
    ])


@pytest.fixture
def seller_template() -> bytes:
    return _build_docx([
        "SELLER CONTRACT {contract_no}",
        "Consignor: {consignor}",
        "Delivery: {delivery} from {location}",
    ])


@pytest.fixture
def sale_row() -> dict[str, str]:
    return {
        "Contract #": "A1",
        "Consignor": "Smith",
        "Buyer": "Jones",
        "Lot Number #2": "7",
        "Head Count": "60",
        "Breed": "Angus",
        "Sex": "Steers",
        "Location": "Fort Worth",
        "Calculated High Bid": "$1,250.50",
        "Down Money Due": "$3,000",
        "Delivery": "May",
    }


@pytest.fixture
def make_csv():
    """Factory fixture: make_csv(headers, rows) → UTF-8 CSV bytes."""

    def _make(headers: list[str], rows: list[list[str]], encoding: str = "utf-8") -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(headers)
        writer.writerows(rows)
        return buffer.getvalue().encode(encoding)

    return _make
