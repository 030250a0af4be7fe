"""
DOCX template filler — replaces {placeholder} tags in a Word document.

Tags use single-brace delimiters, e.g. "{contract_no}" or "{ Location }"
(whitespace inside the braces is ignored, names are case-sensitive).  Word
often splits a typed tag over several runs ("{contr", "act_no}") when spell
check or formatting touches it; tags are matched on the joined paragraph text
and replaced in place, keeping the formatting of the run where the tag starts.

Searched: every paragraph of the main document, header and footer parts,
wherever it sits (tables, nested tables, text boxes), and every run of a
paragraph, including runs wrapped in hyperlinks, content controls, simple
fields and tracked insertions.  The same traversal feeds list_placeholders,
so the tags it reports are exactly the tags fill_template resolves.

Values containing newlines are written with line breaks.

The filler works on the Document it loads from the given bytes and never
touches the caller's buffer.

Public API:
    fill_template(template_bytes, placeholders) → bytes
    list_placeholders(template_bytes) → list[str]

Raises TemplateError for a container that is not a DOCX, unknown
placeholder names, empty tags, and unbalanced braces.
"""

import io
import logging
import re
import zipfile
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from docx import Document
from docx.document import Document as DocumentObject
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.oxml.text.run import CT_R
from docx.oxml.xmlchemy import BaseOxmlElement

logger = logging.getLogger(__name__)

_TAG_PATTERN: re.Pattern = re.compile(r"\{([^{}]*)\}")

_W_P: str = qn("w:p")
_W_R: str = qn("w:r")

# Parts besides the main document whose text is filled.
_STORY_RELTYPES: frozenset[str] = frozenset({RT.HEADER, RT.FOOTER})

# Longest paragraph excerpt quoted in an error message.
_EXCERPT_LENGTH: int = 60


class TemplateError(Exception):
    """The template could not be filled; *explanation* says why."""

    def __init__(self, explanation: str) -> None:
        self.explanation = explanation
        super().__init__(explanation)


@dataclass
class _TagProblems:
    """Problems collected over a whole document before raising."""

    unknown: list[str] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)

    def add_unknown(self, name: str) -> None:
        if name not in self.unknown:
            self.unknown.append(name)

    def explanation(self) -> str:
        parts: list[str] = []
        if self.unknown:
            names = ", ".join(f"{{{name}}}" for name in self.unknown)
            parts.append(f"unknown placeholder(s): {names}")
        parts.extend(self.malformed)
        return "; ".join(parts)


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def fill_template(template_bytes: bytes, placeholders: Mapping[str, str]) -> bytes:
    """
    Fill every {tag} in a DOCX template and return the new document.

    Args:
        template_bytes: The template .docx file contents.
        placeholders: {placeholder name: replacement text}.

    Returns:
        Bytes of the filled .docx document.

    Raises:
        TemplateError: If the template is not a DOCX file, or any tag is
            unknown or malformed (all such tags are reported together).
    """
    document = _load(template_bytes)
    problems = _TagProblems()
    replaced = 0

    for runs in _iter_paragraph_runs(document):
        replaced += _fill_paragraph(runs, placeholders, problems)

    if problems.unknown or problems.malformed:
        raise TemplateError(problems.explanation())

    output = io.BytesIO()
    document.save(output)
    logger.debug(f"Filled {replaced} placeholder(s)")
    return output.getvalue()


def list_placeholders(template_bytes: bytes) -> list[str]:
    """Distinct tag names in document order (malformed tags are ignored)."""
    document = _load(template_bytes)
    names: list[str] = []

    for runs in _iter_paragraph_runs(document):
        text = "".join(run.text for run in runs)
        for match in _TAG_PATTERN.finditer(text):
            name = match.group(1).strip()
            if name and name not in names:
                names.append(name)
    return names


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _load(template_bytes: bytes) -> DocumentObject:
    """Open a Document from bytes; BytesIO copies them, so the caller's buffer is safe."""
    if not template_bytes:
        raise TemplateError("template is empty")
    try:
        return Document(io.BytesIO(template_bytes))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise TemplateError(f"template is not a valid .docx file ({exc})") from exc


# ── Paragraph traversal ───────────────────────────────────────────────

def _iter_story_roots(document: DocumentObject) -> Iterator[BaseOxmlElement]:
    """Root element of the main document part, then of every header/footer part."""
    yield document.element

    seen_parts: set[int] = set()
    for rel in document.part.rels.values():
        if rel.is_external or rel.reltype not in _STORY_RELTYPES:
            continue
        part = rel.target_part
        if id(part) in seen_parts:
            continue
        seen_parts.add(id(part))
        yield part.element


def _iter_paragraph_runs(document: DocumentObject) -> Iterator[list[CT_R]]:
    """
    The runs of every w:p in document order.

    Walking the XML rather than python-docx's Paragraph objects also reaches
    runs inside hyperlinks, content controls, field codes, tracked insertions
    and text boxes.  Each list holds only the paragraph's own runs; a text box
    paragraph nested inside a run is yielded on its own.
    """
    for root in _iter_story_roots(document):
        # Materialized: callers rewrite run content between yields
        for paragraph in list(root.iter(_W_P)):
            runs = [
                run for run in paragraph.iter(_W_R)
                if _owning_paragraph(run) is paragraph
            ]
            if runs:
                yield runs


def _owning_paragraph(run: CT_R) -> BaseOxmlElement | None:
    parent = run.getparent()
    while parent is not None and parent.tag != _W_P:
        parent = parent.getparent()
    return parent


# ── Tag replacement ───────────────────────────────────────────────────

def _fill_paragraph(
    runs: list[CT_R],
    placeholders: Mapping[str, str],
    problems: _TagProblems,
) -> int:
    """
    Replace the tags of one paragraph in place.

    Returns:
        Number of tags replaced.  Problems are recorded, not raised.
    """
    original = [run.text for run in runs]
    texts = list(original)
    full_text = "".join(original)

    if "{" not in full_text and "}" not in full_text:
        return 0

    leftover = _TAG_PATTERN.sub("", full_text)
    if "{" in leftover or "}" in leftover:
        problems.malformed.append(
            f"unbalanced braces in paragraph \"{_excerpt(full_text)}\""
        )
        return 0

    matches = list(_TAG_PATTERN.finditer(full_text))
    replacements: list[tuple[int, int, str]] = []
    for match in matches:
        name = match.group(1).strip()
        if not name:
            problems.malformed.append(
                f"empty tag in paragraph \"{_excerpt(full_text)}\""
            )
            continue
        if name not in placeholders:
            problems.add_unknown(name)
            continue
        value = placeholders[name]
        replacements.append((match.start(), match.end(), "" if value is None else str(value)))

    if len(replacements) != len(matches):
        return 0

    # Start offset of every run within the joined text
    starts: list[int] = []
    offset = 0
    for text in original:
        starts.append(offset)
        offset += len(text)

    # Right to left, so earlier offsets stay valid
    for start, end, value in reversed(replacements):
        first = _run_at(starts, original, start)
        last = _run_at(starts, original, end - 1)

        head = texts[first][: start - starts[first]]
        tail = texts[last][end - starts[last]:]
        if first == last:
            texts[first] = head + value + tail
        else:
            texts[first] = head + value
            for index in range(first + 1, last):
                texts[index] = ""
            texts[last] = tail

    for run, before, after in zip(runs, original, texts):
        if after != before:
            run.text = after

    return len(replacements)


def _run_at(starts: list[int], texts: list[str], position: int) -> int:
    """Index of the run holding character *position* of the joined text."""
    for index, start in enumerate(starts):
        if start <= position < start + len(texts[index]):
            return index
    return len(starts) - 1


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) <= _EXCERPT_LENGTH:
        return text
    return text[: _EXCERPT_LENGTH - 3] + "..."
