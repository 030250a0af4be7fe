"""
Document renderer — fills one contract template with one lot's data.

The template buffer is shared by every lot in a pass (and by both the buyer
and seller render of a lot when one template serves both), while the
template engine edits the document it loads in place.  Each call therefore
works on its own copy of the template bytes and returns a complete new
.docx; nothing carries over between calls.

Public API:
    render_document(template, record, engine=fill_template, label="") → bytes

Raises RenderError with a readable explanation on any engine failure.
"""

import logging
from collections.abc import Callable, Mapping

from output.docx_filler import TemplateError, fill_template
from processing.errors import RenderError
from processing.normalizer import NormalizedRecord

logger = logging.getLogger(__name__)

# fill(template_bytes, placeholders) → document bytes
TemplateEngine = Callable[[bytes, Mapping[str, str]], bytes]


def render_document(
    template: bytes,
    record: NormalizedRecord,
    engine: TemplateEngine = fill_template,
    label: str = "",
) -> bytes:
    """
    Render *record* into a copy of *template*.

    Args:
        template: Template .docx bytes; treated as read-only.
        record: Normalized lot data; its placeholders() feed the engine.
        engine: Template engine callable (python-docx filler by default).
        label: Short name for messages, e.g. "buyer contract".

    Returns:
        Bytes of the filled document.

    Raises:
        RenderError: If the engine rejects the template or the data.
    """
    working_copy = bytes(bytearray(template))

    try:
        document = engine(working_copy, record.placeholders())
    except TemplateError as exc:
        raise RenderError(exc.explanation, label) from exc
    except Exception as exc:
        logger.error(f"Template engine crashed rendering {label or 'document'}: {exc}",
                     exc_info=True)
        raise RenderError(f"unexpected template error ({exc})", label) from exc

    if not document:
        raise RenderError("template engine returned an empty document", label)

    return document
