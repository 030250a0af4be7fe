"""
Generation session — the working state behind one operator's browser session.

Holds the uploaded sheet, both templates, and the latest GenerationResult,
and walks each pass through:

    Idle → Validating → (Invalid | Normalizing) → Rendering → Built

  - Validation runs once per sheet upload.  A sheet with missing columns
    puts the session in Invalid and generation is refused until a corrected
    sheet is loaded.
  - A pass always starts from scratch (fresh lots, fresh filename set).
  - Pass-level failures (decode, schema, missing inputs) leave the previous
    state untouched; a result is published only when the pass completes.

The Streamlit page keeps one ContractSession in st.session_state and calls
into it; nothing here imports streamlit.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from config.settings import AppSettings
from output.bundle_assembler import BundleMode, archive_filename, assemble
from processing.errors import PreconditionError, SchemaError
from processing.file_reader import TableReadResult, read_table
from processing.lot_builder import (
    PHASE_RENDERING,
    GenerationResult,
    Lot,
    ProgressCallback,
    build_lots,
)
from processing.schema_validator import ensure_valid

logger = logging.getLogger(__name__)


class PassState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    NORMALIZING = "normalizing"
    RENDERING = "rendering"
    BUILT = "built"


class TemplateRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


@dataclass
class LoadedTemplate:
    name: str
    data: bytes


@dataclass
class ContractSession:
    """Uploads, validation outcome and generated lots for one session."""

    settings: AppSettings = field(default_factory=AppSettings)
    state: PassState = PassState.IDLE
    sheet_name: str = ""
    headers: list[str] = field(default_factory=list)
    table: TableReadResult | None = None
    rows: list[dict[str, str]] = field(default_factory=list)
    schema_error: SchemaError | None = None
    templates: dict[TemplateRole, LoadedTemplate] = field(default_factory=dict)
    result: GenerationResult | None = None
    # mode → (selection the archive was built for, archive bytes)
    _bundles: dict[BundleMode, tuple[frozenset[str], bytes]] = field(
        default_factory=dict, init=False, repr=False
    )

    # ── Uploads ──────────────────────────────────────────────────────

    def load_table(self, data: bytes, filename: str) -> int:
        """
        Decode and validate an uploaded sheet.

        Returns:
            Number of data rows loaded.

        Raises:
            DecodeError: Unreadable file; the session is left unchanged.
            SchemaError: Required columns missing; rows are cleared and the
                session is Invalid until a corrected sheet is loaded.
        """
        table = read_table(data, filename)

        self.state = PassState.VALIDATING
        try:
            ensure_valid(table.headers, self.settings.require_head_count)
        except SchemaError as exc:
            self.sheet_name = filename
            self.table = table
            self.headers = table.headers
            self.rows = []
            self.result = None
            self.schema_error = exc
            self.state = PassState.INVALID
            raise

        self.sheet_name = filename
        self.table = table
        self.headers = table.headers
        self.rows = table.rows
        self.schema_error = None
        self.result = None
        self.state = PassState.IDLE
        logger.info(f"Sheet '{filename}' loaded: {len(self.rows)} rows")
        return len(self.rows)

    def revalidate(self) -> None:
        """Re-check the loaded sheet, e.g. after the Head-Count setting changed."""
        if self.table is None:
            return
        try:
            ensure_valid(self.table.headers, self.settings.require_head_count)
        except SchemaError as exc:
            self.rows = []
            self.result = None
            self.schema_error = exc
            self.state = PassState.INVALID
            return
        self.schema_error = None
        if self.state is PassState.INVALID:
            self.rows = self.table.rows
            self.state = PassState.IDLE

    def load_template(self, role: TemplateRole | str, data: bytes, filename: str) -> None:
        role = TemplateRole(role)
        if not data:
            raise PreconditionError(f"The {role.value} template '{filename}' is empty.")
        self.templates[role] = LoadedTemplate(name=filename, data=bytes(data))
        logger.info(f"{role.value.capitalize()} template loaded: '{filename}'")

    def template_name(self, role: TemplateRole | str) -> str:
        template = self.templates.get(TemplateRole(role))
        return template.name if template else ""

    # ── Generation ───────────────────────────────────────────────────

    @property
    def can_generate(self) -> bool:
        return (
            self.state is not PassState.INVALID
            and bool(self.rows)
            and TemplateRole.BUYER in self.templates
            and TemplateRole.SELLER in self.templates
        )

    def generate(self, progress: ProgressCallback | None = None) -> GenerationResult:
        """
        Run a full generation pass over the loaded rows.

        Raises:
            SchemaError: The loaded sheet failed validation.
            PreconditionError: No rows or a template is missing.
        """
        if self.state is PassState.INVALID and self.schema_error is not None:
            raise self.schema_error
        if not self.rows:
            raise PreconditionError("No data rows loaded; upload a sale sheet first.")
        missing = [role.value for role in TemplateRole if role not in self.templates]
        if missing:
            raise PreconditionError(f"Missing template(s): {', '.join(missing)}.")

        previous_state = self.state

        def _track(phase: str, done: int, total: int) -> None:
            if phase == PHASE_RENDERING:
                self.state = PassState.RENDERING
            if progress is not None:
                progress(phase, done, total)

        self.state = PassState.NORMALIZING
        try:
            result = build_lots(
                self.rows,
                self.templates[TemplateRole.BUYER].data,
                self.templates[TemplateRole.SELLER].data,
                progress=_track,
            )
        except Exception:
            self.state = previous_state
            raise

        self.result = result
        self._bundles.clear()
        self.state = PassState.BUILT
        return result

    @property
    def lots(self) -> list[Lot]:
        return self.result.lots if self.result is not None else []

    # ── Selection ────────────────────────────────────────────────────

    def selected_ids(self) -> set[str]:
        return {lot.lot_id for lot in self.lots if lot.selected}

    def set_selected(self, lot_id: str, selected: bool) -> None:
        for lot in self.lots:
            if lot.lot_id == lot_id:
                lot.selected = selected
                return
        raise KeyError(lot_id)

    def select_all(self, selected: bool = True) -> None:
        for lot in self.lots:
            lot.selected = selected

    # ── Bundles ──────────────────────────────────────────────────────

    def cached_bundle(self, mode: BundleMode | str) -> tuple[str, bytes] | None:
        """The archive last built for *mode*, if the pass and selection are unchanged."""
        bundle_mode = BundleMode.parse(mode)
        cached = self._bundles.get(bundle_mode)
        if cached is None or self.result is None:
            return None
        selection, archive = cached
        if selection != frozenset(self.selected_ids()):
            return None
        return archive_filename(bundle_mode), archive

    def build_bundle(self, mode: BundleMode | str) -> tuple[str, bytes]:
        """
        ZIP the current selection (or every lot when nothing is selected).

        The archive is kept per mode and reused until the selection changes
        or a new pass runs.

        Returns:
            (download filename, archive bytes)

        Raises:
            AssemblyError: Nothing matches the mode and selection.
        """
        cached = self.cached_bundle(mode)
        if cached is not None:
            return cached

        bundle_mode = BundleMode.parse(mode)
        selection = frozenset(self.selected_ids())
        archive = assemble(self.lots, bundle_mode, selection)
        self._bundles[bundle_mode] = (selection, archive)
        return archive_filename(bundle_mode), archive

    # ── Reset ────────────────────────────────────────────────────────

    def clear(self) -> None:
        """Forget every upload and result; settings are kept."""
        self.state = PassState.IDLE
        self.sheet_name = ""
        self.headers = []
        self.table = None
        self.rows = []
        self.schema_error = None
        self.templates = {}
        self.result = None
        self._bundles.clear()
        logger.info("Session cleared")
