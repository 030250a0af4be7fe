"""
Streamlit entry point — Contract Generator UI.

Turns a sale-results sheet into buyer and seller contracts:
  1. Access gate (shared PIN; hides the page on a shared office screen)
  2. Sidebar settings (Head-Count variant, lock/exit)
  3. Upload sale sheet (CSV/XLSX) + buyer and seller DOCX templates
  4. Validation status for the sheet
  5. Generate contracts with progress bar
  6. Results: summary metrics, row errors, duplicate warnings, lot table
     with filters and selection
  7. Downloads: single lot, Buyer / Seller / All ZIP

Contains NO business logic: it only calls the processing/output modules and
displays results.
"""

import logging

import pandas as pd
import streamlit as st

from config.naming import DOCX_MIME, ZIP_MIME
from config.settings import AppSettings
from output.bundle_assembler import BundleMode
from output.docx_filler import TemplateError, list_placeholders
from processing.errors import (
    AssemblyError,
    ContractGeneratorError,
    DecodeError,
    PreconditionError,
    SchemaError,
)
from processing.lot_builder import PHASE_NORMALIZING, filter_lots
from processing.normalizer import normalize
from processing.schema_validator import required_columns
from processing.session import ContractSession, PassState, TemplateRole

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Page configuration
# ═══════════════════════════════════════════════════════════════════════════

st.set_page_config(
    page_title="Contract Generator",
    page_icon="📝",
    layout="wide",
    initial_sidebar_state="expanded",
)


# ═══════════════════════════════════════════════════════════════════════════
# Session state initialisation
# ═══════════════════════════════════════════════════════════════════════════

def _init_session_state() -> None:
    """Ensure all required session state keys exist with sensible defaults."""
    if "settings" not in st.session_state:
        st.session_state["settings"] = AppSettings.from_secrets(_read_secrets())
    defaults: dict = {
        "unlocked": False,
        "contract_session": ContractSession(settings=st.session_state["settings"]),
        "uploader_nonce": 0,
        "pass_nonce": 0,
        "status": None,
        "_prev_sheet": None,
        "_prev_buyer_tpl": None,
        "_prev_seller_tpl": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _read_secrets() -> dict:
    """st.secrets raises when no secrets.toml exists; treat that as empty."""
    try:
        return dict(st.secrets)
    except Exception:
        return {}


def _set_status(kind: str, message: str) -> None:
    st.session_state["status"] = (kind, message)


def _show_status() -> None:
    status = st.session_state.get("status")
    if not status:
        return
    kind, message = status
    show = {"ok": st.success, "warn": st.warning, "bad": st.error}.get(kind, st.info)
    show(message)


def _upload_signature(uploaded_file) -> tuple[str, int] | None:
    if uploaded_file is None:
        return None
    return uploaded_file.name, uploaded_file.size


_init_session_state()
session: ContractSession = st.session_state["contract_session"]
settings: AppSettings = st.session_state["settings"]


# ═══════════════════════════════════════════════════════════════════════════
# Access gate
# ═══════════════════════════════════════════════════════════════════════════

if not st.session_state["unlocked"]:
    st.title("🔒 Contract Generator")
    with st.form("pin_form", clear_on_submit=True):
        pin = st.text_input("Enter PIN", type="password", max_chars=12)
        unlock = st.form_submit_button("Unlock", type="primary")
    if unlock:
        if pin == settings.access_pin:
            st.session_state["unlocked"] = True
            st.rerun()
        else:
            st.error("Incorrect PIN.")
    st.stop()


# ═══════════════════════════════════════════════════════════════════════════
# Sidebar — Settings
# ═══════════════════════════════════════════════════════════════════════════

st.sidebar.title("⚙️ Settings")
st.sidebar.caption("🔓 Unlocked")

require_head_count = st.sidebar.toggle(
    "Require 'Head Count' column",
    value=settings.require_head_count,
    help="Some sales print head count on the contract; refuse sheets without it.",
)
if require_head_count != settings.require_head_count:
    settings = settings.with_head_count(require_head_count)
    st.session_state["settings"] = settings
    session.settings = settings
    session.revalidate()

st.sidebar.markdown("**Required columns**")
st.sidebar.code("\n".join(required_columns(settings.require_head_count)), language=None)

st.sidebar.divider()
if st.sidebar.button("🚪 Exit & lock", use_container_width=True):
    session.clear()
    st.session_state["uploader_nonce"] += 1
    st.session_state["status"] = None
    st.session_state["unlocked"] = False
    st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# Main area — Title
# ═══════════════════════════════════════════════════════════════════════════

st.title("📝 Contract Generator")
st.caption(
    "Upload the sale results sheet and the buyer/seller contract templates "
    "to produce one buyer and one seller contract per lot."
)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: File Upload
# ═══════════════════════════════════════════════════════════════════════════

st.header("📁 Upload Files")

nonce = st.session_state["uploader_nonce"]
upload_col1, upload_col2, upload_col3 = st.columns(3)

with upload_col1:
    sheet_file = st.file_uploader(
        "Sale sheet",
        type=["csv", "xlsx"],
        key=f"sheet_{nonce}",
        help="CSV or Excel export of the sale results, one row per lot.",
    )
with upload_col2:
    buyer_tpl_file = st.file_uploader(
        "Buyer contract template",
        type=["docx"],
        key=f"buyer_tpl_{nonce}",
    )
with upload_col3:
    seller_tpl_file = st.file_uploader(
        "Seller contract template",
        type=["docx"],
        key=f"seller_tpl_{nonce}",
    )

# Validate each upload once, when it changes
if _upload_signature(sheet_file) != st.session_state["_prev_sheet"]:
    st.session_state["_prev_sheet"] = _upload_signature(sheet_file)
    if sheet_file is not None:
        try:
            row_count = session.load_table(sheet_file.getvalue(), sheet_file.name)
            _set_status("ok", f"Sheet loaded. Rows: {row_count}")
        except (DecodeError, SchemaError) as exc:
            _set_status("bad", str(exc))

for role, uploaded, prev_key in (
    (TemplateRole.BUYER, buyer_tpl_file, "_prev_buyer_tpl"),
    (TemplateRole.SELLER, seller_tpl_file, "_prev_seller_tpl"),
):
    if _upload_signature(uploaded) == st.session_state[prev_key]:
        continue
    st.session_state[prev_key] = _upload_signature(uploaded)
    if uploaded is None:
        continue
    try:
        session.load_template(role, uploaded.getvalue(), uploaded.name)
        _set_status("ok", f"{role.value.capitalize()} template loaded.")
    except PreconditionError as exc:
        _set_status("bad", str(exc))

meta_col1, meta_col2, meta_col3 = st.columns(3)
meta_col1.caption(session.sheet_name or "No sheet loaded")
meta_col2.caption(session.template_name(TemplateRole.BUYER) or "No buyer template")
meta_col3.caption(session.template_name(TemplateRole.SELLER) or "No seller template")

if session.state is PassState.INVALID and session.schema_error is not None:
    st.error(str(session.schema_error))
else:
    _show_status()

# Warn early about template tags the sheet cannot fill
if session.rows and session.templates:
    sample_fields = normalize(session.rows[0]).placeholders()
    for role, template in session.templates.items():
        try:
            unknown = [
                name for name in list_placeholders(template.data)
                if name not in sample_fields
            ]
        except TemplateError as exc:
            st.warning(f"{role.value.capitalize()} template: {exc.explanation}")
            continue
        if unknown:
            st.warning(
                f"{role.value.capitalize()} template uses placeholders the sheet "
                f"does not provide: {', '.join('{' + n + '}' for n in unknown)}"
            )


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Generate
# ═══════════════════════════════════════════════════════════════════════════

st.divider()
gen_col, clear_col = st.columns([3, 1])

with gen_col:
    generate_clicked = st.button(
        "Generate Contracts ▶",
        type="primary",
        use_container_width=True,
        disabled=not session.can_generate,
    )
with clear_col:
    if st.button("Clear", use_container_width=True):
        session.clear()
        st.session_state["uploader_nonce"] += 1
        st.session_state["_prev_sheet"] = None
        st.session_state["_prev_buyer_tpl"] = None
        st.session_state["_prev_seller_tpl"] = None
        _set_status("ok", "Cleared.")
        st.rerun()

if generate_clicked:
    progress_bar = st.progress(0, text="Generating contracts...")

    def _on_progress(phase: str, done: int, total: int) -> None:
        # Normalizing is quick; give it the first 10% of the bar
        fraction = done / total if total else 1.0
        if phase == PHASE_NORMALIZING:
            progress_bar.progress(fraction * 0.1, text="Reading rows...")
        else:
            progress_bar.progress(
                0.1 + fraction * 0.9,
                text=f"Rendering lot {done}/{total}...",
            )

    try:
        result = session.generate(progress=_on_progress)
        st.session_state["pass_nonce"] += 1
        progress_bar.progress(1.0, text="Generation complete!")
        _set_status("ok" if not result.failed else "warn",
                    f"Generated {result.total} lots ({result.failed} with errors).")
        st.rerun()
    except ContractGeneratorError as exc:
        progress_bar.empty()
        st.error(str(exc))
    except Exception as exc:
        progress_bar.empty()
        logger.error(f"Generation failed: {exc}", exc_info=True)
        st.error(f"Generation failed: {exc}")


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Results
# ═══════════════════════════════════════════════════════════════════════════

result = session.result
if result is not None:
    st.divider()
    st.header("📊 Results")

    metric_cols = st.columns(4)
    metric_cols[0].metric("Lots", result.total)
    metric_cols[1].metric("Succeeded", result.succeeded)
    metric_cols[2].metric("With errors", result.failed)
    metric_cols[3].metric("Blank rows skipped", result.skipped_blank_rows)

    if result.errors:
        with st.expander(f"⚠️ Row errors ({len(result.errors)})", expanded=True):
            for row_error in result.errors:
                st.text(str(row_error))

    if result.duplicate_keys:
        with st.expander(f"🔁 Repeated contract / buyer ({len(result.duplicate_keys)})"):
            st.caption(
                "These rows share a contract # and buyer with an earlier row. "
                "Their files were numbered; check the sheet for double entries."
            )
            for warning in result.duplicate_keys:
                st.text(warning)

    # ── Filters + selection ──────────────────────────────────────
    filter_col1, filter_col2, filter_col3 = st.columns([1, 1, 2])
    only_with_buyer = filter_col1.checkbox("Only lots with a buyer")
    only_with_consignor = filter_col2.checkbox("Only lots with a consignor")
    visible_lots = filter_lots(result.lots, only_with_buyer, only_with_consignor)

    with filter_col3:
        select_col, unselect_col = st.columns(2)
        if select_col.button("Select all", use_container_width=True):
            for lot in visible_lots:
                lot.selected = True
            st.session_state["pass_nonce"] += 1
            st.rerun()
        if unselect_col.button("Select none", use_container_width=True):
            session.select_all(False)
            st.session_state["pass_nonce"] += 1
            st.rerun()

    table = pd.DataFrame([
        {
            "Select": lot.selected,
            "Row": lot.row_number,
            "Contract #": lot.contract_no,
            "Lot #": lot.record.lot_no,
            "Buyer": lot.buyer,
            "Consignor": lot.consignor,
            "Buyer file": lot.buyer_filename if lot.has_buyer_doc else "— failed —",
            "Seller file": lot.seller_filename if lot.has_seller_doc else "— failed —",
            "_id": lot.lot_id,
        }
        for lot in visible_lots
    ])

    if table.empty:
        st.info("No lots match the current filters.")
    else:
        edited = st.data_editor(
            table,
            key=f"lots_editor_{st.session_state['pass_nonce']}",
            hide_index=True,
            use_container_width=True,
            column_config={"_id": None},
            disabled=[column for column in table.columns if column != "Select"],
        )
        for lot_id, selected in zip(edited["_id"], edited["Select"]):
            session.set_selected(lot_id, bool(selected))

    selected_count = len(session.selected_ids())
    st.caption(
        f"{selected_count} lot(s) selected. ZIP downloads use the selection, "
        "or every lot when nothing is selected."
    )

    # ── Single-lot download ──────────────────────────────────────
    with st.expander("📄 Download a single lot"):
        lot_labels = {
            f"Row {lot.row_number} — {lot.contract_no} — {lot.buyer}": lot
            for lot in visible_lots
        }
        if lot_labels:
            chosen = lot_labels[st.selectbox("Lot", list(lot_labels))]
            single_col1, single_col2 = st.columns(2)
            with single_col1:
                st.download_button(
                    "📥 Buyer contract",
                    data=chosen.buyer_doc or b"",
                    file_name=chosen.buyer_filename,
                    mime=DOCX_MIME,
                    disabled=not chosen.has_buyer_doc,
                    use_container_width=True,
                )
            with single_col2:
                st.download_button(
                    "📥 Seller contract",
                    data=chosen.seller_doc or b"",
                    file_name=chosen.seller_filename,
                    mime=DOCX_MIME,
                    disabled=not chosen.has_seller_doc,
                    use_container_width=True,
                )
            for side, explanation in chosen.errors.items():
                st.caption(f"{side.capitalize()} contract failed: {explanation}")

    # ── ZIP downloads ────────────────────────────────────────────
    st.divider()
    st.header("💾 Download")

    zip_cols = st.columns(3)
    for column, mode, label in (
        (zip_cols[0], BundleMode.BUYER, "📦 Buyer ZIP"),
        (zip_cols[1], BundleMode.SELLER, "📦 Seller ZIP"),
        (zip_cols[2], BundleMode.ALL, "📦 All ZIP"),
    ):
        with column:
            # Archives are built on request and reused until the selection changes
            bundle = session.cached_bundle(mode)
            if bundle is None and st.button(
                f"Prepare {label}", key=f"prepare_{mode.value}", use_container_width=True
            ):
                try:
                    bundle = session.build_bundle(mode)
                except AssemblyError as exc:
                    st.caption(str(exc))
            if bundle is None:
                continue
            filename, archive = bundle
            st.download_button(
                label,
                data=archive,
                file_name=filename,
                mime=ZIP_MIME,
                type="primary" if mode is BundleMode.ALL else "secondary",
                use_container_width=True,
                key=f"download_{mode.value}",
            )
