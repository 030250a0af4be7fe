"""
Tests for processing/session.py

Covers: sheet loading (valid, invalid, undecodable), state transitions,
generation refusals, revalidation after a settings change, selection,
bundle building and caching, and clearing.
"""

import io
import zipfile

import pytest

from config.settings import AppSettings
from processing.errors import AssemblyError, DecodeError, PreconditionError, SchemaError
from processing.session import ContractSession, PassState, TemplateRole


HEADERS = ["Contract #", "Consignor", "Buyer", "Lot Number #2"]
ROWS = [["A1", "Smith", "Jones", "7"], ["A2", "Brown", "Green", "8"]]


@pytest.fixture
def sheet(make_csv) -> bytes:
    return make_csv(HEADERS, ROWS)


@pytest.fixture
def ready_session(sheet, buyer_template, seller_template) -> ContractSession:
    session = ContractSession()
    session.load_table(sheet, "sale.csv")
    session.load_template(TemplateRole.BUYER, buyer_template, "buyer.docx")
    session.load_template("seller", seller_template, "seller.docx")
    return session


def _zip_names(archive: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return zf.namelist()


# ═══════════════════════════════════════════════════════════════════════════
# Loading
# ═══════════════════════════════════════════════════════════════════════════

class TestLoadTable:
    def test_valid_sheet(self, sheet):
        session = ContractSession()
        assert session.load_table(sheet, "sale.csv") == 2
        assert session.state is PassState.IDLE
        assert session.sheet_name == "sale.csv"
        assert session.rows[0]["Buyer"] == "Jones"
        assert session.schema_error is None

    def test_missing_buyer_column(self, make_csv):
        session = ContractSession()
        bad = make_csv(["Contract #", "Consignor", "Lot Number #2"], [["A1", "Smith", "7"]])
        with pytest.raises(SchemaError) as exc_info:
            session.load_table(bad, "bad.csv")
        assert exc_info.value.missing == ["Buyer"]
        assert session.state is PassState.INVALID
        assert session.rows == []

    def test_decode_error_leaves_session_unchanged(self, sheet):
        session = ContractSession()
        session.load_table(sheet, "sale.csv")
        with pytest.raises(DecodeError):
            session.load_table(b"", "empty.csv")
        assert session.state is PassState.IDLE
        assert session.sheet_name == "sale.csv"
        assert len(session.rows) == 2

    def test_corrected_sheet_clears_invalid(self, make_csv, sheet):
        session = ContractSession()
        with pytest.raises(SchemaError):
            session.load_table(make_csv(["Buyer"], [["Jones"]]), "bad.csv")
        session.load_table(sheet, "good.csv")
        assert session.state is PassState.IDLE
        assert session.schema_error is None

    def test_head_count_required_by_settings(self, sheet):
        session = ContractSession(settings=AppSettings(require_head_count=True))
        with pytest.raises(SchemaError) as exc_info:
            session.load_table(sheet, "sale.csv")
        assert exc_info.value.missing == ["Head Count"]

    def test_new_sheet_drops_previous_result(self, ready_session, sheet):
        ready_session.generate()
        ready_session.load_table(sheet, "again.csv")
        assert ready_session.result is None
        assert ready_session.state is PassState.IDLE


class TestLoadTemplate:
    def test_names_kept(self, ready_session):
        assert ready_session.template_name("buyer") == "buyer.docx"
        assert ready_session.template_name(TemplateRole.SELLER) == "seller.docx"

    def test_empty_template_refused(self):
        with pytest.raises(PreconditionError):
            ContractSession().load_template("buyer", b"", "empty.docx")

    def test_unknown_role(self, buyer_template):
        with pytest.raises(ValueError):
            ContractSession().load_template("broker", buyer_template, "x.docx")


# ═══════════════════════════════════════════════════════════════════════════
# Generation
# ═══════════════════════════════════════════════════════════════════════════

class TestGenerate:
    def test_full_pass(self, ready_session):
        assert ready_session.can_generate
        result = ready_session.generate()
        assert ready_session.state is PassState.BUILT
        assert ready_session.result is result
        assert result.succeeded == 2
        assert [lot.buyer_filename for lot in ready_session.lots] == [
            "A1-Jones.docx",
            "A2-Green.docx",
        ]

    def test_refused_while_invalid(self, make_csv, buyer_template, seller_template):
        session = ContractSession()
        session.load_template("buyer", buyer_template, "b.docx")
        session.load_template("seller", seller_template, "s.docx")
        with pytest.raises(SchemaError):
            session.load_table(make_csv(["Contract #", "Consignor", "Lot Number #2"], []), "x.csv")

        assert not session.can_generate
        with pytest.raises(SchemaError, match="Buyer"):
            session.generate()
        assert session.result is None

    def test_refused_without_templates(self, sheet):
        session = ContractSession()
        session.load_table(sheet, "sale.csv")
        assert not session.can_generate
        with pytest.raises(PreconditionError, match="buyer, seller"):
            session.generate()
        assert session.state is PassState.IDLE

    def test_refused_without_rows(self, buyer_template, seller_template):
        session = ContractSession()
        session.load_template("buyer", buyer_template, "b.docx")
        session.load_template("seller", seller_template, "s.docx")
        with pytest.raises(PreconditionError, match="No data rows"):
            session.generate()

    def test_progress_forwarded(self, ready_session):
        phases: list[str] = []
        ready_session.generate(lambda phase, done, total: phases.append(phase))
        assert phases == ["normalizing", "normalizing", "rendering", "rendering"]

    def test_failed_pass_keeps_previous_result(self, ready_session, monkeypatch):
        first = ready_session.generate()

        def explode(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr("processing.session.build_lots", explode)
        with pytest.raises(RuntimeError):
            ready_session.generate()
        assert ready_session.result is first
        assert ready_session.state is PassState.BUILT

    def test_each_pass_starts_fresh(self, ready_session):
        first = ready_session.generate()
        first.lots[0].selected = True
        second = ready_session.generate()
        assert second is not first
        assert [lot.buyer_filename for lot in second.lots] == [
            lot.buyer_filename for lot in first.lots
        ]
        assert ready_session.selected_ids() == set()


class TestRevalidate:
    def test_toggle_head_count(self, sheet):
        session = ContractSession()
        session.load_table(sheet, "sale.csv")

        session.settings = session.settings.with_head_count(True)
        session.revalidate()
        assert session.state is PassState.INVALID
        assert session.rows == []

        session.settings = session.settings.with_head_count(False)
        session.revalidate()
        assert session.state is PassState.IDLE
        assert len(session.rows) == 2

    def test_nothing_loaded(self):
        session = ContractSession()
        session.revalidate()
        assert session.state is PassState.IDLE


# ═══════════════════════════════════════════════════════════════════════════
# Selection and bundles
# ═══════════════════════════════════════════════════════════════════════════

class TestSelectionAndBundles:
    def test_select_and_bundle(self, ready_session):
        ready_session.generate()
        lot_id = ready_session.lots[1].lot_id
        ready_session.set_selected(lot_id, True)
        assert ready_session.selected_ids() == {lot_id}

        filename, archive = ready_session.build_bundle("buyer")
        assert filename.startswith("buyer_contracts_")
        assert filename.endswith(".zip")
        assert _zip_names(archive) == ["Buyer Contracts/A2-Green.docx"]

    def test_nothing_selected_bundles_everything(self, ready_session):
        ready_session.generate()
        _, archive = ready_session.build_bundle("all")
        assert len(_zip_names(archive)) == 4

    def test_select_all_and_none(self, ready_session):
        ready_session.generate()
        ready_session.select_all()
        assert len(ready_session.selected_ids()) == 2
        ready_session.select_all(False)
        assert ready_session.selected_ids() == set()

    def test_unknown_lot_id(self, ready_session):
        ready_session.generate()
        with pytest.raises(KeyError):
            ready_session.set_selected("nope", True)

    def test_bundle_before_generation(self, ready_session):
        with pytest.raises(AssemblyError):
            ready_session.build_bundle("all")


class TestBundleCache:
    def _count_assembles(self, monkeypatch) -> list[str]:
        import processing.session as session_module

        calls: list[str] = []
        real_assemble = session_module.assemble

        def counting(lots, mode, selection=None):
            calls.append(mode.value)
            return real_assemble(lots, mode, selection)

        monkeypatch.setattr(session_module, "assemble", counting)
        return calls

    def test_nothing_cached_before_first_build(self, ready_session):
        ready_session.generate()
        assert ready_session.cached_bundle("all") is None

    def test_repeat_build_reuses_archive(self, ready_session, monkeypatch):
        calls = self._count_assembles(monkeypatch)
        ready_session.generate()
        _, first = ready_session.build_bundle("all")
        _, second = ready_session.build_bundle("all")
        assert second is first
        assert calls == ["all"]
        assert ready_session.cached_bundle("all")[1] is first

    def test_modes_cached_separately(self, ready_session, monkeypatch):
        calls = self._count_assembles(monkeypatch)
        ready_session.generate()
        ready_session.build_bundle("buyer")
        assert ready_session.cached_bundle("seller") is None
        ready_session.build_bundle("seller")
        assert calls == ["buyer", "seller"]

    def test_selection_change_rebuilds(self, ready_session, monkeypatch):
        calls = self._count_assembles(monkeypatch)
        ready_session.generate()
        ready_session.build_bundle("buyer")

        ready_session.set_selected(ready_session.lots[0].lot_id, True)
        assert ready_session.cached_bundle("buyer") is None
        _, archive = ready_session.build_bundle("buyer")
        assert _zip_names(archive) == ["Buyer Contracts/A1-Jones.docx"]
        assert calls == ["buyer", "buyer"]

    def test_new_pass_drops_cache(self, ready_session):
        ready_session.generate()
        ready_session.build_bundle("all")
        ready_session.generate()
        assert ready_session.cached_bundle("all") is None

    def test_clear_drops_cache(self, ready_session):
        ready_session.generate()
        ready_session.build_bundle("all")
        ready_session.clear()
        assert ready_session.cached_bundle("all") is None

    def test_failed_build_not_cached(self, ready_session):
        with pytest.raises(AssemblyError):
            ready_session.build_bundle("all")
        assert ready_session.cached_bundle("all") is None


class TestClear:
    def test_clear_resets_everything_but_settings(self, ready_session):
        ready_session.settings = AppSettings(access_pin="1111")
        ready_session.generate()
        ready_session.clear()
        assert ready_session.state is PassState.IDLE
        assert ready_session.rows == []
        assert ready_session.templates == {}
        assert ready_session.result is None
        assert ready_session.lots == []
        assert ready_session.settings.access_pin == "1111"
