"""
Tests for utils/fuzzy_match.py
"""

from utils.fuzzy_match import best_match, rank_headers


class TestRankHeaders:
    def test_case_and_whitespace_ignored(self):
        ranked = rank_headers("Buyer", ["Delivery", " buyer "])
        assert ranked[0] == (" buyer ", 100)

    def test_word_order_ignored(self):
        header, score = rank_headers("Lot Number #2", ["Number Lot #2"])[0]
        assert header == "Number Lot #2"
        assert score == 100

    def test_below_threshold_dropped(self):
        assert rank_headers("Buyer", ["Delivery", "Breed"], threshold=80) == []

    def test_blank_headers_skipped(self):
        assert rank_headers("Buyer", ["", "   "], threshold=0) == []

    def test_best_first(self):
        ranked = rank_headers("Consignor", ["Consigner", "consignor"], threshold=50)
        assert [header for header, _ in ranked] == ["consignor", "Consigner"]


class TestBestMatch:
    def test_match(self):
        assert best_match("Buyer", ["Buyer "]) == ("Buyer ", 100)

    def test_no_match(self):
        assert best_match("Buyer", ["Delivery"]) == (None, 0)

    def test_excluded_header_skipped(self):
        header, _ = best_match("Consignor", ["consignor", "Consigner"], threshold=50,
                               exclude={"consignor"})
        assert header == "Consigner"

    def test_empty_inputs(self):
        assert best_match("", ["Buyer"]) == (None, 0)
        assert best_match("Buyer", []) == (None, 0)
