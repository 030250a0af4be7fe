"""
Tests for config/settings.py
"""

import pytest

from config.settings import DEFAULT_ACCESS_PIN, AppSettings


class TestFromSecrets:
    def test_defaults_without_secrets(self):
        settings = AppSettings.from_secrets(None)
        assert settings.access_pin == DEFAULT_ACCESS_PIN == "0623"
        assert settings.require_head_count is False

    def test_pin_from_secrets(self):
        assert AppSettings.from_secrets({"ACCESS_PIN": " 4321 "}).access_pin == "4321"

    def test_numeric_pin(self):
        assert AppSettings.from_secrets({"ACCESS_PIN": 1234}).access_pin == "1234"

    @pytest.mark.parametrize("pin", ["", "   ", None, "your-pin-here"])
    def test_placeholder_pin_falls_back(self, pin):
        assert AppSettings.from_secrets({"ACCESS_PIN": pin}).access_pin == DEFAULT_ACCESS_PIN

    @pytest.mark.parametrize("raw, expected", [
        (True, True), ("true", True), ("Yes", True), ("1", True),
        (False, False), ("no", False), ("", False),
    ])
    def test_head_count_flag(self, raw, expected):
        settings = AppSettings.from_secrets({"REQUIRE_HEAD_COUNT": raw})
        assert settings.require_head_count is expected


class TestWithHeadCount:
    def test_returns_new_settings(self):
        base = AppSettings(access_pin="9999")
        changed = base.with_head_count(True)
        assert changed.require_head_count is True
        assert changed.access_pin == "9999"
        assert base.require_head_count is False
