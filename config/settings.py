"""
Session-level settings.

Values come from Streamlit secrets (.streamlit/secrets.toml) when present,
otherwise from the defaults below.  The access PIN only hides the UI from
casual visitors on a shared screen; it is not an authentication mechanism.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

DEFAULT_ACCESS_PIN: str = "0623"

_TRUE_STRINGS: set[str] = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppSettings:
    """Settings shared by one working session."""

    access_pin: str = DEFAULT_ACCESS_PIN
    require_head_count: bool = False

    @classmethod
    def from_secrets(cls, secrets: Mapping[str, Any] | None) -> "AppSettings":
        """
        Build settings from a secrets mapping (``st.secrets`` or a plain dict).

        Recognised keys: ``ACCESS_PIN`` and ``REQUIRE_HEAD_COUNT``.  Missing
        keys and a placeholder PIN ("your-pin-here") fall back to defaults.
        """
        if not secrets:
            return cls()

        pin = str(secrets.get("ACCESS_PIN", "") or "").strip()
        if not pin or pin == "your-pin-here":
            pin = DEFAULT_ACCESS_PIN

        return cls(
            access_pin=pin,
            require_head_count=_as_bool(secrets.get("REQUIRE_HEAD_COUNT", False)),
        )

    def with_head_count(self, required: bool) -> "AppSettings":
        return AppSettings(access_pin=self.access_pin, require_head_count=required)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS
