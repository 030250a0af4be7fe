"""
Error types raised by the contract generation pipeline.

Pass-level errors (DecodeError, SchemaError, PreconditionError) stop a
generation pass before any lot is published.  RenderError is row-level: the
lot builder catches it and reports it as data.  AssemblyError only blocks
building a ZIP; the generated lots stay valid.
"""


class ContractGeneratorError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class DecodeError(ContractGeneratorError):
    """The uploaded sheet could not be read as a table."""

    def __init__(self, message: str, source_name: str = "") -> None:
        self.source_name = source_name
        prefix = f"Cannot read '{source_name}': " if source_name else ""
        super().__init__(f"{prefix}{message}")


class SchemaError(ContractGeneratorError):
    """Required columns are missing from the uploaded sheet."""

    def __init__(
        self,
        missing: list[str],
        found: list[str],
        suggestions: dict[str, str] | None = None,
    ) -> None:
        self.missing = list(missing)
        self.found = list(found)
        self.suggestions = dict(suggestions or {})
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        lines = ["Missing required columns:"]
        for column in self.missing:
            hint = self.suggestions.get(column)
            if hint is not None:
                lines.append(f"  {column}  (found similar: '{hint}')")
            else:
                lines.append(f"  {column}")
        found = ", ".join(f"'{h}'" for h in self.found) or "(none)"
        lines.append(f"Columns found: {found}")
        return "\n".join(lines)


class PreconditionError(ContractGeneratorError):
    """A generation pass was started without its inputs (rows or templates)."""


class RenderError(ContractGeneratorError):
    """One document could not be rendered from its template."""

    def __init__(self, explanation: str, label: str = "") -> None:
        self.explanation = explanation
        self.label = label
        super().__init__(f"{label}: {explanation}" if label else explanation)


class AssemblyError(ContractGeneratorError):
    """No generated document matches the requested bundle."""

    def __init__(self, mode: str, message: str) -> None:
        self.mode = mode
        super().__init__(message)
