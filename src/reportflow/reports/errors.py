"""Report generation exceptions."""

from __future__ import annotations


class ReportError(Exception):
    """Base exception for report generation errors."""

    pass


class UnsupportedFormatError(ReportError):
    """Raised when a plugin does not declare the requested output format."""

    def __init__(self, output_format: str, plugin_id: str, supported: list[str]):
        self.output_format = output_format
        self.plugin_id = plugin_id
        self.supported = list(supported)
        super().__init__(
            f"Output format '{output_format}' not supported by {plugin_id}. "
            f"Supported: {', '.join(self.supported)}"
        )


class ReportTypeNotFoundError(ReportError):
    """Raised when a plugin has no specification for a report type."""

    def __init__(self, report_type: str, plugin_id: str, available: list[str]):
        self.report_type = report_type
        self.plugin_id = plugin_id
        self.available = list(available)
        super().__init__(
            f"Report type '{report_type}' not found in {plugin_id}. "
            f"Available: {', '.join(self.available) or 'none'}"
        )


class SpecificationError(ReportError):
    """Raised when a report specification is structurally invalid.

    Attributes:
        errors: Every violation found.
    """

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = list(errors)
        self.source = source
        prefix = f"Invalid specification ({source})" if source else "Invalid specification"
        super().__init__(f"{prefix}: {', '.join(self.errors)}")


class TemplateNotFoundError(ReportError):
    """Raised when the report template file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Template not found: {path}")


class TemplateRenderError(ReportError):
    """Raised when the report template fails to render."""

    pass


class ProfileNotFoundError(ReportError):
    """Raised when no LLM profile is available for report generation."""

    def __init__(self, profile_name: str | None = None):
        self.profile_name = profile_name
        if profile_name:
            message = f"LLM profile '{profile_name}' not found"
        else:
            message = "No LLM profile configured. Add one with: reportflow profile add"
        super().__init__(message)
