"""Report specifications and the report engine."""

from __future__ import annotations

from reportflow.reports.engine import ReportEngine, file_timestamp, output_file_name
from reportflow.reports.errors import (
    ProfileNotFoundError,
    ReportError,
    ReportTypeNotFoundError,
    SpecificationError,
    TemplateNotFoundError,
    TemplateRenderError,
    UnsupportedFormatError,
)
from reportflow.reports.generator import generate_report
from reportflow.reports.specification import (
    InputBinding,
    PromptSpec,
    ReportSpecification,
    TemplateSpec,
    TemplateType,
    validate_specification,
)
from reportflow.reports.specification_loader import SpecificationLoader
from reportflow.reports.templating import FILTERS, create_environment, render_string

__all__ = [
    # Engine
    "ReportEngine",
    "generate_report",
    "file_timestamp",
    "output_file_name",
    # Specification
    "InputBinding",
    "PromptSpec",
    "ReportSpecification",
    "SpecificationLoader",
    "TemplateSpec",
    "TemplateType",
    "validate_specification",
    # Templating
    "FILTERS",
    "create_environment",
    "render_string",
    # Exceptions
    "ReportError",
    "ProfileNotFoundError",
    "ReportTypeNotFoundError",
    "SpecificationError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "UnsupportedFormatError",
]
