"""Base types for reportflow pipeline plugins.

This module defines the vocabulary shared by the plugin contract, the
loader and the report engine:
- OutputFormat / InputType: Enumerations of report formats and input kinds
- InputField: Declaration of one user-supplied input
- PluginContext: Framework services handed to a plugin on initialize
- PluginLifecycle: Plugin lifecycle states
- PluginError and subclasses: The plugin exception hierarchy
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping

# =============================================================================
# Enumerations
# =============================================================================


class OutputFormat(str, Enum):
    """Report formats a plugin may declare."""

    HTML = "html"
    PDF = "pdf"
    PPTX = "pptx"
    MDX = "mdx"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)


class InputType(str, Enum):
    """Kinds of user-supplied input."""

    STRING = "string"
    NUMBER = "number"
    FILE = "file"
    ENUM = "enum"


class PluginLifecycle(str, Enum):
    """Lifecycle states for a plugin."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLEANED = "cleaned"


# =============================================================================
# Exceptions
# =============================================================================


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    def __init__(self, message: str, plugin_id: str | None = None):
        self.plugin_id = plugin_id
        super().__init__(message)


class PluginLoadError(PluginError):
    """Raised when a plugin fails to load."""

    pass


class PluginNotFoundError(PluginError):
    """Raised when a requested plugin is not registered."""

    def __init__(self, plugin_id: str):
        super().__init__(f"Pipeline not found: {plugin_id}", plugin_id)


class PluginStateError(PluginError):
    """Raised when a lifecycle method is called in the wrong state."""

    pass


class PluginValidationError(PluginError):
    """Raised when plugin metadata is invalid.

    Attributes:
        errors: Every metadata violation found.
    """

    def __init__(self, errors: list[str], plugin_id: str | None = None):
        self.errors = list(errors)
        super().__init__(
            "Plugin validation failed:\n" + "\n".join(self.errors), plugin_id
        )


class InputValidationError(PluginError):
    """Raised when user inputs do not satisfy the declared input fields.

    Attributes:
        errors: Every input violation found.
    """

    def __init__(self, errors: list[str], plugin_id: str | None = None):
        self.errors = list(errors)
        super().__init__(
            f"Input validation failed: {', '.join(self.errors)}", plugin_id
        )


# =============================================================================
# Declarations
# =============================================================================


@dataclass(frozen=True)
class InputField:
    """A user-supplied input declared by a plugin.

    Attributes:
        name: Key in the inputs mapping.
        label: Human-readable label shown by the CLI and UI.
        type: One of :class:`InputType`.
        required: Whether a non-empty value must be provided.
        description: Optional help text.
        options: Allowed values for ``enum`` fields.
    """

    name: str
    label: str
    type: str = InputType.STRING.value
    required: bool = False
    description: str = ""
    options: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.type, InputType):
            object.__setattr__(self, "type", self.type.value)
        if self.options is not None and not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InputField":
        return cls(
            name=data["name"],
            label=data.get("label", data["name"]),
            type=data.get("type", InputType.STRING.value),
            required=bool(data.get("required", False)),
            description=data.get("description") or "",
            options=data.get("options"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "required": self.required,
        }
        if self.description:
            data["description"] = self.description
        if self.options is not None:
            data["options"] = list(self.options)
        return data


def coerce_input_fields(fields: Iterable[InputField | Mapping[str, Any]]) -> list[InputField]:
    """Normalize declared inputs given as dataclasses or plain dicts."""
    return [f if isinstance(f, InputField) else InputField.from_dict(f) for f in fields]


class PluginLogAdapter(logging.LoggerAdapter):
    """Logger adapter prefixing every message with ``[plugin id]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['plugin_id']}] {msg}", kwargs


@dataclass
class PluginContext:
    """Framework services given to a plugin on initialize.

    Attributes:
        logger: Base logger; plugins wrap it with :meth:`logger_for`.
        config: Free-form framework configuration.
        work_dir: Working directory of the host process.
        framework_version: Version of reportflow hosting the plugin.
    """

    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("reportflow.plugins")
    )
    config: dict[str, Any] = field(default_factory=dict)
    work_dir: Path = field(default_factory=Path.cwd)
    framework_version: str = ""

    def __post_init__(self) -> None:
        if not self.framework_version:
            from reportflow import __version__

            self.framework_version = __version__

    def logger_for(self, plugin_id: str) -> PluginLogAdapter:
        return PluginLogAdapter(self.logger, {"plugin_id": plugin_id})


# =============================================================================
# Validation
# =============================================================================

_SEMVER_PREFIX = re.compile(r"^\d+\.\d+\.\d+")


def validate_plugin_metadata(plugin: Any) -> list[str]:
    """Collect every metadata violation for ``plugin``."""
    errors: list[str] = []

    plugin_id = getattr(plugin, "id", None)
    if not isinstance(plugin_id, str) or "." not in plugin_id:
        errors.append("Plugin ID must be in format: org.plugin-name")

    version = getattr(plugin, "version", None)
    if not isinstance(version, str) or not _SEMVER_PREFIX.match(version):
        errors.append("Version must follow semantic versioning (e.g., 1.0.0)")

    name = getattr(plugin, "name", None)
    if not isinstance(name, str) or not name.strip():
        errors.append("Plugin name is required")

    description = getattr(plugin, "description", None)
    if not isinstance(description, str) or not description.strip():
        errors.append("Plugin description is required")

    if not isinstance(getattr(plugin, "inputs", None), (list, tuple)):
        errors.append("Inputs must be a list")

    formats = getattr(plugin, "output_formats", None)
    if not isinstance(formats, (list, tuple)) or not formats:
        errors.append("Must specify at least one output format")
    else:
        invalid = [str(f) for f in formats if str(_format_value(f)) not in OutputFormat.values()]
        if invalid:
            errors.append(f"Unknown output formats: {', '.join(invalid)}")

    return errors


def _format_value(value: Any) -> str:
    return value.value if isinstance(value, OutputFormat) else str(value)


def normalize_formats(formats: Iterable[Any]) -> list[str]:
    """Return declared output formats as plain strings."""
    return [_format_value(f) for f in formats]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict)) and len(value) == 0)


def validate_inputs(fields: Iterable[InputField], inputs: Mapping[str, Any]) -> list[str]:
    """Collect every violation of ``inputs`` against the declared fields."""
    errors: list[str] = []

    for f in fields:
        value = inputs.get(f.name)

        if f.required and _is_empty(value):
            errors.append(f"Missing required field: {f.name}")
            continue

        if f.type == InputType.ENUM.value and not _is_empty(value):
            if not f.options or value not in f.options:
                options = ", ".join(f.options or ())
                errors.append(f"Invalid value for {f.name}. Must be one of: {options}")

        if f.type == InputType.NUMBER.value and value is not None and value != "":
            try:
                float(value)
            except (TypeError, ValueError):
                errors.append(f"{f.name} must be a number")

    return errors
