"""Pipeline plugin system for reportflow.

A plugin turns user inputs into a :class:`~reportflow.bundles.Bundle` and
declares the report types it can produce from it.

Example:
    >>> from reportflow.plugins import PipelinePlugin, InputField
    >>>
    >>> class SalesPlugin(PipelinePlugin):
    ...     id = "acme.sales"
    ...     ...
    >>>
    >>> plugin = SalesPlugin
"""

from reportflow.plugins.base import (
    InputField,
    InputType,
    InputValidationError,
    OutputFormat,
    PluginContext,
    PluginError,
    PluginLifecycle,
    PluginLoadError,
    PluginLogAdapter,
    PluginNotFoundError,
    PluginStateError,
    PluginValidationError,
    validate_inputs,
    validate_plugin_metadata,
)
from reportflow.plugins.capabilities import (
    REQUIRED_CAPABILITIES,
    describe_plugin,
    has_capabilities,
    missing_capabilities,
)
from reportflow.plugins.loader import LoadReport, PluginLoader
from reportflow.plugins.manager import (
    PluginManager,
    get_plugin_manager,
    reset_plugin_manager,
)
from reportflow.plugins.pipeline import (
    FunctionPlugin,
    PipelinePlugin,
    PipelineStages,
    run_pipeline,
)
from reportflow.plugins.registry import PluginRegistry

__all__ = [
    # Base
    "InputField",
    "InputType",
    "OutputFormat",
    "PluginContext",
    "PluginLifecycle",
    "PluginLogAdapter",
    "validate_inputs",
    "validate_plugin_metadata",
    # Exceptions
    "PluginError",
    "PluginLoadError",
    "PluginNotFoundError",
    "PluginStateError",
    "PluginValidationError",
    "InputValidationError",
    # Contract
    "PipelinePlugin",
    "FunctionPlugin",
    "PipelineStages",
    "run_pipeline",
    # Capabilities
    "REQUIRED_CAPABILITIES",
    "describe_plugin",
    "has_capabilities",
    "missing_capabilities",
    # Loading
    "LoadReport",
    "PluginLoader",
    "PluginRegistry",
    "PluginManager",
    "get_plugin_manager",
    "reset_plugin_manager",
]
