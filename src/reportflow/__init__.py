"""reportflow - AI report generation from pluggable data pipelines."""

from reportflow.bundles import Bundle, BundleBuilder
from reportflow.config import ConfigManager, LLMProfile, get_config_manager
from reportflow.llm import LLMClient, LLMConfig, LLMResponse

# Plugin contract, loader and manager
from reportflow.plugins import (
    FunctionPlugin,
    PipelinePlugin,
    PluginContext,
    PluginManager,
    get_plugin_manager,
)

# Report engine
from reportflow.reports import ReportEngine, ReportSpecification, generate_report

# Job queue and worker
from reportflow.jobs import ReportQueue, ReportWorker, create_store

# Shutdown coordination
from reportflow.shutdown import ShutdownCoordinator, ShutdownError, get_shutdown_coordinator

__version__ = "0.1.0"

__all__ = [
    # Plugins
    "PipelinePlugin",
    "FunctionPlugin",
    "PluginContext",
    "PluginManager",
    "get_plugin_manager",
    # Bundles
    "Bundle",
    "BundleBuilder",
    # Reports
    "ReportEngine",
    "ReportSpecification",
    "generate_report",
    # LLM and configuration
    "LLMClient",
    "LLMConfig",
    "LLMResponse",
    "LLMProfile",
    "ConfigManager",
    "get_config_manager",
    # Jobs
    "ReportQueue",
    "ReportWorker",
    "create_store",
    # Shutdown
    "ShutdownCoordinator",
    "ShutdownError",
    "get_shutdown_coordinator",
]
