"""Configured report generation.

Wires the application configuration to a :class:`ReportEngine`: the LLM
profile selects the client, and reports go to the configured output directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from reportflow.config import ConfigManager, get_config_manager
from reportflow.llm.client import LLMClient
from reportflow.reports.engine import ReportEngine
from reportflow.reports.errors import ProfileNotFoundError
from reportflow.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


async def generate_report(
    plugin: Any,
    inputs: Mapping[str, Any],
    report_type: str,
    output_format: str,
    profile_name: str | None = None,
    report_name: str | None = None,
    *,
    config_manager: ConfigManager | None = None,
    shutdown: ShutdownCoordinator | None = None,
    output_dir: Path | str | None = None,
) -> Path:
    """Generate a report with the LLM profile ``profile_name`` (or the default).

    Raises:
        ProfileNotFoundError: If no matching profile is configured.
    """
    config_manager = config_manager or get_config_manager()
    llm_config = config_manager.get_llm_config(profile_name)
    if llm_config is None:
        raise ProfileNotFoundError(profile_name)

    if output_dir is None:
        output_dir = config_manager.get_output_dir()

    logger.info(
        f"Generating report with {plugin.id}: type={report_type} format={output_format} "
        f"profile={profile_name or 'default'} provider={llm_config.provider} "
        f"model={llm_config.model}"
    )

    engine = ReportEngine(LLMClient(llm_config), shutdown=shutdown)
    return await engine.generate_report(
        plugin,
        inputs,
        report_type,
        output_format,
        output_dir=output_dir,
        report_name=report_name,
    )
