"""Structural plugin checks.

A plugin is anything that exposes the members in
:data:`REQUIRED_CAPABILITIES`; class hierarchy is never consulted, so plugins
that do not subclass :class:`~reportflow.plugins.pipeline.PipelinePlugin`
are accepted as long as they have the right shape.
"""

from __future__ import annotations

import logging
from typing import Any

from reportflow.plugins.base import coerce_input_fields, normalize_formats

logger = logging.getLogger(__name__)

REQUIRED_ATTRIBUTES: tuple[str, ...] = (
    "id",
    "name",
    "version",
    "description",
    "inputs",
    "output_formats",
)

REQUIRED_METHODS: tuple[str, ...] = (
    "initialize",
    "process",
    "get_specifications",
    "get_prompts_dir",
    "get_templates_dir",
    "cleanup",
)

REQUIRED_CAPABILITIES: tuple[str, ...] = REQUIRED_ATTRIBUTES + REQUIRED_METHODS


def missing_capabilities(obj: Any) -> list[str]:
    """List the required members ``obj`` lacks.

    An attribute counts as missing when absent or None; a method counts as
    missing when absent or not callable.
    """
    missing = [name for name in REQUIRED_ATTRIBUTES if getattr(obj, name, None) is None]
    missing.extend(
        name for name in REQUIRED_METHODS if not callable(getattr(obj, name, None))
    )
    return missing


def has_capabilities(obj: Any) -> bool:
    return not missing_capabilities(obj)


def describe_plugin(plugin: Any) -> dict[str, Any]:
    """Return the public metadata record of a plugin.

    The record lists identity, declared inputs, output formats and the names
    of the report types the plugin offers.
    """
    try:
        specifications = list(plugin.get_specifications().keys())
    except Exception as e:
        logger.warning(f"Could not read specifications of {plugin.id}: {e}")
        specifications = []

    return {
        "id": plugin.id,
        "name": plugin.name,
        "version": plugin.version,
        "description": plugin.description,
        "inputs": [f.to_dict() for f in coerce_input_fields(plugin.inputs)],
        "output_formats": normalize_formats(plugin.output_formats),
        "specifications": specifications,
    }
