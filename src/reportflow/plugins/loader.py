"""Directory-based plugin loading.

Each plugin lives in its own subdirectory of the plugins directory:

    plugins/
        sales_report/
            plugin.py        # or __init__.py
            prompts/
            templates/

The entry module exposes a constructor under the name ``plugin`` (a class or
factory function; ``Plugin`` is accepted as a fallback). Every scan imports
entry modules under a fresh module name, so edits made on disk since the
previous scan are always picked up.
"""

from __future__ import annotations

import importlib.machinery
import importlib.util
import itertools
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from reportflow.plugins.base import PluginContext, PluginLoadError
from reportflow.plugins.capabilities import missing_capabilities
from reportflow.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)

ENTRY_FILES: tuple[str, ...] = ("plugin.py", "__init__.py")
EXPORT_NAMES: tuple[str, ...] = ("plugin", "Plugin")
IGNORED_DIRS = frozenset({"__pycache__", "node_modules", "dist"})

_MODULE_PREFIX = "_reportflow_plugin_"
_counter = itertools.count(1)


@dataclass
class LoadReport:
    """Outcome of one directory scan.

    Attributes:
        loaded: Ids of plugins registered during the scan.
        skipped: ``(directory name, reason)`` for candidates not loaded.
        failed: ``(directory name, error message)`` for candidates that raised.
    """

    loaded: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


class _FreshSourceLoader(importlib.machinery.SourceFileLoader):
    """Source loader that always compiles from source, never from bytecode."""

    def get_code(self, fullname: str) -> Any:
        source = self.get_data(self.path)
        return self.source_to_code(source, self.path)


def _safe_name(name: str) -> str:
    return re.sub(r"\W", "_", name)


def _purge_modules(key: str) -> None:
    prefix = f"{_MODULE_PREFIX}{key}__"
    for name in [m for m in sys.modules if m.startswith(prefix)]:
        sys.modules.pop(name, None)


def import_entry_module(plugin_dir: Path, entry: Path) -> ModuleType:
    """Import a plugin entry module under a unique module name.

    The plugin directory is importable as a package, so entry modules can
    use relative imports for their own helper modules.

    Raises:
        PluginLoadError: If the module cannot be loaded.
    """
    key = _safe_name(plugin_dir.name)
    _purge_modules(key)
    importlib.invalidate_caches()

    package_name = f"{_MODULE_PREFIX}{key}__{next(_counter)}"
    init_file = plugin_dir / "__init__.py"
    is_package_init = entry.name == "__init__.py"

    if init_file.exists():
        package_spec = importlib.util.spec_from_file_location(
            package_name,
            init_file,
            loader=_FreshSourceLoader(package_name, str(init_file)),
            submodule_search_locations=[str(plugin_dir)],
        )
        if package_spec is None or package_spec.loader is None:
            raise PluginLoadError(f"Cannot create module spec for {init_file}")
    else:
        package_spec = importlib.machinery.ModuleSpec(package_name, None, is_package=True)
        package_spec.submodule_search_locations = [str(plugin_dir)]

    package = importlib.util.module_from_spec(package_spec)
    sys.modules[package_name] = package
    try:
        if package_spec.loader is not None:
            package_spec.loader.exec_module(package)
        if is_package_init:
            return package

        module_name = f"{package_name}.{entry.stem}"
        spec = importlib.util.spec_from_file_location(
            module_name, entry, loader=_FreshSourceLoader(module_name, str(entry))
        )
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Cannot create module spec for {entry}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    except BaseException:
        _purge_modules(key)
        raise


def find_entry_file(plugin_dir: Path) -> Path | None:
    for name in ENTRY_FILES:
        candidate = plugin_dir / name
        if candidate.is_file():
            return candidate
    return None


def candidate_dirs(plugins_dir: Path) -> list[Path]:
    """Return plugin subdirectories in name order."""
    return sorted(
        (
            entry
            for entry in plugins_dir.iterdir()
            if entry.is_dir()
            and not entry.name.startswith(".")
            and entry.name not in IGNORED_DIRS
        ),
        key=lambda p: p.name,
    )


class PluginLoader:
    """Loads plugins from a directory into a registry."""

    @classmethod
    async def load_from_directory(
        cls,
        registry: PluginRegistry,
        plugins_dir: Path | str,
        context: PluginContext,
    ) -> LoadReport:
        """Scan ``plugins_dir`` and register every valid plugin.

        Candidates are processed one at a time, in name order. A candidate
        that fails is logged and never stops the scan.
        """
        report = LoadReport()
        resolved = Path(plugins_dir).expanduser().resolve()

        if not resolved.is_dir():
            logger.info(f"Plugins directory not found: {resolved}")
            return report

        dirs = candidate_dirs(resolved)
        if not dirs:
            logger.info(f"No plugin directories found in {resolved}")
            return report

        logger.info(f"Scanning {len(dirs)} plugin director(ies) in {resolved}")

        for plugin_dir in dirs:
            try:
                await cls._load_one(plugin_dir, registry, context, report)
            except Exception as e:
                logger.exception(f"Failed to load plugin from {plugin_dir}")
                report.failed.append((plugin_dir.name, str(e)))

        logger.info(f"Loaded {len(report.loaded)} plugin(s)")
        return report

    @classmethod
    async def _load_one(
        cls,
        plugin_dir: Path,
        registry: PluginRegistry,
        context: PluginContext,
        report: LoadReport,
    ) -> None:
        entry = find_entry_file(plugin_dir)
        if entry is None:
            logger.info(f"{plugin_dir.name}: no plugin.py or __init__.py found")
            report.skipped.append((plugin_dir.name, "no entry module"))
            return

        module = import_entry_module(plugin_dir, entry)

        factory = None
        for export in EXPORT_NAMES:
            factory = getattr(module, export, None)
            if factory is not None:
                break

        if not callable(factory):
            logger.warning(f"{plugin_dir.name}: 'plugin' export is missing or not callable")
            report.skipped.append((plugin_dir.name, "export is not callable"))
            return

        plugin = factory()

        missing = missing_capabilities(plugin)
        if missing:
            logger.warning(
                f"{plugin_dir.name}: not a valid plugin, missing: {', '.join(missing)}"
            )
            report.skipped.append((plugin_dir.name, f"missing: {', '.join(missing)}"))
            return

        if registry.has(plugin.id):
            logger.warning(f"{plugin.id}: duplicate plugin id (skipping {plugin_dir.name})")
            report.skipped.append((plugin_dir.name, f"duplicate id {plugin.id}"))
            return

        await plugin.initialize(context)
        registry.register(plugin)
        report.loaded.append(plugin.id)
        logger.info(f"Loaded {plugin.id} ({plugin.name}) v{plugin.version}")
