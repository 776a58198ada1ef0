"""Plugin manager: owns the live registry and hot reload.

The manager holds a reference to the current :class:`PluginRegistry`. A
reload never mutates that registry: it builds a new one from a fresh
directory scan and swaps the reference. Readers therefore always see either
the complete old set or the complete new set of plugins.

A job that runs a plugin holds a :meth:`PluginManager.lease` on it. The old
registry's plugins are cleaned up once the swap is done and no lease on
them remains, so a reload never tears down a plugin a running job uses.

Example:
    >>> manager = get_plugin_manager()
    >>> pipelines = await manager.list_pipelines()
    >>> async with manager.lease("acme.sales") as plugin:
    ...     bundle = await plugin.process(inputs)
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from reportflow.plugins.base import PluginContext, PluginNotFoundError
from reportflow.plugins.capabilities import describe_plugin
from reportflow.plugins.loader import LoadReport, PluginLoader
from reportflow.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


class PluginManager:
    """Loads plugins from a directory and serves them to callers.

    Args:
        plugins_dir: Directory to scan. When None, the configured plugins
            directory is used.
        context: Context handed to each plugin's ``initialize``.
    """

    def __init__(
        self,
        plugins_dir: Path | str | None = None,
        context: PluginContext | None = None,
    ):
        self._plugins_dir = Path(plugins_dir) if plugins_dir is not None else None
        self._context = context or PluginContext()
        self._registry: PluginRegistry | None = None
        # leases per registry (keyed by id) and swapped-out registries awaiting release
        self._leases: dict[int, int] = {}
        self._retired: dict[int, PluginRegistry] = {}
        self._last_report: LoadReport | None = None
        self._swap_lock = threading.RLock()
        self._reload_lock = asyncio.Lock()

    @property
    def plugins_dir(self) -> Path:
        if self._plugins_dir is None:
            from reportflow.config import get_config_manager

            return get_config_manager().get_plugins_dir()
        return self._plugins_dir

    @property
    def context(self) -> PluginContext:
        return self._context

    @property
    def last_report(self) -> LoadReport | None:
        return self._last_report

    @property
    def is_loaded(self) -> bool:
        with self._swap_lock:
            return self._registry is not None

    async def _build_registry(self) -> PluginRegistry:
        registry = PluginRegistry()
        logger.info(f"Loading plugins from: {self.plugins_dir}")
        self._last_report = await PluginLoader.load_from_directory(
            registry, self.plugins_dir, self._context
        )
        return registry

    async def reload(self) -> PluginRegistry:
        """Rebuild the registry from disk and swap it in."""
        async with self._reload_lock:
            logger.info("Reloading plugins from disk...")
            new_registry = await self._build_registry()

            with self._swap_lock:
                old_registry, self._registry = self._registry, new_registry
                in_use = old_registry is not None and id(old_registry) in self._leases
                if in_use:
                    self._retired[id(old_registry)] = old_registry

            if in_use:
                logger.debug("Previous plugins still leased, deferring their cleanup")
            elif old_registry is not None:
                await old_registry.cleanup()
            return new_registry

    async def get_registry(self) -> PluginRegistry:
        """Return the current registry, loading it on first use."""
        with self._swap_lock:
            registry = self._registry
        if registry is not None:
            return registry

        async with self._reload_lock:
            with self._swap_lock:
                registry = self._registry
            if registry is None:
                registry = await self._build_registry()
                with self._swap_lock:
                    self._registry = registry
            return registry

    async def get_plugin(self, plugin_id: str, force_reload: bool = False) -> Any:
        """Return the plugin with ``plugin_id``.

        Raises:
            PluginNotFoundError: If no loaded plugin has this id.
        """
        registry = await self.reload() if force_reload else await self.get_registry()
        return registry.get(plugin_id)

    @asynccontextmanager
    async def lease(self, plugin_id: str) -> AsyncIterator[Any]:
        """Hold the plugin with ``plugin_id`` while a job runs it.

        A reload during the lease swaps in new plugins as usual, but the
        leased plugin is cleaned up only after the last lease on its
        registry is released.

        Raises:
            PluginNotFoundError: If no loaded plugin has this id.
        """
        while True:
            registry = await self.get_registry()
            with self._swap_lock:
                if registry is self._registry:
                    key = id(registry)
                    self._leases[key] = self._leases.get(key, 0) + 1
                    break

        try:
            yield registry.get(plugin_id)
        finally:
            with self._swap_lock:
                remaining = self._leases[key] - 1
                if remaining:
                    self._leases[key] = remaining
                    retired = None
                else:
                    del self._leases[key]
                    retired = self._retired.pop(key, None)
            if retired is not None:
                logger.debug("Last lease released, cleaning up previous plugins")
                await retired.cleanup()

    async def list_pipelines(self) -> list[dict[str, Any]]:
        """Reload from disk and return metadata for every plugin."""
        registry = await self.reload()
        return registry.list_metadata()

    async def get_pipeline_metadata(self, plugin_id: str) -> dict[str, Any]:
        """Return the metadata record of one plugin.

        Raises:
            PluginNotFoundError: If no loaded plugin has this id.
        """
        registry = await self.get_registry()
        plugin = registry.get_or_none(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)
        return describe_plugin(plugin)

    def clear_cache(self) -> None:
        """Forget the current registry so the next access reloads.

        Plugins in the forgotten registry are not cleaned up; use
        :meth:`shutdown` for that.
        """
        with self._swap_lock:
            self._registry = None

    async def shutdown(self) -> None:
        """Clean up every loaded plugin, including ones still awaiting release."""
        with self._swap_lock:
            registry, self._registry = self._registry, None
            retired = list(self._retired.values())
            self._retired.clear()
        for old in retired:
            await old.cleanup()
        if registry is not None:
            await registry.cleanup()

    def __repr__(self) -> str:
        with self._swap_lock:
            loaded = len(self._registry) if self._registry is not None else 0
        return f"<PluginManager plugins_dir={str(self._plugins_dir)!r} loaded={loaded}>"


# =============================================================================
# Global Manager
# =============================================================================

_global_manager: PluginManager | None = None


def get_plugin_manager() -> PluginManager:
    """Get the global plugin manager instance."""
    global _global_manager
    if _global_manager is None:
        _global_manager = PluginManager()
    return _global_manager


def reset_plugin_manager() -> None:
    """Reset the global plugin manager (mainly for testing)."""
    global _global_manager
    _global_manager = None
