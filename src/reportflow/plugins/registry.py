"""Plugin registry for managing loaded pipeline plugins."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterator

from reportflow.plugins.base import PluginNotFoundError
from reportflow.plugins.capabilities import describe_plugin

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Thread-safe registry of initialized plugins keyed by id.

    Example:
        >>> registry = PluginRegistry()
        >>> registry.register(my_plugin)
        >>> plugin = registry.get("acme.sales")
    """

    def __init__(self) -> None:
        self._plugins: dict[str, Any] = {}
        self._lock = threading.RLock()

    def register(self, plugin: Any) -> None:
        """Register a plugin. A later registration with the same id wins."""
        with self._lock:
            if plugin.id in self._plugins:
                logger.warning(f"Replacing registered plugin: {plugin.id}")
            self._plugins[plugin.id] = plugin

    def unregister(self, plugin_id: str) -> Any:
        """Remove and return a plugin.

        Raises:
            PluginNotFoundError: If no plugin has this id.
        """
        with self._lock:
            if plugin_id not in self._plugins:
                raise PluginNotFoundError(plugin_id)
            return self._plugins.pop(plugin_id)

    def get(self, plugin_id: str) -> Any:
        """Get a plugin by id.

        Raises:
            PluginNotFoundError: If no plugin has this id.
        """
        with self._lock:
            if plugin_id not in self._plugins:
                raise PluginNotFoundError(plugin_id)
            return self._plugins[plugin_id]

    def get_or_none(self, plugin_id: str) -> Any | None:
        with self._lock:
            return self._plugins.get(plugin_id)

    def has(self, plugin_id: str) -> bool:
        with self._lock:
            return plugin_id in self._plugins

    def list_all(self) -> list[Any]:
        """Return registered plugins in registration order."""
        with self._lock:
            return list(self._plugins.values())

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._plugins.keys())

    def list_metadata(self) -> list[dict[str, Any]]:
        return [describe_plugin(p) for p in self.list_all()]

    def clear(self) -> None:
        with self._lock:
            self._plugins.clear()

    async def cleanup(self) -> None:
        """Clean up every plugin, then empty the registry.

        A plugin whose cleanup fails is logged and does not stop the others.
        """
        for plugin in self.list_all():
            try:
                await plugin.cleanup()
            except Exception:
                logger.exception(f"Cleanup failed for plugin {plugin.id}")
        self.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.list_all())

    def __contains__(self, plugin_id: str) -> bool:
        return self.has(plugin_id)

    def __repr__(self) -> str:
        return f"<PluginRegistry plugins={self.list_ids()!r}>"
