"""Tests for plugin discovery, the registry and hot reload."""

from __future__ import annotations

import asyncio

import pytest

from reportflow.plugins import (
    PluginContext,
    PluginLoader,
    PluginManager,
    PluginNotFoundError,
    PluginRegistry,
    describe_plugin,
    missing_capabilities,
)


# =============================================================================
# Test Fixtures
# =============================================================================

NOT_A_PLUGIN = """
def plugin():
    return object()
"""

BROKEN_IMPORT = """
import definitely_not_an_installed_module

plugin = None
"""

NOT_CALLABLE = """
plugin = 42
"""

RELATIVE_IMPORT = """
from .helpers import ROWS

from reportflow.plugins import FunctionPlugin


def plugin():
    return FunctionPlugin(
        id="acme.helpers",
        name="Helpers",
        version="2.0.0",
        description="Uses a sibling module",
        output_formats=["pdf"],
        load_data=lambda inputs: ROWS,
        specifications={},
        prompts_dir=".",
        templates_dir=".",
    )
"""


class DuckPlugin:
    """Has the plugin shape without subclassing PipelinePlugin."""

    id = "duck.plugin"
    name = "Duck"
    version = "1.0.0"
    description = "Structural plugin"
    inputs = []
    output_formats = ["html"]

    def __init__(self):
        self.cleaned = False

    async def initialize(self, context):
        pass

    async def process(self, inputs):
        return None

    def get_specifications(self):
        return {"weekly": {}}

    def get_prompts_dir(self):
        return "prompts"

    def get_templates_dir(self):
        return "templates"

    async def cleanup(self):
        self.cleaned = True


# =============================================================================
# Capabilities
# =============================================================================


class TestCapabilities:
    def test_structural_plugin_accepted(self):
        assert missing_capabilities(DuckPlugin()) == []

    def test_missing_members_listed(self):
        class Partial:
            id = "a.b"
            name = "Partial"
            get_prompts_dir = "not callable"

        missing = missing_capabilities(Partial())

        assert "version" in missing
        assert "process" in missing
        assert "get_prompts_dir" in missing
        assert "id" not in missing

    def test_describe_plugin(self):
        record = describe_plugin(DuckPlugin())

        assert record == {
            "id": "duck.plugin",
            "name": "Duck",
            "version": "1.0.0",
            "description": "Structural plugin",
            "inputs": [],
            "output_formats": ["html"],
            "specifications": ["weekly"],
        }


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    def test_register_and_get(self):
        registry = PluginRegistry()
        plugin = DuckPlugin()
        registry.register(plugin)

        assert registry.get("duck.plugin") is plugin
        assert "duck.plugin" in registry
        assert len(registry) == 1

    def test_get_unknown_raises(self):
        with pytest.raises(PluginNotFoundError, match="Pipeline not found: nope.x"):
            PluginRegistry().get("nope.x")

    def test_unregister(self):
        registry = PluginRegistry()
        registry.register(DuckPlugin())

        registry.unregister("duck.plugin")

        assert registry.get_or_none("duck.plugin") is None
        with pytest.raises(PluginNotFoundError):
            registry.unregister("duck.plugin")

    @pytest.mark.asyncio
    async def test_cleanup_empties_registry(self):
        registry = PluginRegistry()
        plugin = DuckPlugin()
        registry.register(plugin)

        await registry.cleanup()

        assert plugin.cleaned
        assert len(registry) == 0


# =============================================================================
# Loader
# =============================================================================


class TestLoader:
    @pytest.mark.asyncio
    async def test_missing_directory_loads_nothing(self, tmp_path):
        registry = PluginRegistry()

        report = await PluginLoader.load_from_directory(
            registry, tmp_path / "missing", PluginContext()
        )

        assert report.loaded == []
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_loads_valid_plugin(self, write_plugin, plugins_dir):
        write_plugin()
        registry = PluginRegistry()

        report = await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())

        assert report.loaded == ["acme.sales"]
        plugin = registry.get("acme.sales")
        assert plugin.is_initialized
        assert plugin.name == "Sales Report"

    @pytest.mark.asyncio
    async def test_bad_candidates_do_not_stop_scan(self, write_plugin, plugins_dir):
        write_plugin("a_broken", source=BROKEN_IMPORT)
        write_plugin("b_not_plugin", source=NOT_A_PLUGIN)
        write_plugin("c_not_callable", source=NOT_CALLABLE)
        write_plugin("d_sales")
        (plugins_dir / "e_empty").mkdir()
        (plugins_dir / "__pycache__").mkdir()

        registry = PluginRegistry()
        report = await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())

        assert report.loaded == ["acme.sales"]
        assert [name for name, _ in report.failed] == ["a_broken"]
        skipped = dict(report.skipped)
        assert set(skipped) == {"b_not_plugin", "c_not_callable", "e_empty"}
        assert skipped["e_empty"] == "no entry module"

    @pytest.mark.asyncio
    async def test_duplicate_ids_keep_first(self, write_plugin, plugins_dir):
        write_plugin("first", name="First")
        write_plugin("second", name="Second")

        registry = PluginRegistry()
        report = await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())

        assert registry.get("acme.sales").name == "First"
        assert report.skipped == [("second", "duplicate id acme.sales")]

    @pytest.mark.asyncio
    async def test_loading_same_directory_twice_is_idempotent(self, write_plugin, plugins_dir):
        write_plugin()
        registry = PluginRegistry()
        await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())
        plugin = registry.get("acme.sales")

        report = await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())

        assert len(registry) == 1
        assert registry.list_ids() == ["acme.sales"]
        assert registry.get("acme.sales") is plugin
        assert report.loaded == []
        assert report.skipped == [("sales", "duplicate id acme.sales")]

    @pytest.mark.asyncio
    async def test_entry_module_can_import_siblings(self, write_plugin, plugins_dir):
        plugin_dir = write_plugin("helpers", source=RELATIVE_IMPORT)
        (plugin_dir / "helpers.py").write_text("ROWS = [{'a': 1}]\n")

        registry = PluginRegistry()
        await PluginLoader.load_from_directory(registry, plugins_dir, PluginContext())

        bundle = await registry.get("acme.helpers").process({})
        assert bundle.records == [{"a": 1}]


# =============================================================================
# Manager
# =============================================================================


class TestPluginManager:
    @pytest.mark.asyncio
    async def test_reload_picks_up_edits(self, write_plugin, plugins_dir):
        write_plugin(version="1.0.0")
        manager = PluginManager(plugins_dir)

        first = await manager.get_plugin("acme.sales")
        assert first.version == "1.0.0"

        write_plugin(version="1.1.0")
        await manager.reload()
        second = await manager.get_plugin("acme.sales")

        assert second.version == "1.1.0"
        assert second is not first
        assert first.lifecycle.value == "cleaned"

    @pytest.mark.asyncio
    async def test_reload_drops_removed_plugins(self, write_plugin, plugins_dir):
        plugin_dir = write_plugin()
        manager = PluginManager(plugins_dir)
        await manager.get_registry()

        (plugin_dir / "plugin.py").unlink()
        await manager.reload()

        with pytest.raises(PluginNotFoundError):
            await manager.get_plugin("acme.sales")

    @pytest.mark.asyncio
    async def test_get_registry_loads_once(self, write_plugin, plugins_dir):
        write_plugin()
        manager = PluginManager(plugins_dir)

        first = await manager.get_registry()
        second = await manager.get_registry()

        assert first is second
        assert manager.is_loaded

    @pytest.mark.asyncio
    async def test_force_reload(self, write_plugin, plugins_dir):
        write_plugin(name="Old")
        manager = PluginManager(plugins_dir)
        await manager.get_plugin("acme.sales")

        write_plugin(name="New")
        plugin = await manager.get_plugin("acme.sales", force_reload=True)

        assert plugin.name == "New"

    @pytest.mark.asyncio
    async def test_list_pipelines_and_metadata(self, write_plugin, plugins_dir):
        write_plugin()
        manager = PluginManager(plugins_dir)

        pipelines = await manager.list_pipelines()
        metadata = await manager.get_pipeline_metadata("acme.sales")

        assert [p["id"] for p in pipelines] == ["acme.sales"]
        assert metadata["output_formats"] == ["html", "mdx"]
        assert metadata["specifications"] == ["summary"]
        assert metadata["inputs"][0]["name"] == "region"

    @pytest.mark.asyncio
    async def test_unknown_pipeline_metadata(self, plugins_dir):
        manager = PluginManager(plugins_dir)

        with pytest.raises(PluginNotFoundError):
            await manager.get_pipeline_metadata("acme.none")

    @pytest.mark.asyncio
    async def test_clear_cache_and_shutdown(self, write_plugin, plugins_dir):
        write_plugin()
        manager = PluginManager(plugins_dir)
        plugin = await manager.get_plugin("acme.sales")

        manager.clear_cache()
        assert not manager.is_loaded

        await manager.get_registry()
        await manager.shutdown()
        assert not manager.is_loaded
        assert plugin.lifecycle.value == "initialized"

    @pytest.mark.asyncio
    async def test_leased_plugin_survives_reload(self, write_plugin, plugins_dir):
        write_plugin(version="1.0.0")
        manager = PluginManager(plugins_dir)

        async with manager.lease("acme.sales") as plugin:
            write_plugin(version="1.1.0")
            await manager.reload()

            assert plugin.lifecycle.value == "initialized"
            assert (await manager.get_plugin("acme.sales")).version == "1.1.0"

        assert plugin.lifecycle.value == "cleaned"

    @pytest.mark.asyncio
    async def test_overlapping_jobs_keep_their_plugin(self, connected_plugin, plugins_dir):
        manager = PluginManager(plugins_dir)

        async def run_job():
            await manager.reload()
            async with manager.lease("acme.connected") as plugin:
                return plugin, await plugin.process({})

        first = asyncio.create_task(run_job())
        await asyncio.sleep(0.1)
        second = asyncio.create_task(run_job())
        (plugin_a, bundle_a), (plugin_b, bundle_b) = await asyncio.gather(first, second)

        assert bundle_a.records == [{"value": 1}]
        assert bundle_b.records == [{"value": 1}]
        assert plugin_a is not plugin_b
        assert plugin_a.lifecycle.value == "cleaned"
        assert plugin_b.lifecycle.value == "initialized"

    @pytest.mark.asyncio
    async def test_lease_unknown_plugin(self, plugins_dir):
        manager = PluginManager(plugins_dir)

        with pytest.raises(PluginNotFoundError):
            async with manager.lease("acme.none"):
                pass

        assert manager._leases == {}

    @pytest.mark.asyncio
    async def test_shutdown_cleans_plugins_awaiting_release(self, write_plugin, plugins_dir):
        write_plugin()
        manager = PluginManager(plugins_dir)

        async with manager.lease("acme.sales") as plugin:
            await manager.reload()
            await manager.shutdown()

            assert plugin.lifecycle.value == "cleaned"

        assert not manager.is_loaded

    def test_default_plugins_dir_from_config(self, isolated_config, monkeypatch, tmp_path):
        monkeypatch.setenv("REPORTFLOW_PLUGINS_DIR", str(tmp_path / "custom"))

        assert PluginManager().plugins_dir == tmp_path / "custom"
