"""Shared pytest fixtures."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from reportflow.config import CONFIG_DIR_ENV, reset_config_manager
from reportflow.plugins.manager import reset_plugin_manager
from reportflow.shutdown import get_shutdown_coordinator


SAMPLE_PLUGIN = '''
from pathlib import Path

from reportflow.plugins import FunctionPlugin, InputField

HERE = Path(__file__).parent


def plugin():
    return FunctionPlugin(
        id="{plugin_id}",
        name="{name}",
        version="{version}",
        description="Sample sales pipeline",
        output_formats=["html", "mdx"],
        inputs=[InputField("region", "Region", "string", True)],
        load_data=lambda inputs: [
            {{"region": inputs["region"], "amount": 10}},
            {{"region": inputs["region"], "amount": 32}},
        ],
        specifications={{
            "summary": {{
                "inputs": [{{"path": "metadata.total_records", "name": "total"}}],
                "prompts": [
                    {{"file": "headline.j2", "name": "headline", "inputs": ["total"]}},
                ],
                "template": {{"file": "summary.md.j2", "type": "njk"}},
            }},
        }},
        prompts_dir=HERE / "prompts",
        templates_dir=HERE / "templates",
    )
'''


CONNECTED_PLUGIN = '''
import asyncio

from reportflow.plugins import PipelinePlugin


class ConnectedPlugin(PipelinePlugin):
    id = "acme.connected"
    name = "Connected"
    version = "1.0.0"
    description = "Holds a connection between init and cleanup"
    output_formats = ["html"]

    async def on_init(self):
        self.conn = object()

    async def on_cleanup(self):
        self.conn = None

    async def load_data(self, inputs):
        await asyncio.sleep(0.3)
        if self.conn is None:
            raise RuntimeError("connection closed under running job")
        return [{"value": 1}]

    def get_specifications(self):
        return {}

    def get_prompts_dir(self):
        return "."

    def get_templates_dir(self):
        return "."


plugin = ConnectedPlugin
'''


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config directory at a temp dir and reset global state."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config_dir))
    reset_config_manager()
    reset_plugin_manager()
    get_shutdown_coordinator().reset()
    yield config_dir
    reset_config_manager()
    reset_plugin_manager()
    get_shutdown_coordinator().reset()


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    return tmp_path / "plugins"


@pytest.fixture
def write_plugin(plugins_dir: Path) -> Callable[..., Path]:
    """Write a sample plugin directory and return its path."""

    def _write(
        dir_name: str = "sales",
        plugin_id: str = "acme.sales",
        name: str = "Sales Report",
        version: str = "1.0.0",
        source: str | None = None,
    ) -> Path:
        plugin_dir = plugins_dir / dir_name
        (plugin_dir / "prompts").mkdir(parents=True, exist_ok=True)
        (plugin_dir / "templates").mkdir(parents=True, exist_ok=True)
        if source is None:
            source = SAMPLE_PLUGIN.format(plugin_id=plugin_id, name=name, version=version)
        (plugin_dir / "plugin.py").write_text(textwrap.dedent(source))
        (plugin_dir / "prompts" / "headline.j2").write_text("Summarize {{ total }} records")
        (plugin_dir / "templates" / "summary.md.j2").write_text(
            "# {{ metadata.report_title }}\n\n{{ headline }}\n"
        )
        return plugin_dir

    return _write


@pytest.fixture
def connected_plugin(write_plugin: Callable[..., Path]) -> Path:
    """Write a plugin whose connection lives from init until cleanup."""
    return write_plugin("connected", source=CONNECTED_PLUGIN)
