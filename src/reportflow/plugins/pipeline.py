"""Pipeline plugin contract.

Processing follows a fixed skeleton, :func:`run_pipeline`, fed by a
:class:`PipelineStages` bundle of callables:

    before -> validate -> load_data -> transform -> statistics
           -> build_bundle -> after

Any failure runs ``on_error`` and re-raises the original exception.

Two ways to write a plugin:

    >>> class SalesPlugin(PipelinePlugin):
    ...     id = "acme.sales"
    ...     name = "Sales Report"
    ...     version = "1.0.0"
    ...     description = "Monthly sales"
    ...     inputs = [InputField("data_path", "CSV file", "file", True)]
    ...     output_formats = ["html", "pdf"]
    ...
    ...     async def load_data(self, inputs):
    ...         return FileParser.parse(inputs["data_path"])
    ...
    ...     def get_specifications(self): ...
    ...     def get_prompts_dir(self): ...
    ...     def get_templates_dir(self): ...
    >>> plugin = SalesPlugin

or build one from plain callables with :class:`FunctionPlugin`.
"""

from __future__ import annotations

import inspect
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

from reportflow.bundles.builder import utc_now_iso
from reportflow.bundles.types import Bundle
from reportflow.plugins.base import (
    InputField,
    InputValidationError,
    PluginContext,
    PluginLifecycle,
    PluginStateError,
    PluginValidationError,
    coerce_input_fields,
    validate_inputs,
    validate_plugin_metadata,
)

logger = logging.getLogger(__name__)

Records = list[Any]
Inputs = Mapping[str, Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


# =============================================================================
# Default stages
# =============================================================================


def default_transform(data: Records, inputs: Inputs) -> Records:
    return data


def default_statistics(data: Records, inputs: Inputs) -> dict[str, Any]:
    return {
        "count": len(data),
        "first_record": data[0] if data else None,
        "last_record": data[-1] if data else None,
    }


def default_source(inputs: Inputs) -> str:
    return inputs.get("data_path") or inputs.get("api_endpoint") or "unknown"


def default_bundle(
    dataset_name: str,
    data: Records,
    stats: dict[str, Any],
    inputs: Inputs,
    **metadata: Any,
) -> Bundle:
    """Build the standard bundle for ``data``.

    ``metadata`` keys are added after ``total_records``, ``ingested_at`` and
    ``source``.
    """
    return Bundle(
        dataset_name=dataset_name,
        samples={"main": list(data)},
        stats=dict(stats),
        metadata={
            "total_records": len(data),
            "ingested_at": utc_now_iso(),
            "source": default_source(inputs),
            **metadata,
        },
    )


# =============================================================================
# Template method
# =============================================================================


@dataclass
class PipelineStages:
    """Callables plugged into :func:`run_pipeline`.

    Only ``load_data`` is required. Each callable may be sync or async.

    Attributes:
        load_data: ``(inputs) -> records``.
        build_bundle: ``(records, stats, inputs) -> Bundle``.
        transform: ``(records, inputs) -> records``.
        statistics: ``(records, inputs) -> dict``.
        validate: ``(inputs) -> list of error strings``.
        before: ``(inputs) -> None``.
        after: ``(bundle) -> None``.
        on_error: ``(error, inputs) -> None``.
    """

    load_data: Callable[[Inputs], Records | Awaitable[Records]]
    build_bundle: Callable[..., Bundle | Awaitable[Bundle]]
    transform: Callable[..., Any] = default_transform
    statistics: Callable[..., Any] = default_statistics
    validate: Callable[[Inputs], Any] | None = None
    before: Callable[[Inputs], Any] | None = None
    after: Callable[[Bundle], Any] | None = None
    on_error: Callable[[BaseException, Inputs], Any] | None = None


async def run_pipeline(
    stages: PipelineStages,
    inputs: Inputs,
    *,
    log: logging.Logger | logging.LoggerAdapter = logger,
    plugin_id: str | None = None,
) -> Bundle:
    """Run the fixed processing skeleton over ``stages``.

    Raises:
        InputValidationError: When ``stages.validate`` reports errors. No data
            is loaded in that case.
        Exception: Whatever a stage raised, after ``on_error`` ran.
    """
    start = time.perf_counter()
    log.info("Starting data processing...")

    try:
        if stages.before is not None:
            await _maybe_await(stages.before(inputs))

        if stages.validate is not None:
            errors = await _maybe_await(stages.validate(inputs))
            if errors:
                raise InputValidationError(list(errors), plugin_id)
            log.info("Inputs validated")

        log.info("Loading data...")
        raw = list(await _maybe_await(stages.load_data(inputs)))
        log.info(f"Loaded {len(raw)} records")

        log.info("Transforming data...")
        data = list(await _maybe_await(stages.transform(raw, inputs)))
        log.info(f"Transformed to {len(data)} records")

        log.info("Computing statistics...")
        stats = await _maybe_await(stages.statistics(data, inputs))
        log.info("Statistics computed")

        bundle = await _maybe_await(stages.build_bundle(data, stats, inputs))

        if stages.after is not None:
            await _maybe_await(stages.after(bundle))

        duration_ms = (time.perf_counter() - start) * 1000
        log.info(f"Processing completed in {duration_ms:.0f}ms")
        return bundle

    except Exception as e:
        log.error(f"Processing failed: {e}")
        if stages.on_error is not None:
            await _maybe_await(stages.on_error(e, inputs))
        raise


# =============================================================================
# Plugin base class
# =============================================================================


class PipelinePlugin(ABC):
    """Base class for pipeline plugins.

    Subclasses declare ``id``, ``name``, ``version``, ``description``,
    ``inputs`` and ``output_formats`` as class attributes and implement:
    - load_data(): Ingest raw records
    - get_specifications(): Report types this plugin offers
    - get_prompts_dir() / get_templates_dir(): Asset directories

    Hooks that may be overridden: on_init, before_process, transform_data,
    compute_statistics, build_bundle, after_process, on_error, on_cleanup,
    validate_inputs.

    ``initialize``, ``process`` and ``cleanup`` drive the lifecycle and are
    not meant to be overridden.
    """

    id: str = ""
    name: str = ""
    version: str = ""
    description: str = ""
    inputs: list[InputField] = []
    output_formats: list[str] = []

    def __init__(self) -> None:
        self._lifecycle = PluginLifecycle.UNINITIALIZED
        self._context: PluginContext | None = None
        self._log: logging.LoggerAdapter | None = None

    # -- lifecycle ------------------------------------------------------------

    @property
    def lifecycle(self) -> PluginLifecycle:
        return self._lifecycle

    @property
    def is_initialized(self) -> bool:
        return self._lifecycle == PluginLifecycle.INITIALIZED

    @property
    def context(self) -> PluginContext:
        if self._context is None:
            raise PluginStateError(f"Plugin {self.id} has no context", self.id)
        return self._context

    @property
    def log(self) -> logging.Logger | logging.LoggerAdapter:
        if self._log is None:
            return logger
        return self._log

    async def initialize(self, context: PluginContext) -> None:
        """Validate metadata, run ``on_init`` and mark the plugin ready.

        Raises:
            PluginStateError: If the plugin is already initialized.
            PluginValidationError: If any metadata is invalid.
        """
        if self.is_initialized:
            raise PluginStateError(f"Plugin {self.id} already initialized", self.id)

        self._context = context
        self._log = context.logger_for(self.id)
        self.log.info("Initializing plugin...")

        errors = validate_plugin_metadata(self)
        if errors:
            raise PluginValidationError(errors, self.id)

        await self.on_init()

        self._lifecycle = PluginLifecycle.INITIALIZED
        self.log.info("Plugin initialized successfully")

    async def process(self, inputs: Inputs) -> Bundle:
        """Run the processing pipeline and return the resulting bundle.

        Raises:
            PluginStateError: If called before :meth:`initialize`.
        """
        if not self.is_initialized:
            raise PluginStateError(
                f"Plugin {self.id} not initialized. Call initialize() first.",
                self.id,
            )
        return await run_pipeline(
            self.stages(), inputs, log=self.log, plugin_id=self.id
        )

    async def cleanup(self) -> None:
        """Run ``on_cleanup`` and leave the initialized state."""
        if self._lifecycle == PluginLifecycle.CLEANED:
            return
        self.log.info("Cleaning up plugin resources...")
        await self.on_cleanup()
        self._lifecycle = PluginLifecycle.CLEANED
        self.log.info("Cleanup completed")

    def stages(self) -> PipelineStages:
        """Adapt this plugin's hook methods into pipeline stages."""
        return PipelineStages(
            load_data=self.load_data,
            build_bundle=self.build_bundle,
            transform=self.transform_data,
            statistics=self.compute_statistics,
            validate=self.validate_inputs,
            before=self.before_process,
            after=self.after_process,
            on_error=self.on_error,
        )

    # -- required -------------------------------------------------------------

    @abstractmethod
    async def load_data(self, inputs: Inputs) -> Records:
        """Load raw records from the data source."""
        ...

    @abstractmethod
    def get_specifications(self) -> Mapping[str, Any]:
        """Return report type name -> specification (object or dict)."""
        ...

    @abstractmethod
    def get_prompts_dir(self) -> str | Path:
        ...

    @abstractmethod
    def get_templates_dir(self) -> str | Path:
        ...

    # -- hooks ----------------------------------------------------------------

    async def on_init(self) -> None:
        pass

    async def before_process(self, inputs: Inputs) -> None:
        pass

    async def after_process(self, bundle: Bundle) -> None:
        pass

    async def on_error(self, error: BaseException, inputs: Inputs) -> None:
        self.log.error(f"Error: {error}")

    async def on_cleanup(self) -> None:
        pass

    async def transform_data(self, data: Records, inputs: Inputs) -> Records:
        return default_transform(data, inputs)

    async def compute_statistics(self, data: Records, inputs: Inputs) -> dict[str, Any]:
        return default_statistics(data, inputs)

    async def build_bundle(
        self, data: Records, stats: dict[str, Any], inputs: Inputs
    ) -> Bundle:
        return default_bundle(
            self.id,
            data,
            stats,
            inputs,
            plugin_id=self.id,
            plugin_version=self.version,
        )

    def validate_inputs(self, inputs: Inputs) -> list[str]:
        return validate_inputs(coerce_input_fields(self.inputs), inputs)

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"id={self.id!r} "
            f"version={self.version!r} "
            f"state={self._lifecycle.value!r}>"
        )


class FunctionPlugin(PipelinePlugin):
    """A plugin assembled from plain callables instead of a subclass.

    Example:
        >>> plugin = FunctionPlugin(
        ...     id="acme.inventory",
        ...     name="Inventory",
        ...     version="0.1.0",
        ...     description="Stock levels",
        ...     output_formats=["html"],
        ...     load_data=lambda inputs: read_rows(inputs["data_path"]),
        ...     specifications={"summary": {...}},
        ...     prompts_dir="prompts",
        ...     templates_dir="templates",
        ... )
    """

    def __init__(
        self,
        *,
        id: str,
        name: str,
        version: str,
        description: str,
        output_formats: list[str],
        load_data: Callable[[Inputs], Any],
        specifications: Mapping[str, Any],
        prompts_dir: str | Path,
        templates_dir: str | Path,
        inputs: list[InputField] | None = None,
        transform: Callable[..., Any] | None = None,
        statistics: Callable[..., Any] | None = None,
        build_bundle: Callable[..., Any] | None = None,
    ):
        super().__init__()
        self.id = id
        self.name = name
        self.version = version
        self.description = description
        self.inputs = list(inputs or [])
        self.output_formats = list(output_formats)
        self._load_data = load_data
        self._specifications = dict(specifications)
        self._prompts_dir = Path(prompts_dir)
        self._templates_dir = Path(templates_dir)
        self._transform = transform
        self._statistics = statistics
        self._build_bundle = build_bundle

    async def load_data(self, inputs: Inputs) -> Records:
        return await _maybe_await(self._load_data(inputs))

    async def transform_data(self, data: Records, inputs: Inputs) -> Records:
        if self._transform is None:
            return await super().transform_data(data, inputs)
        return await _maybe_await(self._transform(data, inputs))

    async def compute_statistics(self, data: Records, inputs: Inputs) -> dict[str, Any]:
        if self._statistics is None:
            return await super().compute_statistics(data, inputs)
        return await _maybe_await(self._statistics(data, inputs))

    async def build_bundle(
        self, data: Records, stats: dict[str, Any], inputs: Inputs
    ) -> Bundle:
        if self._build_bundle is None:
            return await super().build_bundle(data, stats, inputs)
        return await _maybe_await(self._build_bundle(data, stats, inputs))

    def get_specifications(self) -> Mapping[str, Any]:
        return self._specifications

    def get_prompts_dir(self) -> Path:
        return self._prompts_dir

    def get_templates_dir(self) -> Path:
        return self._templates_dir
