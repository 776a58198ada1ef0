"""Report engine: specification-driven report generation.

One :meth:`ReportEngine.generate_report` call runs six stages:

1. data processing: ``plugin.process(inputs)`` produces a bundle
2. prompts: each prompt template is rendered and sent to the LLM
3. render context: bundle, input bindings, prompt outputs and ``metadata``
4. template rendering with the shared filter set
5. format conversion (html, pdf, mdx, pptx)
6. persistence under ``<base>-<timestamp>.<ext>``

The shutdown coordinator is checked before the run, before the prompt stage,
before every prompt and before template rendering.

Example:
    >>> engine = ReportEngine(LLMClient(config))
    >>> path = await engine.generate_report(
    ...     plugin, {"data_path": "sales.csv"}, "summary", "html"
    ... )
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from reportflow.bundles.types import Bundle
from reportflow.exporters.pptx import PptxExporter, PptxExportOptions
from reportflow.llm.client import CompletionClient
from reportflow.observability.logging import log_context
from reportflow.plugins.base import OutputFormat
from reportflow.renderers.html import HtmlRenderer, HtmlRenderOptions
from reportflow.renderers.mdx import MdxRenderer
from reportflow.renderers.pdf import PdfOptions, PdfRenderer
from reportflow.reports.errors import (
    ReportTypeNotFoundError,
    TemplateNotFoundError,
    TemplateRenderError,
    UnsupportedFormatError,
)
from reportflow.reports.specification import PromptSpec, ReportSpecification
from reportflow.reports.templating import (
    create_environment,
    date_format_filter,
    default_preamble,
    iso_utc,
)
from reportflow.shutdown import (
    ShutdownCoordinator,
    ShutdownError,
    get_shutdown_coordinator,
    is_shutdown_error,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Report Framework"


def file_timestamp(moment: datetime | None = None) -> str:
    """UTC ISO instant safe for file names (``:`` and ``.`` become ``-``)."""
    moment = moment or datetime.now(timezone.utc)
    return iso_utc(moment).replace(":", "-").replace(".", "-")


def output_file_name(base: str, extension: str, moment: datetime | None = None) -> str:
    return f"{base}-{file_timestamp(moment)}.{extension}"


def _format_values(plugin: Any) -> list[str]:
    return [getattr(f, "value", f) for f in (plugin.output_formats or [])]


class ReportEngine:
    """Turns a plugin, its inputs and a report type into a report file.

    Args:
        llm_client: Anything with ``async complete(prompt) -> LLMResponse``.
        shutdown: Cancellation token checked between stages. Defaults to
            the process-wide coordinator.
        pdf_options: Page setup for PDF output.
    """

    def __init__(
        self,
        llm_client: CompletionClient,
        shutdown: ShutdownCoordinator | None = None,
        pdf_options: PdfOptions | None = None,
    ):
        self.llm_client = llm_client
        self.shutdown = shutdown or get_shutdown_coordinator()
        self.html_renderer = HtmlRenderer()
        self.mdx_renderer = MdxRenderer()
        self.pdf_renderer = PdfRenderer(pdf_options)
        self.pptx_exporter = PptxExporter()

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def generate_report(
        self,
        plugin: Any,
        inputs: Mapping[str, Any],
        report_type: str,
        output_format: str,
        output_dir: Path | str | None = None,
        report_name: str | None = None,
    ) -> Path:
        """Generate one report and return the absolute path of the file.

        Raises:
            UnsupportedFormatError: If the plugin does not declare the format.
            ReportTypeNotFoundError: If the plugin has no such report type.
            SpecificationError: If the specification is malformed.
            TemplateNotFoundError: If the template file is missing.
            TemplateRenderError: If the template fails to render.
            ShutdownError: If shutdown is requested during the run.
        """
        self.shutdown.check()

        output_format = getattr(output_format, "value", output_format)
        supported = _format_values(plugin)
        if output_format not in supported:
            raise UnsupportedFormatError(output_format, plugin.id, supported)

        specifications = plugin.get_specifications() or {}
        if report_type not in specifications:
            raise ReportTypeNotFoundError(report_type, plugin.id, list(specifications))
        spec = ReportSpecification.coerce(
            specifications[report_type], source=f"{plugin.id}:{report_type}"
        )

        output_dir = Path(output_dir) if output_dir is not None else Path.cwd() / "reports"

        with log_context(plugin_id=plugin.id):
            started = time.perf_counter()
            logger.info(
                f"Generating report: plugin={plugin.id} type={report_type} "
                f"format={output_format}"
            )

            # Stage 1: data processing
            bundle: Bundle = await plugin.process(dict(inputs))
            logger.info(f"Bundle ready: {bundle.dataset_name} ({bundle.total_records} records)")

            # Stage 2: prompts
            self.shutdown.check()
            attributes = self.build_base_context(bundle, spec)
            prompt_results: dict[str, str] = {}
            if spec.prompts:
                prompt_results = await self.process_prompts(plugin, spec, attributes)
                logger.info(f"{len(prompt_results)} prompts completed")

            # Stage 3: render context
            context = self.build_render_context(plugin, report_type, attributes, prompt_results)

            # Stage 4: template
            self.shutdown.check()
            rendered = await self.render_template(plugin, spec, context)

            # Stage 5 and 6: conversion and persistence
            path = await self._convert_and_write(
                plugin, spec, bundle, context, rendered,
                output_format, report_type, output_dir, report_name,
            )

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"Report saved: {path} ({elapsed_ms:.0f}ms)")
            return path

    # =========================================================================
    # Context
    # =========================================================================

    @staticmethod
    def build_base_context(bundle: Bundle, spec: ReportSpecification) -> dict[str, Any]:
        """Bundle dict plus every input binding that resolves in it."""
        data = bundle.to_dict()
        context = dict(data)
        for binding in spec.inputs:
            found, value = binding.resolve(data)
            if found:
                context[binding.name] = value
            else:
                logger.debug(f"Input binding '{binding.path}' not found in bundle")
        return context

    @staticmethod
    def build_render_context(
        plugin: Any,
        report_type: str,
        attributes: Mapping[str, Any],
        prompt_results: Mapping[str, str],
    ) -> dict[str, Any]:
        bundle_metadata = attributes.get("metadata") or {}
        metadata = {
            "plugin_id": plugin.id,
            "plugin_name": plugin.name,
            "report_type": report_type,
            "report_title": f"{plugin.name} Report",
            "generated_at": iso_utc(datetime.now(timezone.utc)),
            "author": DEFAULT_AUTHOR,
        }
        metadata.update(bundle_metadata)

        context = dict(attributes)
        context.update(prompt_results)
        context["metadata"] = metadata
        return context

    # =========================================================================
    # Prompts
    # =========================================================================

    async def process_prompts(
        self,
        plugin: Any,
        spec: ReportSpecification,
        context: Mapping[str, Any],
    ) -> dict[str, str]:
        """Render and run every prompt in order.

        A missing prompt file, a render failure or an LLM failure yields an
        empty result for that prompt. Shutdown stops the loop and propagates.
        """
        results: dict[str, str] = {}
        prompts_dir = Path(plugin.get_prompts_dir())

        for prompt in spec.prompts:
            self.shutdown.check()
            logger.info(f"Running prompt: {prompt.name}")

            prompt_path = prompts_dir / prompt.file
            try:
                source = await asyncio.to_thread(prompt_path.read_text, encoding="utf-8")
            except OSError:
                logger.warning(f"Prompt file not found: {prompt_path}")
                results[prompt.name] = ""
                continue

            prompt_context = {
                name: [] if context.get(name) is None else context[name]
                for name in prompt.inputs
            }

            try:
                text = self.render_prompt(prompt, source, prompt_context, prompts_dir)
            except Exception as e:
                logger.warning(f"Prompt template rendering failed for {prompt.name}: {e}")
                results[prompt.name] = ""
                continue

            try:
                response = await self.llm_client.complete(text)
            except Exception as e:
                if is_shutdown_error(e):
                    logger.info("Stopping prompts - shutting down")
                    if isinstance(e, ShutdownError):
                        raise
                    raise ShutdownError() from e
                logger.warning(f"Prompt {prompt.name} failed: {e}")
                results[prompt.name] = ""
                continue

            results[prompt.name] = response.content
            tokens = response.usage.total_tokens if response.usage else 0
            logger.info(f"Prompt {prompt.name} completed (tokens: {tokens})")

        return results

    def render_prompt(
        self,
        prompt: PromptSpec,
        source: str,
        context: Mapping[str, Any],
        prompts_dir: Path,
    ) -> str:
        """Render one prompt template to the text sent to the LLM."""
        env = create_environment(prompts_dir)
        if prompt.is_mdx:
            processed = env.from_string(source).render(dict(context))
            return self.mdx_renderer.render(processed, context)

        preamble = default_preamble(prompt.inputs)
        if preamble:
            source = preamble + "\n" + source
        return env.from_string(source).render(dict(context))

    # =========================================================================
    # Template
    # =========================================================================

    async def render_template(
        self,
        plugin: Any,
        spec: ReportSpecification,
        context: Mapping[str, Any],
    ) -> str:
        """Render the report template.

        MDX templates only get variable substitution here; components are
        rendered during format conversion.
        """
        templates_dir = Path(plugin.get_templates_dir())
        template_path = templates_dir / spec.template.file
        try:
            source = await asyncio.to_thread(template_path.read_text, encoding="utf-8")
        except OSError:
            raise TemplateNotFoundError(str(template_path))

        env = create_environment(templates_dir)
        try:
            return env.from_string(source).render(dict(context))
        except Exception as e:
            raise TemplateRenderError(f"Template rendering failed: {e}") from e

    # =========================================================================
    # Conversion and persistence
    # =========================================================================

    def _html_options(self, context: Mapping[str, Any], for_pdf: bool = False) -> HtmlRenderOptions:
        metadata = context.get("metadata") or {}
        generated = date_format_filter(metadata.get("generated_at"), "long")
        return HtmlRenderOptions(
            title=str(metadata.get("report_title") or "Report"),
            subtitle=f"Generated on {generated}",
            for_pdf=for_pdf,
            page_size=self.pdf_renderer.options.page_size,
        )

    def to_html(
        self,
        rendered: str,
        spec: ReportSpecification,
        context: Mapping[str, Any],
        for_pdf: bool = False,
    ) -> str:
        options = self._html_options(context, for_pdf)
        if spec.template.is_mdx:
            fragment = self.mdx_renderer.render(rendered, context)
            return self.html_renderer.render_fragment(fragment, options)
        return self.html_renderer.render_markdown(rendered, options)

    async def _convert_and_write(
        self,
        plugin: Any,
        spec: ReportSpecification,
        bundle: Bundle,
        context: Mapping[str, Any],
        rendered: str,
        output_format: str,
        report_type: str,
        output_dir: Path,
        report_name: str | None,
    ) -> Path:
        output: str | bytes
        if output_format == OutputFormat.PPTX.value:
            metadata = context["metadata"]
            base = report_name or f"{plugin.id}-{report_type}"
            path = output_dir / output_file_name(base, "pptx")
            options = PptxExportOptions(
                title=metadata.get("report_title"),
                author=metadata.get("author") or DEFAULT_AUTHOR,
                subject=f"{plugin.name} Report",
            )
            await asyncio.to_thread(self.pptx_exporter.export, bundle, path, options)
            return path.resolve()

        if output_format == OutputFormat.HTML.value:
            output, extension = self.to_html(rendered, spec, context), "html"
        elif output_format == OutputFormat.PDF.value:
            document = self.to_html(rendered, spec, context, for_pdf=True)
            output = await asyncio.to_thread(self.pdf_renderer.render, document)
            extension = "pdf"
        elif output_format == OutputFormat.MDX.value and spec.template.is_mdx:
            output, extension = self.to_html(rendered, spec, context), "html"
        else:
            output, extension = rendered, "md"

        path = output_dir / output_file_name(report_name or plugin.id, extension)
        await asyncio.to_thread(_write_output, path, output)
        return path.resolve()


def _write_output(path: Path, output: str | bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(output, bytes):
        path.write_bytes(output)
    else:
        path.write_text(output, encoding="utf-8")
