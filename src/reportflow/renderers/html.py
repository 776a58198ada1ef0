"""Markdown to standalone HTML document rendering."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass

import markdown

from reportflow.renderers.styles import ENHANCED_CSS, pdf_css

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ("extra", "nl2br", "sane_lists")


@dataclass
class HtmlRenderOptions:
    """Options for wrapping a fragment into a full document.

    Attributes:
        include_styles: Embed the report stylesheet.
        custom_css: Extra CSS appended after the report stylesheet.
        theme: Value of the ``data-theme`` attribute on ``<body>``.
        for_pdf: Append page setup rules for print output.
        page_size: Page size used when ``for_pdf`` is set.
        title: Document title.
        subtitle: Optional line shown under a generated title header.
    """

    include_styles: bool = True
    custom_css: str = ""
    theme: str = "light"
    for_pdf: bool = False
    page_size: str = "A4"
    title: str = "Report"
    subtitle: str | None = None


class HtmlRenderer:
    """Converts markdown into styled HTML documents.

    Example:
        >>> renderer = HtmlRenderer()
        >>> page = renderer.render_markdown("# Sales\\n\\nUp 12%.", HtmlRenderOptions(title="Sales"))
    """

    def __init__(self, extensions: tuple[str, ...] = MARKDOWN_EXTENSIONS):
        self._extensions = list(extensions)

    def markdown_to_fragment(self, source: str) -> str:
        """Convert markdown to an HTML fragment without a document shell."""
        return markdown.markdown(source, extensions=self._extensions, output_format="html")

    def render_markdown(self, source: str, options: HtmlRenderOptions | None = None) -> str:
        """Convert markdown to a complete HTML document."""
        return self.wrap_document(self.markdown_to_fragment(source), options)

    def render_fragment(self, fragment: str, options: HtmlRenderOptions | None = None) -> str:
        """Wrap an already rendered HTML fragment in a document."""
        return self.wrap_document(fragment, options)

    def wrap_document(self, body: str, options: HtmlRenderOptions | None = None) -> str:
        options = options or HtmlRenderOptions()

        css = ""
        if options.include_styles:
            css = ENHANCED_CSS
        if options.for_pdf:
            css += pdf_css(options.page_size)
        if options.custom_css:
            css += "\n" + options.custom_css

        header = ""
        if options.subtitle:
            header = (
                '<header class="report-header">\n'
                f'<h1 class="report-title">{html.escape(options.title)}</h1>\n'
                f'<p class="report-subtitle">{html.escape(options.subtitle)}</p>\n'
                "</header>\n"
            )

        style_block = f"<style>{css}</style>\n" if css else ""
        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "<head>\n"
            '<meta charset="UTF-8">\n'
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
            f"<title>{html.escape(options.title)}</title>\n"
            f"{style_block}"
            "</head>\n"
            f'<body data-theme="{html.escape(options.theme, quote=True)}">\n'
            '<div class="report-container">\n'
            f"{header}"
            f"{body}\n"
            "</div>\n"
            "</body>\n"
            "</html>\n"
        )
