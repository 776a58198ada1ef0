"""HTML to PDF conversion using WeasyPrint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reportflow.renderers.styles import pdf_css

logger = logging.getLogger(__name__)


@dataclass
class PdfOptions:
    """Page setup for PDF output.

    Attributes:
        page_size: CSS page size name (A4, Letter, ...).
        orientation: ``portrait`` or ``landscape``.
        margin_top: Top margin as a CSS length.
        margin_right: Right margin as a CSS length.
        margin_bottom: Bottom margin as a CSS length.
        margin_left: Left margin as a CSS length.
    """

    page_size: str = "A4"
    orientation: str = "portrait"
    margin_top: str = "20mm"
    margin_right: str = "15mm"
    margin_bottom: str = "20mm"
    margin_left: str = "15mm"

    def __post_init__(self) -> None:
        if self.orientation not in ("portrait", "landscape"):
            raise ValueError(f"Invalid orientation: {self.orientation}")

    def to_css(self) -> str:
        return pdf_css(
            page_size=self.page_size,
            orientation=self.orientation,
            margin_top=self.margin_top,
            margin_right=self.margin_right,
            margin_bottom=self.margin_bottom,
            margin_left=self.margin_left,
        )


def inject_css(html: str, css: str) -> str:
    """Insert a ``<style>`` block before ``</head>``.

    Documents without a head are returned unchanged.
    """
    head_close = html.lower().find("</head>")
    if head_close == -1:
        return html
    return html[:head_close] + f"<style>{css}</style>" + html[head_close:]


class PdfRenderer:
    """Converts complete HTML documents to PDF bytes.

    Background colours and gradients are kept in the output.

    Example:
        renderer = PdfRenderer(PdfOptions(page_size="Letter"))
        pdf_bytes = renderer.render(html_document)
    """

    def __init__(self, options: PdfOptions | None = None):
        self.options = options or PdfOptions()

    def render(self, html: str) -> bytes:
        """Render ``html`` to PDF bytes. Blocking; run it in a thread."""
        try:
            from weasyprint import HTML
        except ImportError:
            raise ImportError(
                "WeasyPrint is required for PDF export. "
                "Install with: pip install weasyprint"
            )

        content = inject_css(html, self.options.to_css())
        pdf_bytes = HTML(string=content).write_pdf()
        logger.debug(f"Rendered PDF ({len(pdf_bytes)} bytes, {self.options.page_size})")
        return pdf_bytes
