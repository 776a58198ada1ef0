"""Report output renderers.

- :class:`HtmlRenderer`: markdown to a styled HTML document
- :class:`MdxRenderer`: MDX (markdown with components) to HTML
- :class:`PdfRenderer`: HTML document to PDF via WeasyPrint
"""

from reportflow.renderers.components import BUILTIN_COMPONENTS, Component
from reportflow.renderers.html import HtmlRenderer, HtmlRenderOptions
from reportflow.renderers.mdx import (
    MdxElement,
    MdxRenderer,
    MdxSyntaxError,
    MdxText,
    compile_mdx,
    evaluate_expression,
)
from reportflow.renderers.pdf import PdfOptions, PdfRenderer, inject_css
from reportflow.renderers.styles import ENHANCED_CSS, pdf_css

__all__ = [
    "BUILTIN_COMPONENTS",
    "Component",
    "ENHANCED_CSS",
    "HtmlRenderOptions",
    "HtmlRenderer",
    "MdxElement",
    "MdxRenderer",
    "MdxSyntaxError",
    "MdxText",
    "PdfOptions",
    "PdfRenderer",
    "compile_mdx",
    "evaluate_expression",
    "inject_css",
    "pdf_css",
]
