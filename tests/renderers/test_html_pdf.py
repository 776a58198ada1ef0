"""Tests for HTML document and PDF rendering."""

from __future__ import annotations

import sys
from types import ModuleType
from unittest.mock import MagicMock

import pytest

from reportflow.renderers import (
    HtmlRenderer,
    HtmlRenderOptions,
    PdfOptions,
    PdfRenderer,
    inject_css,
)


class TestHtmlRenderer:
    def test_render_markdown_document(self):
        page = HtmlRenderer().render_markdown(
            "# Sales\n\n| a | b |\n|---|---|\n| 1 | 2 |",
            HtmlRenderOptions(title="Q1 <Sales>", subtitle="Generated on May 1, 2024"),
        )

        assert page.startswith("<!DOCTYPE html>")
        assert "<title>Q1 &lt;Sales&gt;</title>" in page
        assert '<p class="report-subtitle">Generated on May 1, 2024</p>' in page
        assert "<table>" in page
        assert "<style>" in page

    def test_no_styles_no_header(self):
        page = HtmlRenderer().render_fragment(
            "<p>x</p>", HtmlRenderOptions(include_styles=False, theme="dark")
        )

        assert "<style>" not in page
        assert 'data-theme="dark"' in page
        assert "report-header" not in page

    def test_pdf_rules_appended(self):
        page = HtmlRenderer().wrap_document(
            "", HtmlRenderOptions(for_pdf=True, page_size="Letter", custom_css=".x{}")
        )

        assert "size: Letter portrait;" in page
        assert page.index("size: Letter") < page.index(".x{}")


class TestPdfRenderer:
    def test_inject_css(self):
        assert inject_css("<html><head></head></html>", "a{}") == (
            "<html><head><style>a{}</style></head></html>"
        )
        assert inject_css("<p>no head</p>", "a{}") == "<p>no head</p>"

    def test_invalid_orientation(self):
        with pytest.raises(ValueError, match="Invalid orientation"):
            PdfOptions(orientation="diagonal")

    def test_render_uses_weasyprint(self, monkeypatch):
        html_cls = MagicMock()
        html_cls.return_value.write_pdf.return_value = b"%PDF"
        fake = ModuleType("weasyprint")
        fake.HTML = html_cls
        monkeypatch.setitem(sys.modules, "weasyprint", fake)

        result = PdfRenderer(PdfOptions(orientation="landscape")).render(
            "<html><head></head><body>x</body></html>"
        )

        assert result == b"%PDF"
        rendered = html_cls.call_args.kwargs["string"]
        assert "size: A4 landscape;" in rendered
