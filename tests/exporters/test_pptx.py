"""Tests for the PowerPoint exporter."""

from __future__ import annotations

import pytest

from reportflow.bundles import BundleBuilder
from reportflow.exporters.pptx import PptxExporter, PptxExportOptions

pptx = pytest.importorskip("pptx")


def _bundle(rows: int = 3, stats: int = 8):
    builder = BundleBuilder().set_dataset_name("inventory").set_metadata(source="api")
    builder.add_samples([{"sku": f"S{i}", "qty": i, "note": None} for i in range(rows)])
    for i in range(stats):
        builder.set_stat(f"metric_{i}", i * 10)
    return builder.build()


class TestPptxExporter:
    def test_three_slides(self, tmp_path):
        path = PptxExporter().export(
            _bundle(), tmp_path / "deck" / "report.pptx", PptxExportOptions(title="Stock", author="Ops")
        )

        prs = pptx.Presentation(str(path))
        assert len(prs.slides) == 3
        assert prs.core_properties.title == "Stock"
        assert prs.core_properties.author == "Ops"

        texts = [shape.text_frame.text for shape in prs.slides[0].shapes if shape.has_text_frame]
        assert "Stock" in texts

    def test_metrics_capped_at_six(self, tmp_path):
        path = PptxExporter().export(_bundle(stats=8), tmp_path / "r.pptx")

        prs = pptx.Presentation(str(path))
        labels = [
            shape.text_frame.text
            for shape in prs.slides[1].shapes
            if shape.has_text_frame and shape.text_frame.text.startswith("METRIC ")
        ]
        assert labels == [f"METRIC {i}" for i in range(6)]

    def test_table_rows_capped(self, tmp_path):
        path = PptxExporter().export(_bundle(rows=25), tmp_path / "r.pptx")

        prs = pptx.Presentation(str(path))
        (table_shape,) = [s for s in prs.slides[2].shapes if s.has_table]
        table = table_shape.table
        assert len(table.rows) == 11
        assert table.cell(0, 0).text == "sku"
        assert table.cell(1, 2).text == ""

    def test_no_records_no_table_slide(self, tmp_path):
        path = PptxExporter().export(_bundle(rows=0), tmp_path / "r.pptx")

        prs = pptx.Presentation(str(path))
        assert len(prs.slides) == 2
