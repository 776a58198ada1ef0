"""PowerPoint export of a bundle using python-pptx.

The deck has up to three slides:

1. Title slide with the dataset name and ingestion date.
2. Key metrics: the first six ``stats`` entries as tiles in a 3-column grid.
3. Data overview: a table of up to ten ``samples["main"]`` records (only
   when there are records).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from reportflow.bundles.types import Bundle

logger = logging.getLogger(__name__)

PRIMARY_COLOR = "3B82F6"
TILE_FILL_COLOR = "F0F9FF"
LABEL_COLOR = "666666"
WHITE = "FFFFFF"

# 16:9 layout, in inches
SLIDE_WIDTH = 10.0
SLIDE_HEIGHT = 5.625

MAX_METRICS = 6
METRIC_COLUMNS = 3
MAX_TABLE_ROWS = 10


@dataclass
class PptxExportOptions:
    title: str | None = None
    author: str = "Report Framework"
    subject: str = "Data Report"
    company: str = ""


def _metric_label(key: str) -> str:
    return key.replace("_", " ").upper()


def _cell_text(value: Any) -> str:
    if value is None or value == "":
        return ""
    return str(value)


class PptxExporter:
    """Builds a presentation from a bundle.

    Example:
        exporter = PptxExporter()
        path = exporter.export(bundle, Path("reports/sales.pptx"))
    """

    def export(
        self,
        bundle: Bundle,
        output_path: Path | str,
        options: PptxExportOptions | None = None,
    ) -> Path:
        """Write the deck to ``output_path`` and return it. Blocking."""
        try:
            from pptx import Presentation
            from pptx.util import Inches
        except ImportError:
            raise ImportError(
                "python-pptx is required for PPTX export. "
                "Install with: pip install python-pptx"
            )

        options = options or PptxExportOptions()
        title = options.title or bundle.dataset_name

        prs = Presentation()
        prs.slide_width = Inches(SLIDE_WIDTH)
        prs.slide_height = Inches(SLIDE_HEIGHT)

        props = prs.core_properties
        props.author = options.author
        props.title = title
        props.subject = options.subject
        if options.company:
            props.category = options.company

        self._add_title_slide(prs, title, bundle)
        self._add_metrics_slide(prs, bundle)
        if bundle.records:
            self._add_table_slide(prs, bundle)

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        prs.save(str(path))
        logger.info(f"PPTX report written: {path}")
        return path

    # -- slides ---------------------------------------------------------------

    @staticmethod
    def _blank_slide(prs: Any) -> Any:
        return prs.slides.add_slide(prs.slide_layouts[6])

    @staticmethod
    def _add_text(
        slide: Any,
        text: str,
        *,
        x: float,
        y: float,
        w: float,
        h: float,
        size: int,
        color: str,
        bold: bool = False,
        center: bool = False,
    ) -> None:
        from pptx.dml.color import RGBColor
        from pptx.enum.text import PP_ALIGN
        from pptx.util import Inches, Pt

        box = slide.shapes.add_textbox(Inches(x), Inches(y), Inches(w), Inches(h))
        paragraph = box.text_frame.paragraphs[0]
        paragraph.text = text
        paragraph.font.size = Pt(size)
        paragraph.font.bold = bold
        paragraph.font.color.rgb = RGBColor.from_string(color)
        if center:
            paragraph.alignment = PP_ALIGN.CENTER

    def _add_title_slide(self, prs: Any, title: str, bundle: Bundle) -> None:
        from pptx.dml.color import RGBColor

        from reportflow.reports.templating import date_format_filter

        slide = self._blank_slide(prs)
        fill = slide.background.fill
        fill.solid()
        fill.fore_color.rgb = RGBColor.from_string(PRIMARY_COLOR)

        self._add_text(
            slide, title, x=0.5, y=2, w=9, h=1, size=44, color=WHITE, bold=True, center=True
        )
        generated = date_format_filter(bundle.metadata.get("ingested_at"), "short")
        self._add_text(
            slide,
            f"Generated: {generated}",
            x=0.5, y=3.5, w=9, h=0.5, size=18, color=WHITE, center=True,
        )

    def _add_metrics_slide(self, prs: Any, bundle: Bundle) -> None:
        from pptx.dml.color import RGBColor
        from pptx.enum.shapes import MSO_SHAPE
        from pptx.util import Inches, Pt

        slide = self._blank_slide(prs)
        self._add_text(
            slide, "Key Metrics", x=0.5, y=0.3, w=9, h=0.8, size=32, color=PRIMARY_COLOR, bold=True
        )

        for index, (key, value) in enumerate(list(bundle.stats.items())[:MAX_METRICS]):
            row, col = divmod(index, METRIC_COLUMNS)
            x = 0.5 + col * 3
            y = 1.5 + row * 1.5

            tile = slide.shapes.add_shape(
                MSO_SHAPE.RECTANGLE, Inches(x), Inches(y), Inches(2.8), Inches(1.2)
            )
            tile.fill.solid()
            tile.fill.fore_color.rgb = RGBColor.from_string(TILE_FILL_COLOR)
            tile.line.color.rgb = RGBColor.from_string(PRIMARY_COLOR)
            tile.line.width = Pt(2)

            self._add_text(
                slide, _cell_text(value),
                x=x, y=y + 0.2, w=2.8, h=0.5, size=28, color=PRIMARY_COLOR, bold=True, center=True,
            )
            self._add_text(
                slide, _metric_label(str(key)),
                x=x, y=y + 0.7, w=2.8, h=0.4, size=12, color=LABEL_COLOR, center=True,
            )

    def _add_table_slide(self, prs: Any, bundle: Bundle) -> None:
        from pptx.dml.color import RGBColor
        from pptx.util import Inches, Pt

        rows = bundle.records[:MAX_TABLE_ROWS]
        first = rows[0] if isinstance(rows[0], dict) else {}
        headers = list(first.keys())
        if not headers:
            return

        slide = self._blank_slide(prs)
        self._add_text(
            slide, "Data Overview", x=0.5, y=0.3, w=9, h=0.8, size=32, color=PRIMARY_COLOR, bold=True
        )

        table = slide.shapes.add_table(
            len(rows) + 1, len(headers), Inches(0.5), Inches(1.5), Inches(9), Inches(4)
        ).table

        for col, header in enumerate(headers):
            cell = table.cell(0, col)
            cell.text = str(header)
            cell.fill.solid()
            cell.fill.fore_color.rgb = RGBColor.from_string(PRIMARY_COLOR)
            font = cell.text_frame.paragraphs[0].font
            font.bold = True
            font.size = Pt(10)
            font.color.rgb = RGBColor.from_string(WHITE)

        for row_idx, record in enumerate(rows, start=1):
            for col, header in enumerate(headers):
                value = record.get(header) if isinstance(record, dict) else None
                cell = table.cell(row_idx, col)
                cell.text = _cell_text(value)
                cell.text_frame.paragraphs[0].font.size = Pt(10)
