"""Bundle exporters for formats that are not rendered from a template."""

from reportflow.exporters.pptx import PptxExporter, PptxExportOptions

__all__ = ["PptxExporter", "PptxExportOptions"]
