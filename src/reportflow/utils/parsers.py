"""File parsers available to plugins.

CSV goes through polars; JSON and XML through the standard library. Every
reader returns plain Python structures (lists of dicts, nested dicts) so
results drop straight into a bundle.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterator
from xml.etree import ElementTree as ET

import polars as pl

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000


class UnsupportedFileFormatError(ValueError):
    def __init__(self, extension: str, operation: str = "parsing"):
        self.extension = extension
        super().__init__(f"Unsupported file format for {operation}: {extension or '(none)'}")


# =============================================================================
# CSV
# =============================================================================


class CSVParser:
    """CSV files with a header row.

    Example:
        >>> records = CSVParser.read("sales.csv")
        >>> for batch in CSVParser.iter_batches("big.csv", 5000):
        ...     handle(batch)
    """

    @staticmethod
    def read(path: str | Path, **options: Any) -> list[dict[str, Any]]:
        """All records; ``options`` are passed to :func:`polars.read_csv`."""
        df = pl.read_csv(path, **options)
        return df.to_dicts()

    @staticmethod
    def iter_batches(
        path: str | Path,
        batch_size: int = DEFAULT_BATCH_SIZE,
        **options: Any,
    ) -> Iterator[list[dict[str, Any]]]:
        """Records in batches of at most ``batch_size``."""
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        lf = pl.scan_csv(path, **options)
        total = lf.select(pl.len()).collect().item()

        offset = 0
        while offset < total:
            chunk = lf.slice(offset, batch_size).collect()
            if chunk.height == 0:
                break
            yield chunk.to_dicts()
            offset += chunk.height

    @classmethod
    def read_batched(
        cls,
        path: str | Path,
        batch_size: int,
        on_batch: Callable[[list[dict[str, Any]]], Any],
        **options: Any,
    ) -> int:
        """Call ``on_batch`` for each batch; returns the record count."""
        count = 0
        for batch in cls.iter_batches(path, batch_size, **options):
            on_batch(batch)
            count += len(batch)
        return count

    @classmethod
    def read_stream(
        cls,
        path: str | Path,
        on_record: Callable[[dict[str, Any]], Any],
        **options: Any,
    ) -> int:
        """Call ``on_record`` for each record; returns the record count."""
        count = 0
        for batch in cls.iter_batches(path, **options):
            for record in batch:
                on_record(record)
                count += 1
        return count


# =============================================================================
# JSON
# =============================================================================


class JSONParser:
    @staticmethod
    def read(path: str | Path) -> Any:
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    @classmethod
    def read_array_stream(cls, path: str | Path, on_item: Callable[[Any], Any]) -> int:
        """Call ``on_item`` for each element of a top-level JSON array.

        Raises:
            ValueError: If the document root is not an array.
        """
        data = cls.read(path)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array at the root of {path}")
        for item in data:
            on_item(item)
        return len(data)


# =============================================================================
# XML
# =============================================================================


class XMLParser:
    """XML to nested dicts.

    The document ``<orders><order id="1">A</order></orders>`` becomes::

        {"orders": {"order": [{"_": "A", "$": {"id": "1"}}]}}

    Attributes go under ``"$"`` (or merge into the element with
    ``merge_attrs``), text under ``"_"`` when the element also has attributes
    or children, and child elements are always lists unless
    ``explicit_array`` is False.
    """

    @classmethod
    def read(
        cls,
        path: str | Path,
        *,
        explicit_array: bool = True,
        merge_attrs: bool = False,
        trim: bool = True,
    ) -> dict[str, Any]:
        root = ET.parse(path).getroot()
        return {root.tag: cls._convert(root, explicit_array, merge_attrs, trim)}

    @classmethod
    def parse_string(
        cls,
        xml: str,
        *,
        explicit_array: bool = True,
        merge_attrs: bool = False,
        trim: bool = True,
    ) -> dict[str, Any]:
        root = ET.fromstring(xml)
        return {root.tag: cls._convert(root, explicit_array, merge_attrs, trim)}

    @classmethod
    def _convert(
        cls,
        element: ET.Element,
        explicit_array: bool,
        merge_attrs: bool,
        trim: bool,
    ) -> Any:
        text = element.text or ""
        if trim:
            text = text.strip()

        children: dict[str, list[Any]] = {}
        for child in element:
            value = cls._convert(child, explicit_array, merge_attrs, trim)
            children.setdefault(child.tag, []).append(value)

        if not children and not element.attrib:
            return text

        node: dict[str, Any] = {}
        if element.attrib:
            if merge_attrs:
                for key, value in element.attrib.items():
                    node[key] = [value] if explicit_array else value
            else:
                node["$"] = dict(element.attrib)
        if text:
            node["_"] = text
        for tag, values in children.items():
            node[tag] = values if explicit_array or len(values) > 1 else values[0]
        return node


# =============================================================================
# Auto-detect
# =============================================================================


class FileParser:
    """Parses a file according to its extension (csv, json or xml)."""

    @staticmethod
    def _extension(path: str | Path) -> str:
        return Path(path).suffix.lstrip(".").lower()

    @classmethod
    def read(cls, path: str | Path) -> Any:
        ext = cls._extension(path)
        logger.debug(f"Parsing {path} as {ext}")
        if ext == "csv":
            return CSVParser.read(path)
        if ext == "json":
            return JSONParser.read(path)
        if ext == "xml":
            return XMLParser.read(path)
        raise UnsupportedFileFormatError(ext)

    parse = read

    @classmethod
    def read_stream(
        cls,
        path: str | Path,
        on_data: Callable[[Any], Any],
        **options: Any,
    ) -> int:
        """Call ``on_data`` per CSV record or JSON array item."""
        ext = cls._extension(path)
        if ext == "csv":
            return CSVParser.read_stream(path, on_data, **options)
        if ext == "json":
            return JSONParser.read_array_stream(path, on_data)
        raise UnsupportedFileFormatError(ext, "streaming")
