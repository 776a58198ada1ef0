"""Helpers for plugin authors: file parsing, HTTP and statistics."""

from __future__ import annotations

from reportflow.utils.http import HttpClient, HttpError
from reportflow.utils.parsers import (
    CSVParser,
    FileParser,
    JSONParser,
    UnsupportedFileFormatError,
    XMLParser,
)
from reportflow.utils.statistics import StatisticsHelper

__all__ = [
    "CSVParser",
    "FileParser",
    "HttpClient",
    "HttpError",
    "JSONParser",
    "StatisticsHelper",
    "UnsupportedFileFormatError",
    "XMLParser",
]
