"""Tests for file parsers and statistics helpers."""

from __future__ import annotations

import json

import pytest

from reportflow.utils.parsers import (
    CSVParser,
    FileParser,
    JSONParser,
    UnsupportedFileFormatError,
    XMLParser,
)
from reportflow.utils.statistics import StatisticsHelper


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "sales.csv"
    lines = ["region,amount"] + [f"R{i % 3},{i}" for i in range(7)]
    path.write_text("\n".join(lines) + "\n")
    return path


class TestCSVParser:
    def test_read(self, csv_file):
        records = CSVParser.read(csv_file)

        assert len(records) == 7
        assert records[0] == {"region": "R0", "amount": 0}

    def test_batches(self, csv_file):
        batches = list(CSVParser.iter_batches(csv_file, 3))

        assert [len(b) for b in batches] == [3, 3, 1]
        assert batches[2][0]["amount"] == 6

    def test_read_batched_and_stream(self, csv_file):
        sizes, records = [], []

        assert CSVParser.read_batched(csv_file, 4, lambda b: sizes.append(len(b))) == 7
        assert CSVParser.read_stream(csv_file, records.append) == 7
        assert sizes == [4, 3]
        assert records[-1] == {"region": "R0", "amount": 6}

    def test_invalid_batch_size(self, csv_file):
        with pytest.raises(ValueError):
            list(CSVParser.iter_batches(csv_file, 0))


class TestJSONParser:
    def test_array_stream(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text(json.dumps([{"a": 1}, {"a": 2}]))
        items = []

        assert JSONParser.read_array_stream(path, items.append) == 2
        assert items == [{"a": 1}, {"a": 2}]

    def test_array_stream_requires_array(self, tmp_path):
        path = tmp_path / "obj.json"
        path.write_text('{"a": 1}')

        with pytest.raises(ValueError, match="Expected a JSON array"):
            JSONParser.read_array_stream(path, print)


class TestXMLParser:
    XML = '<orders><order id="1">  A  </order><order id="2"><item>x</item></order><note>hi</note></orders>'

    def test_default_shape(self):
        data = XMLParser.parse_string(self.XML)

        assert data == {
            "orders": {
                "order": [
                    {"$": {"id": "1"}, "_": "A"},
                    {"$": {"id": "2"}, "item": ["x"]},
                ],
                "note": ["hi"],
            }
        }

    def test_no_explicit_array_merge_attrs(self):
        data = XMLParser.parse_string(self.XML, explicit_array=False, merge_attrs=True)

        orders = data["orders"]
        assert orders["note"] == "hi"
        assert orders["order"][0] == {"id": "1", "_": "A"}
        assert orders["order"][1] == {"id": "2", "item": "x"}

    def test_read_file(self, tmp_path):
        path = tmp_path / "doc.xml"
        path.write_text("<root><v>1</v></root>")

        assert XMLParser.read(path) == {"root": {"v": ["1"]}}


class TestFileParser:
    def test_dispatch_by_extension(self, csv_file, tmp_path):
        json_path = tmp_path / "data.JSON"
        json_path.write_text("[1, 2]")

        assert len(FileParser.parse(csv_file)) == 7
        assert FileParser.read(json_path) == [1, 2]

    def test_unsupported(self, tmp_path):
        with pytest.raises(UnsupportedFileFormatError, match="xlsx"):
            FileParser.read(tmp_path / "book.xlsx")
        with pytest.raises(UnsupportedFileFormatError, match="streaming"):
            FileParser.read_stream(tmp_path / "doc.xml", print)

    def test_stream_json(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text("[1, 2, 3]")
        seen = []

        assert FileParser.read_stream(path, seen.append) == 3


class TestStatisticsHelper:
    def test_frequency_and_top_n(self):
        items = ["b", "a", "b", "c", "a", "b"]

        assert StatisticsHelper.frequency(items) == {"b": 3, "a": 2, "c": 1}
        assert StatisticsHelper.top_n(items, 2) == [
            {"item": "b", "count": 3},
            {"item": "a", "count": 2},
        ]

    def test_average_and_median(self):
        assert StatisticsHelper.average([]) == 0
        assert StatisticsHelper.average([1, 2, 3, 4]) == 2.5
        assert StatisticsHelper.median([5, 1, 3]) == 3
        assert StatisticsHelper.median([4, 1, 3, 2]) == 2.5
        assert StatisticsHelper.median([]) == 0

    def test_grouping(self):
        rows = [{"r": "EU", "v": 1}, {"r": "US", "v": 2}, {"r": "EU", "v": 3}]

        groups = StatisticsHelper.group_by(rows, lambda row: row["r"])

        assert [row["v"] for row in groups["EU"]] == [1, 3]
        assert StatisticsHelper.count_by(rows, lambda row: row["r"]) == {"EU": 2, "US": 1}
