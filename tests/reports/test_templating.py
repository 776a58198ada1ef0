"""Tests for the template environment and filters."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from jinja2 import TemplateError

from reportflow.reports.templating import (
    currency_filter,
    date_format_filter,
    default_preamble,
    iso_utc,
    number_format_filter,
    percent_filter,
    render_string,
    title_filter,
    top_entries_filter,
    truncate_filter,
)


class TestFilters:
    @pytest.mark.parametrize(
        "value,expected",
        [(1234567, "1,234,567"), (1234.5, "1,234.5"), (None, "0"), ("abc", "abc")],
    )
    def test_number_format(self, value, expected):
        assert number_format_filter(value) == expected

    def test_currency(self):
        assert currency_filter(1234.5) == "$1,234.50"
        assert currency_filter(-3, "EUR") == "-€3.00"
        assert currency_filter(5000, "JPY") == "¥5,000"
        assert currency_filter(10, "CHF") == "CHF 10.00"
        assert currency_filter("bad") == "$0"

    def test_percent(self):
        assert percent_filter(12.345) == "12.3%"
        assert percent_filter(50, 0) == "50%"
        assert percent_filter(None) == "0%"

    def test_date_format(self):
        moment = "2024-01-15T09:30:00Z"

        assert date_format_filter(moment) == "1/15/2024"
        assert date_format_filter(moment, "long") == "January 15, 2024"
        assert date_format_filter(moment, "iso") == "2024-01-15T09:30:00.000Z"
        assert date_format_filter("not a date") == "not a date"

    def test_top_entries(self):
        counts = {"a": 3, "b": 10, "c": 7}

        assert top_entries_filter(counts, 2) == [["b", 10], ["c", 7]]
        assert top_entries_filter(None) == []

    def test_text_filters(self):
        assert title_filter("hello WORLD") == "Hello World"
        assert truncate_filter("abcdef", 3) == "abc…"
        assert truncate_filter("abc", 3) == "abc"

    def test_iso_utc(self):
        moment = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

        assert iso_utc(moment) == "2024-05-01T12:00:00.123Z"


class TestEnvironment:
    def test_undefined_renders_empty_at_any_depth(self):
        assert render_string("[{{ missing.deep.value }}]", {}) == "[]"

    def test_filters_registered(self):
        out = render_string(
            "{{ total | number_format }} {{ share | percent }} {{ rows | json }}",
            {"total": 1500, "share": 42, "rows": [1]},
        )

        assert out == "1,500 42.0% [\n  1\n]"

    def test_no_autoescape(self):
        assert render_string("{{ text }}", {"text": "<b>x</b>"}) == "<b>x</b>"

    def test_include_from_search_path(self, tmp_path):
        (tmp_path / "part.j2").write_text("part:{{ name }}")

        assert render_string("{% include 'part.j2' %}", {"name": "x"}, tmp_path) == "part:x"

    def test_syntax_error_raises(self):
        with pytest.raises(TemplateError):
            render_string("{% if %}", {})

    def test_default_preamble(self):
        preamble = default_preamble(["rows", "not-valid", "class"])

        assert preamble == "{% set rows = rows | default([]) %}"
        assert render_string(preamble + "{{ rows | length }}", {}) == "0"
