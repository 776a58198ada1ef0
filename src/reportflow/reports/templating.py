"""Jinja2 environment and the shared filter set.

Prompts and report templates are rendered with the same lenient
environment: autoescaping is off (output is markdown or MDX, not HTML), and
undefined variables render as empty strings at any attribute depth.

Filters available in every template:

    json, safe, truncate, number_format, round, slice, top_entries,
    title, percent, date_format, currency
"""

from __future__ import annotations

import json
import keyword
import math
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from jinja2 import ChainableUndefined, Environment, FileSystemLoader, Undefined

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "CAD": "CA$",
    "AUD": "A$",
    "CNY": "CN¥",
}

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


# =============================================================================
# Coercion helpers
# =============================================================================


def _is_missing(value: Any) -> bool:
    return value is None or isinstance(value, Undefined)


def to_number(value: Any) -> float | None:
    """Convert ``value`` to a finite float, or None when impossible."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _group(num: float, decimals: int) -> str:
    return f"{num:,.{decimals}f}"


def parse_date(value: Any) -> datetime | None:
    """Parse datetimes, dates, ISO strings and epoch milliseconds."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, timezone.utc)
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def iso_utc(moment: datetime) -> str:
    """``2024-01-15T09:30:00.000Z`` form of ``moment``."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


# =============================================================================
# Filters
# =============================================================================


def json_filter(value: Any) -> str:
    if isinstance(value, Undefined):
        return ""
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def safe_filter(value: Any) -> str:
    return "" if _is_missing(value) else str(value)


def truncate_filter(value: Any, length: int = 100) -> str:
    text = "" if _is_missing(value) else str(value)
    return text[:length] + "…" if len(text) > length else text


def number_format_filter(value: Any) -> str:
    if _is_missing(value):
        return "0"
    num = to_number(value)
    if num is None:
        return str(value)
    if num.is_integer():
        return _group(num, 0)
    return _group(num, 3).rstrip("0").rstrip(".")


def round_filter(value: Any, decimals: int = 0) -> Any:
    num = to_number(value)
    if num is None:
        return value
    return f"{num:.{int(decimals)}f}"


def slice_filter(value: Any, start: int | None = None, end: int | None = None) -> list[Any]:
    if not isinstance(value, (list, tuple)):
        return []
    return list(value[start:end])


def top_entries_filter(value: Any, limit: int = 10) -> list[list[Any]]:
    """Largest ``[key, value]`` pairs of a mapping or a list of pairs."""
    if _is_missing(value) or not value:
        return []
    entries: Iterable[Any] = value.items() if isinstance(value, Mapping) else value

    pairs: list[list[Any]] = []
    for entry in entries:
        key, raw = entry[0], entry[1]
        num = to_number(raw)
        if num is None:
            num = 0
        elif num.is_integer() and not isinstance(raw, float):
            num = int(num)
        pairs.append([key, num])

    pairs.sort(key=lambda pair: pair[1], reverse=True)
    return pairs[:limit]


def title_filter(value: Any) -> str:
    text = "" if _is_missing(value) else str(value)
    return " ".join(word[:1].upper() + word[1:] for word in text.lower().split(" "))


def percent_filter(value: Any, decimals: int = 1) -> str:
    num = to_number(value)
    if num is None:
        return "0%"
    return f"{num:.{int(decimals)}f}%"


def date_format_filter(value: Any, format: str = "short") -> str:
    """Format a date as ``short`` (1/15/2024), ``long`` (January 15, 2024) or ``iso``."""
    moment = parse_date(value)
    if moment is None:
        return "" if _is_missing(value) else str(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)

    if format == "iso":
        return iso_utc(moment)
    if format == "long":
        return f"{_MONTHS[moment.month - 1]} {moment.day}, {moment.year}"
    return f"{moment.month}/{moment.day}/{moment.year}"


def currency_filter(value: Any, currency: str = "USD") -> str:
    num = to_number(value)
    if num is None:
        return "$0"

    code = str(currency).upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    amount = _group(abs(num), decimals)
    symbol = CURRENCY_SYMBOLS.get(code)
    text = f"{symbol}{amount}" if symbol else f"{code} {amount}"
    return f"-{text}" if num < 0 else text


FILTERS: dict[str, Any] = {
    "json": json_filter,
    "safe": safe_filter,
    "truncate": truncate_filter,
    "number_format": number_format_filter,
    "round": round_filter,
    "slice": slice_filter,
    "top_entries": top_entries_filter,
    "title": title_filter,
    "percent": percent_filter,
    "date_format": date_format_filter,
    "currency": currency_filter,
}


# =============================================================================
# Environment
# =============================================================================


def add_custom_filters(env: Environment) -> Environment:
    env.filters.update(FILTERS)
    return env


def create_environment(search_path: Path | str | None = None) -> Environment:
    """Create the rendering environment, optionally able to ``include`` files."""
    loader = FileSystemLoader(str(search_path)) if search_path is not None else None
    env = Environment(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=ChainableUndefined,
        keep_trailing_newline=True,
    )
    return add_custom_filters(env)


def render_string(
    source: str,
    context: Mapping[str, Any],
    search_path: Path | str | None = None,
) -> str:
    """Render template ``source`` with ``context``.

    Raises:
        jinja2.TemplateError: On syntax or runtime errors.
    """
    env = create_environment(search_path)
    return env.from_string(source).render(dict(context))


def default_preamble(names: Iterable[str]) -> str:
    """``{% set x = x | default([]) %}`` lines for each identifier name."""
    lines = [
        f"{{% set {name} = {name} | default([]) %}}"
        for name in names
        if name.isidentifier() and not keyword.iskeyword(name)
    ]
    return "\n".join(lines)
