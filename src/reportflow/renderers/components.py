"""Built-in MDX components.

Each component is a callable ``(props, children) -> Markup`` producing static
HTML that renders the same in a browser and in WeasyPrint:

- ``Callout``: ``type`` (info, success, warning, error), ``title``
- ``KPICard``: ``title``, ``value``, ``change``, ``changeLabel``, ``trend``,
  ``color``, ``subtitle``
- ``MetricGrid``: ``metrics`` (list of ``{label, value}``), ``columns``
- ``DataTable``: ``headers``, ``rows``, ``striped``, ``hoverable``
- ``StaticChart`` / ``Chart``: ``type`` (bar, line, pie), ``data``,
  ``dataKey``, ``xAxisKey``, ``title``, ``height``, ``colors``
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup

Component = Callable[[Mapping[str, Any], Markup], Markup]

DEFAULT_CHART_COLORS = ["#3b82f6", "#8b5cf6", "#ec4899", "#10b981", "#f59e0b"]

CALLOUT_TYPES = ("info", "success", "warning", "error")
KPI_COLORS = ("blue", "green", "red", "purple", "orange")
TREND_SYMBOLS = {"up": "↑", "down": "↓", "neutral": "→"}

LINE_CHART_WIDTH = 800
LINE_CHART_PADDING = {"top": 20, "right": 40, "bottom": 40, "left": 60}

_TEMPLATES = {
    "callout.html": """\
<div class="callout callout-{{ kind }}">
{% if title %}<div class="callout-title">{{ title }}</div>
{% endif %}<div class="callout-body">{{ children }}</div>
</div>""",
    "kpi_card.html": """\
<div class="kpi-card kpi-card-{{ color }}">
<p class="kpi-card-title">{{ title }}</p>
{% if subtitle %}<p class="kpi-card-subtitle">{{ subtitle }}</p>
{% endif %}<div class="kpi-card-value">{{ value }}</div>
{% if change is not none %}<span class="kpi-card-change kpi-trend-{{ trend }}">{{ symbol }} {{ change }}%{% if change_label %} <small>{{ change_label }}</small>{% endif %}</span>
{% endif %}</div>""",
    "metric_grid.html": """\
<div class="metric-grid" style="grid-template-columns: repeat(auto-fit, minmax({{ min_width }}, 1fr));">
{% for metric in metrics %}<div class="metric-card">
<div class="metric-label">{{ metric.label }}</div>
<div class="metric-value">{{ metric.value }}</div>
</div>
{% endfor %}</div>""",
    "data_table.html": """\
<div class="data-table-wrapper">
<table class="data-table{% if striped %} striped{% endif %}{% if hoverable %} hoverable{% endif %}">
<thead><tr>{% for header in headers %}<th>{{ header }}</th>{% endfor %}</tr></thead>
<tbody>
{% for row in rows %}<tr>{% for cell in row %}<td>{{ cell }}</td>{% endfor %}</tr>
{% endfor %}</tbody>
</table>
</div>""",
    "chart_empty.html": """\
<div class="chart-container chart-empty"><p>No data available</p></div>""",
    "chart_bar.html": """\
<div class="chart-container chart-bar">
{% if title %}<h3 class="chart-title">{{ title }}</h3>
{% endif %}{% for bar in bars %}<div class="chart-bar-row">
<div class="chart-bar-label" title="{{ bar.label }}">{{ bar.label }}</div>
<div class="chart-bar-track"><div class="chart-bar-fill" style="width: {{ bar.width }}%;">{{ bar.value }}</div></div>
</div>
{% endfor %}</div>""",
    "chart_line.html": """\
<div class="chart-container chart-line">
{% if title %}<h3 class="chart-title">{{ title }}</h3>
{% endif %}<svg xmlns="http://www.w3.org/2000/svg" width="100%" height="{{ height }}" viewBox="0 0 {{ width }} {{ chart_height }}">
{% for line in grid %}<g><line x1="{{ line.x1 }}" y1="{{ line.y }}" x2="{{ line.x2 }}" y2="{{ line.y }}" stroke="#e5e7eb" stroke-width="1" stroke-dasharray="4"/><text x="{{ line.label_x }}" y="{{ line.label_y }}" text-anchor="end" font-size="12" fill="#6b7280">{{ line.label }}</text></g>
{% endfor %}{% for point in points %}<text x="{{ point.x }}" y="{{ axis_y }}" text-anchor="middle" font-size="12" fill="#6b7280">{{ point.label }}</text>
{% endfor %}<path d="{{ path }}" fill="none" stroke="#3b82f6" stroke-width="3" stroke-linecap="round" stroke-linejoin="round"/>
{% for point in points %}<g><circle cx="{{ point.x }}" cy="{{ point.y }}" r="5" fill="#3b82f6" stroke="white" stroke-width="2"/><text x="{{ point.x }}" y="{{ point.label_y }}" text-anchor="middle" font-size="11" font-weight="bold" fill="#1f2937">{{ point.value }}</text></g>
{% endfor %}</svg>
</div>""",
    "chart_pie.html": """\
<div class="chart-container chart-pie">
{% if title %}<h3 class="chart-title">{{ title }}</h3>
{% endif %}{% for slice in slices %}<div class="chart-legend-row">
<div class="chart-legend-swatch" style="background-color: {{ slice.color }};"></div>
<span class="chart-legend-label">{{ slice.label }}</span>
<span class="chart-legend-value">{{ slice.value }} ({{ slice.percentage }}%)</span>
</div>
{% endfor %}</div>""",
    "chart_unsupported.html": """\
<div class="chart-container">
{% if title %}<h3 class="chart-title">{{ title }}</h3>
{% endif %}<div class="chart-unsupported">Chart type "{{ chart_type }}" not yet supported for static rendering</div>
</div>""",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(default=True, default_for_string=True),
    trim_blocks=True,
)


def _render(name: str, **context: Any) -> Markup:
    return Markup(_env.get_template(name).render(**context))


# =============================================================================
# Value helpers
# =============================================================================


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


def display_number(value: Any) -> str:
    """Render numbers without a trailing ``.0`` for integral values."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _coord(value: float) -> str:
    return display_number(round(value, 3))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


# =============================================================================
# Components
# =============================================================================


def callout(props: Mapping[str, Any], children: Markup) -> Markup:
    kind = props.get("type") or "info"
    if kind not in CALLOUT_TYPES:
        kind = "info"
    return _render("callout.html", kind=kind, title=props.get("title"), children=children)


def kpi_card(props: Mapping[str, Any], children: Markup) -> Markup:
    trend = props.get("trend") or "neutral"
    if trend not in TREND_SYMBOLS:
        trend = "neutral"
    color = props.get("color") or "blue"
    if color not in KPI_COLORS:
        color = "blue"

    change = props.get("change")
    if change is not None:
        change = display_number(abs(_number(change)))

    return _render(
        "kpi_card.html",
        title=props.get("title", ""),
        subtitle=props.get("subtitle"),
        value=display_number(props.get("value", "")),
        change=change,
        change_label=props.get("changeLabel"),
        trend=trend,
        symbol=TREND_SYMBOLS[trend],
        color=color,
    )


def metric_grid(props: Mapping[str, Any], children: Markup) -> Markup:
    metrics = [
        {
            "label": m.get("label", ""),
            "value": display_number(m.get("value", "")),
        }
        for m in _as_list(props.get("metrics"))
        if isinstance(m, Mapping)
    ]
    min_width = "200px" if props.get("columns") == 4 else "250px"
    return _render("metric_grid.html", metrics=metrics, min_width=min_width)


def data_table(props: Mapping[str, Any], children: Markup) -> Markup:
    rows = [
        [display_number(cell) for cell in _as_list(row)]
        for row in _as_list(props.get("rows"))
    ]
    return _render(
        "data_table.html",
        headers=_as_list(props.get("headers")),
        rows=rows,
        striped=props.get("striped", True) is not False,
        hoverable=props.get("hoverable", True) is not False,
    )


def static_chart(props: Mapping[str, Any], children: Markup) -> Markup:
    """Render a chart as static HTML and SVG."""
    data = [d for d in _as_list(props.get("data")) if isinstance(d, Mapping)]
    chart_type = props.get("type", "bar")
    title = props.get("title")

    if not data:
        return _render("chart_empty.html")

    data_key = props.get("dataKey") or "value"
    x_key = props.get("xAxisKey") or "name"
    values = [_number(d.get(data_key)) for d in data]
    labels = [d.get(x_key, "") for d in data]

    if chart_type == "bar":
        return _bar_chart(title, labels, values)
    if chart_type == "line":
        height = int(_number(props.get("height")) or 300)
        return _line_chart(title, labels, values, height)
    if chart_type == "pie":
        colors = _as_list(props.get("colors")) or DEFAULT_CHART_COLORS
        return _pie_chart(title, labels, values, colors)
    return _render("chart_unsupported.html", title=title, chart_type=chart_type)


def _bar_chart(title: Any, labels: list[Any], values: list[float]) -> Markup:
    max_value = max(values)
    bars = []
    for label, value in zip(labels, values):
        percentage = value / max_value * 100 if max_value > 0 else 0.0
        bars.append(
            {
                "label": label,
                "value": display_number(value),
                "width": _coord(max(percentage, 3)),
            }
        )
    return _render("chart_bar.html", title=title, bars=bars)


def _line_chart(title: Any, labels: list[Any], values: list[float], height: int) -> Markup:
    pad = LINE_CHART_PADDING
    width = LINE_CHART_WIDTH
    chart_height = height - 60
    inner_width = width - pad["left"] - pad["right"]
    inner_height = chart_height - pad["top"] - pad["bottom"]

    max_value, min_value = max(values), min(values)
    value_range = (max_value - min_value) or 1
    steps = max(len(values) - 1, 1)

    points = []
    for idx, (label, value) in enumerate(zip(labels, values)):
        x = pad["left"] + (idx / steps) * inner_width
        y = pad["top"] + inner_height - ((value - min_value) / value_range) * inner_height
        points.append({"x": _coord(x), "y": round(y, 3), "label": label, "value": display_number(value)})

    path = " ".join(
        f"{'M' if i == 0 else 'L'} {p['x']} {_coord(p['y'])}" for i, p in enumerate(points)
    )

    grid = []
    for ratio in (0, 0.25, 0.5, 0.75, 1):
        y = pad["top"] + inner_height * (1 - ratio)
        grid.append(
            {
                "y": _coord(y),
                "label_y": _coord(y + 4),
                "x1": pad["left"],
                "x2": width - pad["right"],
                "label_x": pad["left"] - 10,
                "label": _round_half_up(min_value + value_range * ratio),
            }
        )

    for point in points:
        point["label_y"] = _coord(point["y"] - 12)
        point["y"] = _coord(point["y"])
    return _render(
        "chart_line.html",
        title=title,
        width=width,
        height=height,
        chart_height=chart_height,
        axis_y=chart_height - pad["bottom"] + 20,
        grid=grid,
        points=points,
        path=path,
    )


def _pie_chart(
    title: Any, labels: list[Any], values: list[float], colors: list[Any]
) -> Markup:
    total = sum(values)
    slices = []
    for idx, (label, value) in enumerate(zip(labels, values)):
        percentage = value / total * 100 if total else 0.0
        slices.append(
            {
                "label": label,
                "value": display_number(value),
                "percentage": f"{percentage:.1f}",
                "color": colors[idx % len(colors)],
            }
        )
    return _render("chart_pie.html", title=title, slices=slices)


BUILTIN_COMPONENTS: dict[str, Component] = {
    "Callout": callout,
    "KPICard": kpi_card,
    "MetricGrid": metric_grid,
    "DataTable": data_table,
    "StaticChart": static_chart,
    "Chart": static_chart,
}
