"""Stylesheets embedded in rendered reports."""

from __future__ import annotations

BASE_CSS = """
*, *::before, *::after { box-sizing: border-box; }

:root {
  --color-primary: #3b82f6;
  --color-secondary: #8b5cf6;
  --color-accent: #ec4899;
  --color-success: #10b981;
  --color-warning: #f59e0b;
  --color-danger: #ef4444;
  --color-bg: #ffffff;
  --color-bg-secondary: #f9fafb;
  --color-text: #111827;
  --color-text-secondary: #6b7280;
  --color-border: #e5e7eb;
  --shadow-md: 0 4px 6px -1px rgb(0 0 0 / 0.1);
  --shadow-lg: 0 10px 15px -3px rgb(0 0 0 / 0.1);
  --shadow-xl: 0 20px 25px -5px rgb(0 0 0 / 0.1);
}

body {
  font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  font-size: 16px;
  line-height: 1.75;
  color: var(--color-text);
  background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
  background-attachment: fixed;
  margin: 0;
  padding: 3rem 2rem;
  min-height: 100vh;
}

.report-container {
  max-width: 1200px;
  margin: 0 auto;
  background: var(--color-bg);
  border-radius: 24px;
  box-shadow: var(--shadow-xl);
  padding: 4rem 5rem;
}

.report-header { margin-bottom: 2.5rem; }
.report-header .report-title { margin-top: 0; }
.report-subtitle { color: var(--color-text-secondary); font-size: 0.95rem; margin: 0; }

h1, h2, h3, h4, h5, h6 {
  font-weight: 700;
  line-height: 1.25;
  letter-spacing: -0.01em;
  color: var(--color-text);
  margin-top: 3rem;
  margin-bottom: 1.5rem;
}
h1:first-child, h2:first-child, h3:first-child { margin-top: 0; }

h1 {
  font-size: 2.75rem;
  font-weight: 800;
  color: var(--color-primary);
  border-bottom: 4px solid var(--color-primary);
  padding-bottom: 1rem;
}
h2 {
  font-size: 2.25rem;
  color: var(--color-primary);
  border-bottom: 3px solid var(--color-border);
  padding-bottom: 0.75rem;
}
h3 { font-size: 1.75rem; font-weight: 600; color: var(--color-secondary); }
h4 { font-size: 1.375rem; font-weight: 600; }
h5 { font-size: 1.125rem; font-weight: 600; }
h6 {
  font-size: 1rem;
  font-weight: 600;
  text-transform: uppercase;
  letter-spacing: 0.05em;
  color: var(--color-text-secondary);
}

p { margin: 0 0 1.5rem 0; line-height: 1.8; }
h1 + p, h2 + p, h3 + p, h4 + p, h5 + p, h6 + p { margin-top: 0; }

code {
  font-family: 'JetBrains Mono', 'Courier New', monospace;
  font-size: 0.9em;
  background: var(--color-bg-secondary);
  padding: 0.2em 0.5em;
  border-radius: 6px;
  border: 1px solid var(--color-border);
}
pre {
  background: #1e293b;
  color: #e2e8f0;
  padding: 1.5rem;
  border-radius: 12px;
  overflow-x: auto;
  margin: 2rem 0;
}
pre code { background: none; border: none; padding: 0; color: inherit; font-size: 0.875rem; }

table {
  border-collapse: collapse;
  width: 100%;
  margin: 2rem 0;
  box-shadow: var(--shadow-md);
}
table th, table td {
  border: 1px solid var(--color-border);
  padding: 0.875rem 1.25rem;
  text-align: left;
}
table th {
  background: linear-gradient(135deg, var(--color-primary), var(--color-secondary));
  color: white;
  font-weight: 600;
  font-size: 0.95rem;
}
table tr:nth-child(even) { background: var(--color-bg-secondary); }

a { color: var(--color-primary); text-decoration: none; font-weight: 500; }

blockquote {
  border-left: 5px solid var(--color-primary);
  background: var(--color-bg-secondary);
  padding: 1.25rem 2rem;
  margin: 2rem 0;
  font-style: italic;
  color: var(--color-text-secondary);
}
blockquote p { margin: 0; }

ul, ol { margin: 1.5rem 0; padding-left: 2rem; }
li { margin: 0.875rem 0; line-height: 1.75; }
li > ul, li > ol { margin-top: 0.5rem; margin-bottom: 0.5rem; }

hr {
  border: none;
  height: 3px;
  background: linear-gradient(90deg, transparent, var(--color-border), transparent);
  margin: 3rem 0;
}

img { max-width: 100%; height: auto; border-radius: 8px; margin: 2rem 0; display: block; }
strong { font-weight: 600; }
em { font-style: italic; color: var(--color-text-secondary); }

@media print {
  body { background: white; padding: 0; font-size: 12pt; }
  .report-container { box-shadow: none; padding: 1.5cm; max-width: none; }
  h1, h2, h3, h4, h5, h6 { page-break-after: avoid; page-break-inside: avoid; }
  p { orphans: 3; widows: 3; }
  table, figure, .metric-card, .chart-container { page-break-inside: avoid; }
}

@media (max-width: 768px) {
  body { padding: 1.5rem 1rem; }
  .report-container { padding: 2rem; border-radius: 16px; }
  h1 { font-size: 2rem; }
  h2 { font-size: 1.75rem; }
  h3 { font-size: 1.5rem; }
}
"""

COMPONENT_CSS = """
.callout { border-left: 4px solid; border-radius: 0 8px 8px 0; padding: 1rem; margin: 1rem 0; }
.callout-title { font-weight: 600; margin-bottom: 0.25rem; }
.callout p:last-child { margin-bottom: 0; }
.callout-info { background: #eff6ff; border-color: #bfdbfe; color: #1e3a8a; }
.callout-success { background: #f0fdf4; border-color: #bbf7d0; color: #14532d; }
.callout-warning { background: #fefce8; border-color: #fef08a; color: #713f12; }
.callout-error { background: #fef2f2; border-color: #fecaca; color: #7f1d1d; }

.kpi-card {
  background: #ffffff;
  border: 1px solid #f3f4f6;
  border-radius: 12px;
  box-shadow: var(--shadow-lg);
  padding: 1.5rem;
  margin: 1rem 0;
}
.kpi-card-title {
  font-size: 0.875rem;
  font-weight: 500;
  color: #4b5563;
  text-transform: uppercase;
  letter-spacing: 0.05em;
  margin: 0;
}
.kpi-card-subtitle { font-size: 0.75rem; color: #6b7280; margin: 0.25rem 0 0 0; }
.kpi-card-value { font-size: 1.875rem; font-weight: 700; color: #111827; margin-top: 1rem; }
.kpi-card-change {
  display: inline-block;
  padding: 0.25rem 0.5rem;
  border-radius: 9999px;
  font-size: 0.875rem;
  font-weight: 500;
  margin-top: 0.5rem;
}
.kpi-trend-up { color: #16a34a; background: #f0fdf4; }
.kpi-trend-down { color: #dc2626; background: #fef2f2; }
.kpi-trend-neutral { color: #4b5563; background: #f9fafb; }
.kpi-card-blue { border-top: 4px solid #3b82f6; }
.kpi-card-green { border-top: 4px solid #22c55e; }
.kpi-card-red { border-top: 4px solid #ef4444; }
.kpi-card-purple { border-top: 4px solid #a855f7; }
.kpi-card-orange { border-top: 4px solid #f97316; }

.metric-grid { display: grid; gap: 1.5rem; margin: 1.5rem 0; }
.metric-card {
  background: linear-gradient(135deg, #ffffff, #f9fafb);
  border: 1px solid #e5e7eb;
  border-radius: 12px;
  padding: 1.5rem;
}
.metric-label {
  font-size: 0.875rem;
  font-weight: 500;
  color: #4b5563;
  text-transform: uppercase;
  letter-spacing: 0.05em;
}
.metric-value { font-size: 1.875rem; font-weight: 700; color: #111827; margin-top: 0.75rem; }

.data-table-wrapper { overflow-x: auto; margin: 1.5rem 0; border-radius: 12px; border: 1px solid #e5e7eb; }
.data-table { margin: 0; box-shadow: none; }
.data-table th { text-transform: uppercase; font-size: 0.75rem; letter-spacing: 0.05em; }
.data-table.striped tbody tr:nth-child(even) { background: #f9fafb; }
.data-table:not(.striped) tbody tr:nth-child(even) { background: #ffffff; }

.chart-container {
  background: #ffffff;
  border-radius: 12px;
  box-shadow: var(--shadow-md);
  padding: 1.5rem;
  margin: 1.5rem 0;
}
.chart-title { font-size: 1.25rem; font-weight: 700; margin: 0 0 1rem 0; }
.chart-empty { color: #6b7280; text-align: center; }
.chart-bar-row { display: flex; align-items: center; margin: 0.75rem 0; }
.chart-bar-label {
  width: 8rem;
  font-size: 0.875rem;
  font-weight: 500;
  color: #374151;
  overflow: hidden;
  text-overflow: ellipsis;
  white-space: nowrap;
}
.chart-bar-track { flex: 1; background: #f3f4f6; border-radius: 9999px; height: 2rem; }
.chart-bar-fill {
  background: linear-gradient(90deg, #3b82f6, #2563eb);
  height: 2rem;
  border-radius: 9999px;
  color: #ffffff;
  font-size: 0.75rem;
  font-weight: 700;
  text-align: right;
  padding: 0.4rem 0.75rem;
}
.chart-legend-row { display: flex; align-items: center; margin: 0.5rem 0; }
.chart-legend-swatch { width: 1rem; height: 1rem; border-radius: 4px; margin-right: 0.75rem; }
.chart-legend-label { flex: 1; font-size: 0.875rem; font-weight: 500; color: #374151; }
.chart-legend-value { font-size: 0.875rem; color: #6b7280; }
"""

ENHANCED_CSS = BASE_CSS + COMPONENT_CSS


def pdf_css(
    page_size: str = "A4",
    orientation: str = "portrait",
    margin_top: str = "20mm",
    margin_right: str = "15mm",
    margin_bottom: str = "20mm",
    margin_left: str = "15mm",
) -> str:
    """Page setup and print rules appended to the report CSS for PDF output."""
    return f"""
@page {{
    size: {page_size} {orientation};
    margin-top: {margin_top};
    margin-right: {margin_right};
    margin-bottom: {margin_bottom};
    margin-left: {margin_left};
}}

.metric-card, .chart-container, table, figure {{
    page-break-inside: avoid;
}}

h1, h2, h3, h4, h5, h6 {{
    page-break-after: avoid;
}}

* {{
    print-color-adjust: exact;
    -webkit-print-color-adjust: exact;
}}
"""
