"""MDX compilation and rendering.

MDX here is markdown with embedded components::

    # Quarterly Sales

    <KPICard title="Revenue" value={metrics.revenue} change={12.5} trend="up" />

    <Callout type="warning" title="Heads up">
    Returns rose **8%** this quarter.
    </Callout>

Component tags start with an uppercase letter and are either self-closing or
paired. Attribute values may be quoted strings, ``{expressions}`` or bare
tokens; an attribute without a value is ``True``. Expressions are evaluated
as JSON literals, JavaScript-style object literals, or dotted names looked
up in the render scope. ``{name}`` in text is substituted the same way.

Compilation produces a small render tree (:class:`MdxText`,
:class:`MdxElement`) that :class:`MdxRenderer` turns into HTML: text runs go
through markdown, components through :mod:`reportflow.renderers.components`.
Unknown components render their children.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

import markdown
from markupsafe import Markup

from reportflow.renderers.components import BUILTIN_COMPONENTS, Component
from reportflow.renderers.html import MARKDOWN_EXTENSIONS

logger = logging.getLogger(__name__)

_IMPORT_EXPORT_RE = re.compile(r"^[ \t]*(?:import|export)\s.*$", re.MULTILINE)
_JSX_COMMENT_RE = re.compile(r"\{/\*.*?\*/\}", re.DOTALL)
_CLASSNAME_RE = re.compile(r"\bclassName=")
_TAG_START_RE = re.compile(r"<(/?)([A-Z][A-Za-z0-9_.]*)")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_$][\w$.:-]*")
_NAME_PATH_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*|\[\d+\])*$")
_PATH_PART_RE = re.compile(r"[A-Za-z_$][\w$]*|\[\d+\]")
_BARE_KEY_RE = re.compile(r'([{,]\s*)([A-Za-z_$][\w$]*)\s*:')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_TEXT_EXPR_RE = re.compile(r"\{([^{}\n]+)\}")
_FENCE_RE = re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.MULTILINE | re.DOTALL)

_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None, "undefined": None}


class MdxSyntaxError(ValueError):
    """Raised when MDX source cannot be parsed."""

    def __init__(self, message: str, position: int | None = None):
        self.position = position
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)


# =============================================================================
# Render tree
# =============================================================================


@dataclass
class Expression:
    """An unevaluated ``{...}`` attribute value."""

    source: str


@dataclass
class MdxText:
    text: str


@dataclass
class MdxElement:
    name: str
    props: dict[str, Any] = field(default_factory=dict)
    children: list["MdxNode"] = field(default_factory=list)


MdxNode = Union[MdxText, MdxElement]


# =============================================================================
# Parser
# =============================================================================


def _scan_balanced(source: str, start: int) -> int:
    """Index just past the bracket group opening at ``start``.

    Quoted strings inside the group are skipped, so brackets inside them do
    not count.
    """
    pairs = {"{": "}", "[": "]", "(": ")"}
    stack = [pairs[source[start]]]
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch in "\"'`":
            i = _skip_string(source, i)
            continue
        if ch in pairs:
            stack.append(pairs[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return i + 1
        i += 1
    raise MdxSyntaxError("Unbalanced expression", start)


def _skip_string(source: str, start: int) -> int:
    quote = source[start]
    i = start + 1
    while i < len(source):
        if source[i] == "\\":
            i += 2
            continue
        if source[i] == quote:
            return i + 1
        i += 1
    raise MdxSyntaxError("Unterminated string", start)


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def parse(self) -> list[MdxNode]:
        root = MdxElement("#root")
        stack: list[MdxElement] = [root]
        text_start = 0

        while True:
            match = _TAG_START_RE.search(self.source, self.pos)
            if match is None:
                break
            start = match.start()
            if start > text_start:
                self._append_text(stack[-1], self.source[text_start:start])

            closing, name = match.group(1) == "/", match.group(2)
            self.pos = match.end()

            if closing:
                self._skip_ws()
                self._expect(">")
                if len(stack) == 1 or stack[-1].name != name:
                    expected = stack[-1].name if len(stack) > 1 else None
                    raise MdxSyntaxError(
                        f"Unexpected closing tag </{name}>"
                        + (f", expected </{expected}>" if expected else ""),
                        start,
                    )
                stack.pop()
            else:
                element = MdxElement(name)
                self_closing = self._parse_attributes(element)
                stack[-1].children.append(element)
                if not self_closing:
                    stack.append(element)
            text_start = self.pos

        if text_start < len(self.source):
            self._append_text(stack[-1], self.source[text_start:])
        if len(stack) > 1:
            raise MdxSyntaxError(f"Unclosed tag <{stack[-1].name}>")
        return root.children

    @staticmethod
    def _append_text(parent: MdxElement, text: str) -> None:
        if parent.children and isinstance(parent.children[-1], MdxText):
            parent.children[-1].text += text
        else:
            parent.children.append(MdxText(text))

    def _skip_ws(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos].isspace():
            self.pos += 1

    def _expect(self, token: str) -> None:
        if not self.source.startswith(token, self.pos):
            raise MdxSyntaxError(f"Expected '{token}'", self.pos)
        self.pos += len(token)

    def _parse_attributes(self, element: MdxElement) -> bool:
        """Parse attributes up to the tag end; return True if self-closing."""
        while True:
            self._skip_ws()
            if self.pos >= len(self.source):
                raise MdxSyntaxError(f"Unterminated tag <{element.name}>")
            if self.source.startswith("/>", self.pos):
                self.pos += 2
                return True
            if self.source[self.pos] == ">":
                self.pos += 1
                return False
            if self.source[self.pos] == "{":
                # {...spread}
                end = _scan_balanced(self.source, self.pos)
                inner = self.source[self.pos + 1 : end - 1].strip()
                if inner.startswith("..."):
                    element.props.setdefault("...", []).append(Expression(inner[3:]))
                self.pos = end
                continue

            match = _ATTR_NAME_RE.match(self.source, self.pos)
            if match is None:
                raise MdxSyntaxError(f"Invalid attribute in <{element.name}>", self.pos)
            name = match.group(0)
            self.pos = match.end()
            self._skip_ws()

            if not self.source.startswith("=", self.pos):
                element.props[name] = True
                continue
            self.pos += 1
            self._skip_ws()
            element.props[name] = self._parse_value()

    def _parse_value(self) -> Any:
        ch = self.source[self.pos] if self.pos < len(self.source) else ""
        if ch in "\"'":
            end = _skip_string(self.source, self.pos)
            value = self.source[self.pos + 1 : end - 1]
            self.pos = end
            return value
        if ch == "{":
            end = _scan_balanced(self.source, self.pos)
            expr = self.source[self.pos + 1 : end - 1]
            self.pos = end
            return Expression(expr)
        if ch == "[":
            end = _scan_balanced(self.source, self.pos)
            expr = self.source[self.pos : end]
            self.pos = end
            return Expression(expr)

        start = self.pos
        while self.pos < len(self.source):
            c = self.source[self.pos]
            if c.isspace() or c == ">" or self.source.startswith("/>", self.pos):
                break
            self.pos += 1
        if start == self.pos:
            raise MdxSyntaxError("Missing attribute value", start)
        return Expression(self.source[start : self.pos])


def strip_module_syntax(source: str) -> str:
    """Drop ``import``/``export`` lines and ``{/* comments */}``."""
    source = _IMPORT_EXPORT_RE.sub("", source)
    return _JSX_COMMENT_RE.sub("", source)


def compile_mdx(source: str) -> list[MdxNode]:
    """Parse MDX source into a render tree.

    Raises:
        MdxSyntaxError: On unbalanced tags or malformed attributes.
    """
    return _Parser(strip_module_syntax(source)).parse()


# =============================================================================
# Expression evaluation
# =============================================================================


def _js_to_json(expr: str) -> str:
    """Rewrite a JavaScript object literal into JSON text."""
    out: list[str] = []
    i = 0
    while i < len(expr):
        ch = expr[i]
        if ch in "'`":
            end = _skip_string(expr, i)
            out.append(json.dumps(expr[i + 1 : end - 1].replace("\\" + ch, ch)))
            i = end
        elif ch == '"':
            end = _skip_string(expr, i)
            out.append(expr[i:end])
            i = end
        else:
            out.append(ch)
            i += 1
    text = "".join(out)
    text = _BARE_KEY_RE.sub(r'\1"\2":', text)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def lookup_path(scope: Mapping[str, Any], path: str) -> Any:
    """Resolve ``a.b[0].c`` against ``scope``; missing segments give None."""
    current: Any = scope
    for part in _PATH_PART_RE.findall(path):
        if part.startswith("["):
            index = int(part[1:-1])
            if isinstance(current, (list, tuple)) and -len(current) <= index < len(current):
                current = current[index]
            else:
                return None
        elif isinstance(current, Mapping):
            if part not in current:
                return None
            current = current[part]
        elif part == "length" and isinstance(current, (list, tuple, str)):
            current = len(current)
        else:
            return None
    return current


def evaluate_expression(expr: str, scope: Mapping[str, Any]) -> Any:
    """Evaluate an MDX expression against ``scope``."""
    text = expr.strip()
    if not text:
        return None
    if text in _LITERALS:
        return _LITERALS[text]

    try:
        return json.loads(text)
    except ValueError:
        pass

    if text[0] in "[{'`":
        try:
            return json.loads(_js_to_json(text))
        except (ValueError, MdxSyntaxError):
            pass

    if _NAME_PATH_RE.match(text):
        return lookup_path(scope, text)

    logger.warning(f"Unsupported MDX expression: {text!r}")
    return None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def substitute_text_expressions(text: str, scope: Mapping[str, Any]) -> str:
    """Replace ``{expr}`` in text with its value, leaving fenced code alone."""

    def _sub(segment: str) -> str:
        return _TEXT_EXPR_RE.sub(
            lambda m: _stringify(evaluate_expression(m.group(1), scope)), segment
        )

    parts: list[str] = []
    last = 0
    for fence in _FENCE_RE.finditer(text):
        parts.append(_sub(text[last : fence.start()]))
        parts.append(fence.group(0))
        last = fence.end()
    parts.append(_sub(text[last:]))
    return "".join(parts)


# =============================================================================
# Renderer
# =============================================================================


class MdxRenderer:
    """Renders MDX source to an HTML fragment.

    Args:
        components: Extra or overriding components by tag name.

    Example:
        >>> renderer = MdxRenderer()
        >>> renderer.render('<Callout type="info">{count} rows</Callout>', {"count": 3})
    """

    def __init__(self, components: Mapping[str, Component] | None = None):
        self._components: dict[str, Component] = dict(BUILTIN_COMPONENTS)
        if components:
            self._components.update(components)

    @property
    def components(self) -> dict[str, Component]:
        return dict(self._components)

    def compile(self, source: str) -> list[MdxNode]:
        return compile_mdx(source)

    def render(self, source: str, scope: Mapping[str, Any] | None = None) -> str:
        """Compile and render ``source`` with ``scope`` as expression data."""
        return self.render_tree(self.compile(source), scope or {})

    def render_tree(self, nodes: list[MdxNode], scope: Mapping[str, Any]) -> str:
        return str(self._render_nodes(nodes, scope))

    def _render_nodes(self, nodes: list[MdxNode], scope: Mapping[str, Any]) -> Markup:
        parts = [self._render_node(node, scope) for node in nodes]
        return Markup("\n".join(p for p in parts if p))

    def _render_node(self, node: MdxNode, scope: Mapping[str, Any]) -> Markup:
        if isinstance(node, MdxText):
            return self._render_text(node.text, scope)

        props = self._evaluate_props(node.props, scope)
        children = self._render_nodes(node.children, scope)
        component = self._components.get(node.name)
        if component is None:
            logger.debug(f"Unknown MDX component <{node.name}>, rendering children only")
            return children
        return component(props, children)

    @staticmethod
    def _evaluate_props(props: Mapping[str, Any], scope: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, raw in props.items():
            if name == "...":
                for spread in raw:
                    value = evaluate_expression(spread.source, scope)
                    if isinstance(value, Mapping):
                        values.update(value)
            elif isinstance(raw, Expression):
                values[name] = evaluate_expression(raw.source, scope)
            else:
                values[name] = raw
        return values

    @staticmethod
    def _render_text(text: str, scope: Mapping[str, Any]) -> Markup:
        if not text.strip():
            return Markup("")
        text = substitute_text_expressions(text, scope)
        text = _CLASSNAME_RE.sub("class=", text)
        html = markdown.markdown(
            _dedent_block(text), extensions=list(MARKDOWN_EXTENSIONS), output_format="html"
        )
        return Markup(html)


def _dedent_block(text: str) -> str:
    """Strip indentation shared by all non-blank lines.

    Children of components are usually indented in the source, which
    markdown would otherwise read as code blocks.
    """
    lines = text.splitlines()
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    margin = min(indents) if indents else 0
    return "\n".join(line[margin:] for line in lines)
