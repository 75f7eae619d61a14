"""Webhook template rendering.

Templates use a mustache-style subset:

- ``{{data.rows.[0].Title}}`` / ``{{{path}}}`` - value at a dotted path
- ``{{json path}}`` / ``{{json path true}}`` - JSON (optionally pretty-printed)
- ``{{#if path}}...{{else}}...{{/if}}`` and ``{{#unless path}}...{{/unless}}``
- ``{{#each path}}...{{/each}}`` with ``this``, ``@index``, ``@key``,
  ``@first``, ``@last`` and ``../`` to reach the enclosing scope

Output is never HTML-escaped. Templates that fail to parse or render are
returned unchanged by ``parse_body``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from app.core.errors import TemplateRenderError

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"\{\{\{\s*(.*?)\s*\}\}\}|\{\{\s*(.*?)\s*\}\}", re.DOTALL)
PATH_SEGMENT_PATTERN = re.compile(r"\[([^\]]*)\]|([^.\[\]]+)")

_BLOCKS = ("if", "unless", "each")
_MISSING = object()


# =============================================================================
# Parsing
# =============================================================================

@dataclass
class _Value:
    path: str


@dataclass
class _Json:
    path: str
    pretty: bool = False


@dataclass
class _Block:
    kind: str
    path: str
    body: list = field(default_factory=list)
    inverse: list = field(default_factory=list)
    in_inverse: bool = False

    def append(self, node) -> None:
        (self.inverse if self.in_inverse else self.body).append(node)


def _check_text(text: str) -> str:
    if "{{" in text:
        raise TemplateRenderError("Unclosed '{{' in template")
    return text


def _parse(template: str) -> list:
    root: list = []
    stack: list[_Block] = []

    def emit(node) -> None:
        if stack:
            stack[-1].append(node)
        else:
            root.append(node)

    position = 0
    for match in TAG_PATTERN.finditer(template):
        if match.start() > position:
            emit(_check_text(template[position : match.start()]))
        position = match.end()

        tag = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        if not tag:
            raise TemplateRenderError("Empty tag")

        if tag.startswith("!"):
            continue
        if tag.startswith("#"):
            kind, _, path = tag[1:].partition(" ")
            if kind not in _BLOCKS or not path.strip():
                raise TemplateRenderError(f"Unsupported block: {tag}")
            block = _Block(kind=kind, path=path.strip())
            emit(block)
            stack.append(block)
            continue
        if tag.startswith("/"):
            if not stack or stack[-1].kind != tag[1:].strip():
                raise TemplateRenderError(f"Unexpected closing tag: {tag}")
            stack.pop()
            continue
        if tag == "else":
            if not stack or stack[-1].in_inverse:
                raise TemplateRenderError("Unexpected {{else}}")
            stack[-1].in_inverse = True
            continue

        parts = tag.split()
        if parts[0] == "json" and len(parts) in (2, 3):
            pretty = len(parts) == 3 and parts[2].strip("\"'") == "true"
            emit(_Json(path=parts[1], pretty=pretty))
        elif len(parts) == 1:
            emit(_Value(path=parts[0]))
        else:
            raise TemplateRenderError(f"Unsupported expression: {tag}")

    if position < len(template):
        emit(_check_text(template[position:]))
    if stack:
        raise TemplateRenderError(f"Unclosed block: {stack[-1].kind}")
    return root


# =============================================================================
# Rendering
# =============================================================================

@dataclass
class _Scope:
    context: Any
    data: dict[str, Any] = field(default_factory=dict)
    parent: "_Scope | None" = None


def _get(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key, _MISSING)
    if isinstance(value, (list, tuple)):
        if key == "length":
            return len(value)
        try:
            return value[int(key)]
        except (ValueError, IndexError):
            return _MISSING
    return _MISSING


def _lookup(scope: _Scope, path: str) -> Any:
    while path.startswith("../"):
        path = path[3:]
        if scope.parent is not None:
            scope = scope.parent

    if path.startswith("@"):
        return scope.data.get(path[1:], _MISSING)
    if path in ("this", "."):
        return scope.context
    if path.startswith("this."):
        path = path[5:]

    value = scope.context
    for bracketed, plain in PATH_SEGMENT_PATTERN.findall(path):
        value = _get(value, bracketed or plain)
        if value is _MISSING:
            return _MISSING
    return value


def _is_falsy(value: Any) -> bool:
    if value is _MISSING or value is None or value is False:
        return True
    if isinstance(value, (str, list, tuple)) and not value:
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


def _to_json(value: Any, pretty: bool = False) -> str:
    if value is _MISSING:
        return ""
    try:
        if pretty:
            return json.dumps(value, indent=2, default=str, ensure_ascii=False)
        return json.dumps(value, separators=(",", ":"), default=str, ensure_ascii=False)
    except ValueError as e:
        raise TemplateRenderError(str(e)) from e


def _to_text(value: Any) -> str:
    if value is _MISSING or value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return _to_json(value)
    return str(value)


def _render(nodes: list, scope: _Scope) -> str:
    out: list[str] = []
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
        elif isinstance(node, _Value):
            out.append(_to_text(_lookup(scope, node.path)))
        elif isinstance(node, _Json):
            out.append(_to_json(_lookup(scope, node.path), node.pretty))
        elif node.kind == "each":
            out.append(_render_each(node, scope))
        else:
            falsy = _is_falsy(_lookup(scope, node.path))
            show_body = not falsy if node.kind == "if" else falsy
            out.append(_render(node.body if show_body else node.inverse, scope))
    return "".join(out)


def _render_each(block: _Block, scope: _Scope) -> str:
    value = _lookup(scope, block.path)
    if isinstance(value, dict):
        items = list(value.items())
    elif isinstance(value, (list, tuple)):
        items = [(None, item) for item in value]
    else:
        items = []
    if not items:
        return _render(block.inverse, scope)

    out: list[str] = []
    last = len(items) - 1
    for index, (key, item) in enumerate(items):
        data = {"index": index, "first": index == 0, "last": index == last}
        if key is not None:
            data["key"] = key
        out.append(_render(block.body, _Scope(context=item, data=data, parent=scope)))
    return "".join(out)


def render_template(template: str, context: dict[str, Any]) -> str:
    """Render strictly; raises TemplateRenderError on malformed templates."""
    return _render(_parse(template), _Scope(context=context))


# =============================================================================
# Public helpers
# =============================================================================

def parse_body(template: Any, data: Any) -> Any:
    """
    Render `template` against `{data, event}` (both the envelope).

    Falsy templates come back as given; so does any template that fails
    to render.
    """
    if not template or not isinstance(template, str):
        return template
    try:
        return render_template(template, {"data": data, "event": data})
    except Exception as e:
        logger.debug("Template render failed, using raw template: %s", e)
        return template


def template_json(value: Any, data: Any) -> Any:
    """Apply parse_body to every string leaf of a JSON-like value."""
    if isinstance(value, str):
        return parse_body(value, data)
    if isinstance(value, dict):
        return {key: template_json(item, data) for key, item in value.items()}
    if isinstance(value, list):
        return [template_json(item, data) for item in value]
    return value


def template_structured(value: Any, data: Any) -> Any:
    """
    Template a body/auth setting that may be JSON text or a JSON structure.

    JSON text is decoded and templated leaf by leaf; text that is not JSON is
    rendered as a single template.
    """
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return parse_body(value, data)
        return template_json(decoded, data)
    return template_json(value, data)
