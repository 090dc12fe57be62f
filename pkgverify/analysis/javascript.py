"""Tree-sitter powered static analysis of JavaScript sources."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from ..errors import SourceParseError
from ..models import Location, SourceAnalysis

JS_LANGUAGE = Language(tree_sitter_javascript.language())

_HEX_LITERAL = re.compile(r"^(?:[0-9A-Fa-f]{2}){4,}$")
_ESCAPED_BYTES = re.compile(r"(?:\\x[0-9A-Fa-f]{2}){4,}")
_MAX_VALUE_LENGTH = 200
_NON_STATEMENTS = {"comment", "hash_bang_line"}


class _Collector:
    """Accumulates dependencies and warnings during one tree traversal."""

    def __init__(self) -> None:
        self.dependencies: Dict[str, Dict[str, Any]] = {}
        self.warnings: List[Tuple[str, str, Location]] = []

    def add_dependency(self, name: str, node: Node, *, unsafe: bool, in_try: bool) -> None:
        if name in self.dependencies:
            return
        (start_line, start_col), (end_line, end_col) = _location(node)
        self.dependencies[name] = {
            "unsafe": unsafe,
            "inTry": in_try,
            "location": {
                "start": {"line": start_line, "column": start_col},
                "end": {"line": end_line, "column": end_col},
            },
        }

    def warn(self, kind: str, value: str, node: Node) -> None:
        self.warnings.append((kind, value[:_MAX_VALUE_LENGTH], _location(node)))


def analyze_source(text: str, *, module: bool = False) -> SourceAnalysis:
    """Extract dependencies and suspicious patterns from JavaScript ``text``.

    ``module`` selects ES module parsing; in script mode ``import`` and
    ``export`` declarations are syntax errors. Raises
    :class:`SourceParseError` when the text is not valid JavaScript.
    """
    source = text.encode("utf-8")
    tree = Parser(JS_LANGUAGE).parse(source)
    root = tree.root_node
    if root.has_error:
        raise _syntax_error(root)

    collector = _Collector()
    stack: List[Tuple[Node, bool]] = [(root, False)]
    while stack:
        node, in_try = stack.pop()
        _visit(node, in_try, collector, module=module)

        children = node.children
        if node.type == "try_statement":
            body = node.child_by_field_name("body")
            pending = [(child, in_try or child == body) for child in children]
        else:
            pending = [(child, in_try) for child in children]
        stack.extend(reversed(pending))

    statements = [child for child in root.named_children if child.type not in _NON_STATEMENTS]
    return SourceAnalysis(
        dependencies=collector.dependencies,
        warnings=tuple(collector.warnings),
        is_one_line_require=len(statements) <= 1 and len(collector.dependencies) <= 1,
    )


def _visit(node: Node, in_try: bool, collector: _Collector, *, module: bool) -> None:
    kind = node.type
    if kind == "call_expression":
        _visit_call(node, in_try, collector)
    elif kind == "new_expression":
        constructor = node.child_by_field_name("constructor")
        if constructor is not None and _text(constructor) == "Function":
            collector.warn("unsafe-stmt", "Function", node)
    elif kind in {"import_statement", "export_statement"}:
        if not module:
            keyword = "import" if kind == "import_statement" else "export"
            line, column = _location(node)[0]
            raise SourceParseError(
                f"Cannot use '{keyword}' outside a module ({line}:{column})",
                line=line,
                column=column,
            )
        source = node.child_by_field_name("source")
        if source is not None:
            name = _literal_value(source)
            if name is not None:
                collector.add_dependency(name, node, unsafe=False, in_try=in_try)
    elif kind == "string":
        value = _text(node)[1:-1]
        if _HEX_LITERAL.match(value) and not value.isdigit():
            collector.warn("encoded-literal", value, node)
        elif _ESCAPED_BYTES.search(value):
            collector.warn("encoded-literal", value, node)


def _visit_call(node: Node, in_try: bool, collector: _Collector) -> None:
    function = node.child_by_field_name("function")
    arguments = node.child_by_field_name("arguments")
    if function is None or arguments is None or arguments.type != "arguments":
        return

    callee = _text(function)
    if function.type == "identifier" and callee in {"eval", "Function"}:
        collector.warn("unsafe-stmt", callee, node)
        return

    is_require = function.type == "identifier" and callee == "require"
    if not is_require and function.type != "import":
        return

    args = [child for child in arguments.named_children if child.type != "comment"]
    if not args:
        return
    argument = args[0]

    name = _literal_value(argument)
    if name is not None:
        collector.add_dependency(name, node, unsafe=False, in_try=in_try)
        return

    name = _concatenated_value(argument)
    if name is not None:
        collector.add_dependency(name, node, unsafe=True, in_try=in_try)
        collector.warn("unsafe-import", name, node)
        return

    collector.warn("unsafe-import", _text(argument), node)


def _literal_value(node: Node) -> Optional[str]:
    if node.type == "string":
        return _text(node)[1:-1]
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.named_children):
            return None
        return _text(node)[1:-1]
    return None


def _concatenated_value(node: Node) -> Optional[str]:
    """Fold ``"a" + "b"`` style expressions made only of literals."""
    if node.type == "parenthesized_expression":
        inner = [child for child in node.named_children if child.type != "comment"]
        return _concatenated_value(inner[0]) if len(inner) == 1 else None
    if node.type != "binary_expression":
        return _literal_value(node)
    operator = node.child_by_field_name("operator")
    if operator is None or _text(operator) != "+":
        return None
    left = node.child_by_field_name("left")
    right = node.child_by_field_name("right")
    if left is None or right is None:
        return None
    left_value = _concatenated_value(left)
    right_value = _concatenated_value(right)
    if left_value is None or right_value is None:
        return None
    return left_value + right_value


def _syntax_error(root: Node) -> SourceParseError:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            line, column = _location(node)[0]
            token = _text(node)[:20]
            detail = f"Unexpected token '{token}'" if token else "Unexpected end of input"
            return SourceParseError(f"{detail} ({line}:{column})", line=line, column=column)
        stack.extend(reversed(node.children))
    return SourceParseError("Unable to parse source")


def _location(node: Node) -> Location:
    start_row, start_col = node.start_point
    end_row, end_col = node.end_point
    return ((start_row + 1, start_col), (end_row + 1, end_col))


def _text(node: Node) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")


__all__ = ["JS_LANGUAGE", "analyze_source"]
