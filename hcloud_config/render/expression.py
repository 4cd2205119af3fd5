"""Restricted expression interpreter for ``${...}`` template segments.

Expressions are parsed with :mod:`ast` (``mode="eval"``) and walked node by
node.  Only a small, explicit subset of the language is evaluated:

* literals, list / tuple / dict displays and f-strings
* names bound in the template context
* attribute access (key lookup on mappings, ``None`` when missing)
* subscripts and slices
* calls of callables reachable from the bindings (awaitables are awaited)
* arithmetic (``+ - * / // %``), comparisons, ``and`` / ``or`` / ``not``
  and conditional expressions

Names and attributes starting with ``_`` are rejected, and so are
``str.format`` and ``str.format_map``, whose field syntax can reach dunder
attributes.  Dict displays treat bare identifiers used as keys
as literal strings, which makes ``{a: 1}.a`` evaluate to ``1``.
"""

from __future__ import annotations

import ast
import inspect
import operator
from typing import Any, Callable, Dict, Mapping, Sequence

from hcloud_config.errors import ExpressionError, UndefinedNameError

_BLOCKED_STR_METHODS = frozenset({"format", "format_map"})

_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPERATORS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


def parse_expression(source: str) -> ast.expr:
    """Parse *source* into an expression node.

    The source is wrapped in parentheses so that expressions may span
    several lines and may start with whitespace.
    """
    if not source.strip():
        raise ExpressionError("Empty expression")
    try:
        tree = ast.parse(f"({source}\n)", mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Invalid expression {source.strip()!r}: {exc.msg}") from exc
    return tree.body


async def evaluate(source: str, namespace: Mapping[str, Any]) -> Any:
    """Evaluate the expression *source* against *namespace*."""
    node = parse_expression(source)
    try:
        return await _Evaluator(namespace, source.strip()).visit(node)
    except ExpressionError:
        raise
    except (TypeError, ValueError, KeyError, ZeroDivisionError, AttributeError) as exc:
        raise ExpressionError(
            f"Failed to evaluate {source.strip()!r}: {type(exc).__name__}: {exc}"
        ) from exc


def _check_identifier(identifier: str, source: str) -> None:
    if identifier.startswith("_"):
        raise ExpressionError(
            f"Access to private name {identifier!r} is not allowed in {source!r}"
        )


class _Evaluator:
    """Walks an expression tree; one instance per evaluation."""

    def __init__(self, namespace: Mapping[str, Any], source: str) -> None:
        self.namespace = namespace
        self.source = source

    async def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(
                f"Unsupported syntax {type(node).__name__} in {self.source!r}"
            )
        return await method(node)

    async def _visit_all(self, nodes: Sequence[ast.AST]) -> list:
        return [await self.visit(node) for node in nodes]

    # -- atoms ---------------------------------------------------------------

    async def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    async def visit_Name(self, node: ast.Name) -> Any:
        _check_identifier(node.id, self.source)
        if node.id not in self.namespace:
            raise UndefinedNameError(f"Name is not defined: {node.id} (in {self.source!r})")
        return self.namespace[node.id]

    async def visit_List(self, node: ast.List) -> list:
        return await self._visit_all(node.elts)

    async def visit_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(await self._visit_all(node.elts))

    async def visit_Dict(self, node: ast.Dict) -> dict:
        result: dict = {}
        for key_node, value_node in zip(node.keys, node.values):
            value = await self.visit(value_node)
            if key_node is None:
                result.update(value)
            elif isinstance(key_node, ast.Name):
                result[key_node.id] = value
            else:
                result[await self.visit(key_node)] = value
        return result

    async def visit_JoinedStr(self, node: ast.JoinedStr) -> str:
        return "".join([str(await self.visit(value)) for value in node.values])

    async def visit_FormattedValue(self, node: ast.FormattedValue) -> str:
        value = await self.visit(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("s"):
            value = str(value)
        spec = await self.visit(node.format_spec) if node.format_spec else ""
        return format(value, spec)

    # -- access --------------------------------------------------------------

    async def visit_Attribute(self, node: ast.Attribute) -> Any:
        _check_identifier(node.attr, self.source)
        target = await self.visit(node.value)
        if target is None:
            raise ExpressionError(
                f"Cannot read attribute {node.attr!r} of None in {self.source!r}"
            )
        if isinstance(target, str) and node.attr in _BLOCKED_STR_METHODS:
            raise ExpressionError(
                f"str.{node.attr} is not allowed in {self.source!r}"
            )
        if isinstance(target, Mapping):
            return target.get(node.attr)
        return getattr(target, node.attr, None)

    async def visit_Subscript(self, node: ast.Subscript) -> Any:
        target = await self.visit(node.value)
        key = await self.visit(node.slice)
        if target is None:
            raise ExpressionError(f"Cannot index None in {self.source!r}")
        if isinstance(target, Mapping):
            return target.get(key)
        try:
            return target[key]
        except IndexError:
            return None

    async def visit_Slice(self, node: ast.Slice) -> slice:
        lower = await self.visit(node.lower) if node.lower else None
        upper = await self.visit(node.upper) if node.upper else None
        step = await self.visit(node.step) if node.step else None
        return slice(lower, upper, step)

    async def visit_Call(self, node: ast.Call) -> Any:
        func = await self.visit(node.func)
        if not callable(func):
            raise ExpressionError(f"{ast.unparse(node.func)!r} is not callable in {self.source!r}")
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                args.extend(await self.visit(arg.value))
            else:
                args.append(await self.visit(arg))
        kwargs: Dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                kwargs.update(await self.visit(keyword.value))
            else:
                _check_identifier(keyword.arg, self.source)
                kwargs[keyword.arg] = await self.visit(keyword.value)
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    # -- operators -----------------------------------------------------------

    async def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise ExpressionError(
                f"Unsupported operator {type(node.op).__name__} in {self.source!r}"
            )
        return op(await self.visit(node.left), await self.visit(node.right))

    async def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPERATORS.get(type(node.op))
        if op is None:
            raise ExpressionError(
                f"Unsupported operator {type(node.op).__name__} in {self.source!r}"
            )
        return op(await self.visit(node.operand))

    async def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        value: Any = None
        for operand in node.values:
            value = await self.visit(operand)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    async def visit_Compare(self, node: ast.Compare) -> bool:
        left = await self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = await self.visit(comparator)
            if not _COMPARE_OPERATORS[type(op_node)](left, right):
                return False
            left = right
        return True

    async def visit_IfExp(self, node: ast.IfExp) -> Any:
        if await self.visit(node.test):
            return await self.visit(node.body)
        return await self.visit(node.orelse)
