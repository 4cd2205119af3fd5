"""Tests for hcloud_config.render.expression."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from hcloud_config.errors import ExpressionError, UndefinedNameError
from hcloud_config.render.expression import evaluate, parse_expression


@dataclass
class _Image:
    name: str
    tag: str

    @property
    def version(self):
        return self.tag


# ── TestParse ────────────────────────────────────────────────────────


class TestParse:
    def test_empty_expression(self):
        with pytest.raises(ExpressionError, match="Empty"):
            parse_expression("   ")

    def test_syntax_error(self):
        with pytest.raises(ExpressionError, match="Invalid expression"):
            parse_expression("1 +")

    def test_leading_whitespace_and_newlines(self):
        parse_expression("\n  1 +\n  2 ")


# ── TestEvaluate ─────────────────────────────────────────────────────


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_literals(self):
        assert await evaluate("[1, 'a', None, True]", {}) == [1, "a", None, True]

    @pytest.mark.asyncio
    async def test_mapping_attribute_is_key_lookup(self):
        assert await evaluate("env.HOME", {"env": {"HOME": "/root"}}) == "/root"

    @pytest.mark.asyncio
    async def test_missing_mapping_key_is_none(self):
        assert await evaluate("env.NOPE", {"env": {}}) is None

    @pytest.mark.asyncio
    async def test_object_attribute(self):
        image = _Image(name="app", tag="v1")
        assert await evaluate("image.version", {"image": image}) == "v1"

    @pytest.mark.asyncio
    async def test_attribute_of_none(self):
        with pytest.raises(ExpressionError, match="of None"):
            await evaluate("a.b.c", {"a": {}})

    @pytest.mark.asyncio
    async def test_subscript_and_slice(self):
        ns = {"items": ["a", "b", "c"], "m": {"k": 1}}
        assert await evaluate("items[1]", ns) == "b"
        assert await evaluate("items[:2]", ns) == ["a", "b"]
        assert await evaluate("m['k']", ns) == 1
        assert await evaluate("items[10]", ns) is None

    @pytest.mark.asyncio
    async def test_bare_identifier_dict_keys(self):
        assert await evaluate("{a: 1, 'b': 2}", {}) == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_conditional_expression(self):
        assert await evaluate("'yes' if flag else 'no'", {"flag": False}) == "no"

    @pytest.mark.asyncio
    async def test_boolean_operators_return_operands(self):
        assert await evaluate("a or 'default'", {"a": ""}) == "default"
        assert await evaluate("a and b", {"a": 1, "b": 2}) == 2

    @pytest.mark.asyncio
    async def test_comparisons(self):
        assert await evaluate("1 < x <= 3", {"x": 3}) is True
        assert await evaluate("'a' in items", {"items": ["b"]}) is False

    @pytest.mark.asyncio
    async def test_fstring(self):
        assert await evaluate("f'{name}-{n:03d}'", {"name": "web", "n": 7}) == "web-007"

    @pytest.mark.asyncio
    async def test_string_method_call(self):
        assert await evaluate("', '.join(ids)", {"ids": ["a", "b"]}) == "a, b"

    @pytest.mark.asyncio
    async def test_sync_and_async_calls(self):
        async def twice(value):
            return value * 2

        ns = {"upper": str.upper, "twice": twice}
        assert await evaluate("upper('x') + twice('y')", ns) == "Xyy"

    @pytest.mark.asyncio
    async def test_unknown_name(self):
        with pytest.raises(UndefinedNameError):
            await evaluate("missing", {})

    @pytest.mark.asyncio
    async def test_type_error_is_wrapped(self):
        with pytest.raises(ExpressionError, match="TypeError"):
            await evaluate("'a' + 1", {})


# ── TestRestrictions ─────────────────────────────────────────────────


class TestRestrictions:
    @pytest.mark.asyncio
    async def test_private_attribute_rejected(self):
        with pytest.raises(ExpressionError, match="private"):
            await evaluate("x.__class__", {"x": 1})

    @pytest.mark.asyncio
    async def test_private_name_rejected(self):
        with pytest.raises(ExpressionError, match="private"):
            await evaluate("__import__", {})

    @pytest.mark.asyncio
    async def test_lambda_unsupported(self):
        with pytest.raises(ExpressionError, match="Unsupported syntax Lambda"):
            await evaluate("lambda: 1", {})

    @pytest.mark.asyncio
    async def test_comprehension_unsupported(self):
        with pytest.raises(ExpressionError, match="Unsupported syntax"):
            await evaluate("[x for x in items]", {"items": [1]})

    @pytest.mark.asyncio
    async def test_power_unsupported(self):
        with pytest.raises(ExpressionError, match="Unsupported operator Pow"):
            await evaluate("9 ** 9", {})

    @pytest.mark.asyncio
    async def test_non_callable(self):
        with pytest.raises(ExpressionError, match="not callable"):
            await evaluate("x()", {"x": 1})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["format", "format_map"])
    async def test_str_format_rejected(self, method):
        with pytest.raises(ExpressionError, match=f"str.{method} is not allowed"):
            await evaluate(f"'{{0.__class__}}'.{method}(x)", {"x": 1})
