"""Tests for hcloud_config.render.interpolate."""

from __future__ import annotations

import asyncio

import pytest

from hcloud_config.errors import (
    ConfigurationError,
    TemplateSyntaxError,
    UndefinedNameError,
    UndefinedValueError,
)
from hcloud_config.render.interpolate import (
    DYNAMIC,
    STATIC,
    Segment,
    render,
    render_config,
    render_macros,
    render_twice,
    render_value,
    split_template,
)


# ── TestSplitTemplate ────────────────────────────────────────────────


class TestSplitTemplate:
    def test_plain_text_is_one_static_segment(self):
        assert split_template("hello") == [Segment(STATIC, "hello")]

    def test_empty_text(self):
        assert split_template("") == []

    def test_alternating_segments(self):
        assert split_template("a${x}b${y}") == [
            Segment(STATIC, "a"),
            Segment(DYNAMIC, "x"),
            Segment(STATIC, "b"),
            Segment(DYNAMIC, "y"),
        ]

    def test_nested_braces(self):
        segments = split_template("${ {a: 1}.a }")
        assert segments == [Segment(DYNAMIC, " {a: 1}.a ")]

    def test_escaped_expression_is_literal(self):
        assert split_template("\\${x}") == [Segment(STATIC, "${x}")]

    def test_missing_brace_count(self):
        with pytest.raises(TemplateSyntaxError, match="Missing 1 '}'"):
            split_template("${a")

    def test_missing_two_braces(self):
        with pytest.raises(TemplateSyntaxError, match="Missing 2 '}'"):
            split_template("${ {a: 1")

    def test_lone_dollar_and_brace_are_static(self):
        assert split_template("$ {x} $") == [Segment(STATIC, "$ {x} $")]


# ── TestRenderValue ──────────────────────────────────────────────────


class TestRenderValue:
    def test_booleans(self):
        assert render_value(True) == "true"
        assert render_value(False) == "false"

    def test_integral_float(self):
        assert render_value(10.0) == "10"

    def test_fractional_float(self):
        assert render_value(2.5) == "2.5"

    def test_list_joined_with_comma(self):
        assert render_value([1, "a", True]) == "1,a,true"

    def test_none_is_empty(self):
        assert render_value(None) == ""


# ── TestRender ───────────────────────────────────────────────────────


class TestRender:
    @pytest.mark.asyncio
    async def test_no_expression_returns_input(self):
        text = "no templates here: {a} $b"
        assert await render({}, text) == text

    @pytest.mark.asyncio
    async def test_arithmetic(self):
        assert await render({}, "a${1+1}b") == "a2b"

    @pytest.mark.asyncio
    async def test_escape(self):
        assert await render({"x": 1}, "\\${x}") == "${x}"

    @pytest.mark.asyncio
    async def test_object_literal_attribute(self):
        assert await render({}, "${ {a:1}.a }") == "1"

    @pytest.mark.asyncio
    async def test_context_names(self):
        ctx = {"server": {"name": "web-1", "ipv4_address": "10.0.0.1"}}
        assert await render(ctx, "${server.name}@${server.ipv4_address}") == "web-1@10.0.0.1"

    @pytest.mark.asyncio
    async def test_reserved_ctx_key(self):
        with pytest.raises(ConfigurationError, match="reserved"):
            await render({"ctx": 1}, "${ctx}")

    @pytest.mark.asyncio
    async def test_ctx_is_bound_to_context(self):
        assert await render({"a": "x"}, "${ctx.a}") == "x"

    @pytest.mark.asyncio
    async def test_undefined_value_raises(self):
        with pytest.raises(UndefinedValueError, match="server.missing"):
            await render({"server": {}}, "${server.missing}")

    @pytest.mark.asyncio
    async def test_undefined_value_lenient(self):
        out = await render({"server": {}}, "[${server.missing}]", throw_on_undefined=False)
        assert out == "[]"

    @pytest.mark.asyncio
    async def test_unknown_name(self):
        with pytest.raises(UndefinedNameError, match="nope"):
            await render({}, "${nope}")

    @pytest.mark.asyncio
    async def test_async_callable_is_awaited(self):
        async def lookup(key):
            await asyncio.sleep(0)
            return key.upper()

        assert await render({"lookup": lookup}, "${lookup('abc')}") == "ABC"

    @pytest.mark.asyncio
    async def test_segments_evaluated_concurrently(self):
        started = []
        gate = asyncio.Event()

        async def wait(name):
            started.append(name)
            if len(started) == 2:
                gate.set()
            await asyncio.wait_for(gate.wait(), 1)
            return name

        assert await render({"wait": wait}, "${wait('a')}-${wait('b')}") == "a-b"


# ── TestTwoPass ──────────────────────────────────────────────────────


class TestTwoPass:
    @pytest.mark.asyncio
    async def test_render_twice_expands_inserted_templates(self):
        ctx = {"value": "v-${version}", "version": "1.2"}
        assert await render_twice(ctx, "${value}") == "v-1.2"

    @pytest.mark.asyncio
    async def test_single_pass_keeps_inserted_template(self):
        ctx = {"value": "v-${version}", "version": "1.2"}
        assert await render_config(ctx, "${value}") == "v-${version}"

    @pytest.mark.asyncio
    async def test_macros_pass_on_rendered_text(self):
        assert await render_macros({"version": "1.2"}, "v-${version}") == "v-1.2"
