# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for multi-line definition collection and signature parsing."""

from apy_intel.parsing.signatures import (
    FunctionSignature,
    collect_multiline_def,
    is_def_start,
    parse_function_def,
)


class TestIsDefStart:
    def test_sync_and_async(self):
        assert is_def_start("def foo(")
        assert is_def_start("async def foo(a):")
        assert is_def_start("    def method(self):")

    def test_not_a_definition(self):
        assert not is_def_start("define = 1")
        assert not is_def_start("class Foo:")
        assert not is_def_start("# def foo():")


class TestCollectMultilineDef:
    def test_single_line(self):
        collected = collect_multiline_def(["def foo(a, b):", "    pass"], 0)

        assert collected is not None
        assert collected.combined_text == "def foo(a, b):"
        assert collected.lines_consumed == 1

    def test_multi_line_joined_with_spaces(self):
        lines = ["def foo(a,", "        b,", "        c):", "    pass"]

        collected = collect_multiline_def(lines, 0)

        assert collected is not None
        assert collected.combined_text == "def foo(a, b, c):"
        assert collected.lines_consumed == 3

    def test_return_annotation_terminates(self):
        lines = ["async def fetch(url,", "          timeout: int = 10) -> dict:", "    pass"]

        collected = collect_multiline_def(lines, 0)

        assert collected is not None
        assert collected.lines_consumed == 2
        assert collected.combined_text.endswith("-> dict:")

    def test_index_out_of_range(self):
        assert collect_multiline_def(["def foo():"], 5) is None
        assert collect_multiline_def(["def foo():"], -1) is None

    def test_start_line_not_a_definition(self):
        assert collect_multiline_def(["x = 1", "def foo():"], 0) is None

    def test_never_closing_returns_none(self):
        lines = ["def foo(a,", "    b,", "    c,"]

        assert collect_multiline_def(lines, 0) is None

    def test_line_budget(self):
        # Header closes on line 21 (index 20): one line over the budget
        lines = ["def foo("] + [f"    p{i}," for i in range(19)] + ["    last):"]
        assert len(lines) == 21

        assert collect_multiline_def(lines, 0) is None
        assert collect_multiline_def(lines, 0, max_lines=21) is not None

    def test_header_closing_on_last_budget_line(self):
        lines = ["def foo("] + [f"    p{i}," for i in range(18)] + ["    last):"]
        assert len(lines) == 20

        collected = collect_multiline_def(lines, 0)

        assert collected is not None
        assert collected.lines_consumed == 20

    def test_string_paren_closes_early(self):
        # Known limitation: the ")" inside the string literal closes the
        # parameter list, so the real close is never seen at depth zero
        lines = ['def foo(a=")"', "        , b):"]

        assert collect_multiline_def(lines, 0) is None


class TestParseFunctionDef:
    def test_full_signature(self):
        parsed = parse_function_def("async def fetch(url, timeout: int = 10) -> dict:")

        assert parsed == FunctionSignature(
            is_async=True, name="fetch", params="url, timeout: int = 10", return_type="dict"
        )

    def test_whitespace_normalized(self):
        parsed = parse_function_def("def  foo( a,\n   b )  :")

        assert parsed is not None
        assert parsed.name == "foo"
        assert parsed.params == "a, b"
        assert parsed.return_type == ""

    def test_not_a_definition(self):
        assert parse_function_def("class Foo:") is None
        assert parse_function_def("def foo") is None

    def test_format(self):
        parsed = parse_function_def("def render(self, value) -> str:")
        assert parsed is not None

        assert parsed.format() == "def render(self, value) -> str"
        assert parsed.format("Formatter") == "def Formatter.render(self, value) -> str"

    def test_format_async_no_return(self):
        parsed = parse_function_def("async def run():")
        assert parsed is not None

        assert parsed.format() == "async def run()"
