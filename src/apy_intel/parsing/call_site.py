# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Cursor-context extraction from a single line of text.

- locate_enclosing_call: innermost unclosed call in a line prefix
- extract_dotted_chain_before_dot: ``a.b.`` completion context
- get_dotted_expression_at: identifier/dotted span under the cursor
- get_table_name_at_position: ``database["Table"]`` references
"""

import re
from typing import Optional

from apy_intel.models import CallSite

_TRAILING_DOTTED = re.compile(r"([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*$")
_CHAIN_BEFORE_DOT = re.compile(r"([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\.$")
_TABLE_REFERENCE = re.compile(r"""\.?database\[["']([A-Za-z_][A-Za-z0-9_]*)["']\]""")
_HAS_IDENT_START = re.compile(r"[A-Za-z_]")


def locate_enclosing_call(line_prefix: str) -> Optional[CallSite]:
    """Find the innermost call whose parenthesis is still open.

    Scans backward from the cursor; ``)`` opens a nested group and ``(``
    closes one, and the first ``(`` at depth zero is the call paren.

    Example:
        >>> locate_enclosing_call("foo.bar(1, baz(2,3), ")
        CallSite(callee_expression='foo.bar', args_text='1, baz(2,3), ')

    Returns:
        CallSite, or None when there is no unclosed paren or no callee
        expression directly before it.
    """
    depth = 0
    for pos in range(len(line_prefix) - 1, -1, -1):
        char = line_prefix[pos]
        if char == ")":
            depth += 1
        elif char == "(":
            if depth == 0:
                match = _TRAILING_DOTTED.search(line_prefix[:pos])
                if match is None:
                    return None
                return CallSite(callee_expression=match.group(1), args_text=line_prefix[pos + 1 :])
            depth -= 1
    return None


def extract_dotted_chain_before_dot(line_prefix: str) -> Optional[str]:
    """Return ``a.b`` when the prefix ends with ``a.b.``, else None."""
    match = _CHAIN_BEFORE_DOT.search(line_prefix)
    return match.group(1) if match else None


def _is_ident_or_dot(char: str) -> bool:
    return char == "." or char == "_" or (char.isascii() and char.isalnum())


def get_dotted_expression_at(line: str, column: int) -> Optional[str]:
    """Expand the identifier/dotted span around ``column``.

    Returns:
        The dotted text, or None if the span is empty or has no identifier
        characters.
    """
    column = max(0, min(column, len(line)))

    start = column
    while start > 0 and _is_ident_or_dot(line[start - 1]):
        start -= 1

    end = column
    while end < len(line) and _is_ident_or_dot(line[end]):
        end += 1

    text = line[start:end].strip()
    if not text or not _HAS_IDENT_START.search(text):
        return None
    return text


def get_table_name_at_position(line: str, column: int) -> Optional[str]:
    """Return ``Table`` when the cursor sits inside ``database["Table"]``."""
    for match in _TABLE_REFERENCE.finditer(line):
        if match.start() <= column < match.end():
            return match.group(1)
    return None
