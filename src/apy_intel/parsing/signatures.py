# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Multi-line definition collection and signature parsing.

The indexer never runs a real Python parser. A definition is recovered by
joining lines from a ``def``/``async def`` start line until the parameter
list closes and the header colon appears, then matching the joined text
against an anchored pattern.

This is an intentionally approximate heuristic:
- Paren depth is counted over every raw character, including those inside
  string literals and comments. A literal ")" in a default value ends the
  parameter list early.
- Collection gives up after a fixed line budget so a malformed file cannot
  trigger a runaway scan.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

DEFAULT_MAX_DEF_LINES = 20

DEF_START_PATTERN = re.compile(r"^(async\s+)?def\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(")
_RETURN_ANNOTATION_CLOSE = re.compile(r"\)\s*->\s*[^:]+:")
_SIGNATURE_PATTERN = re.compile(
    r"^(async\s+)?def\s+([A-Za-z_][A-Za-z0-9_]*)\s*\((.*)\)\s*(?:->\s*([^:]+))?\s*:"
)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class CollectedDefinition:
    """Definition text joined from one or more source lines."""

    combined_text: str
    lines_consumed: int


@dataclass(frozen=True)
class FunctionSignature:
    """Pieces of a parsed ``def`` header."""

    is_async: bool
    name: str
    params: str
    return_type: str

    def format(self, class_name: Optional[str] = None) -> str:
        """Render as ``[async ]def [Class.]name(params)[ -> ret]``."""
        prefix = "async def" if self.is_async else "def"
        qualified = f"{class_name}.{self.name}" if class_name else self.name
        suffix = f" -> {self.return_type}" if self.return_type else ""
        return f"{prefix} {qualified}({self.params}){suffix}"


def is_def_start(line: str) -> bool:
    """Whether a line (ignoring leading whitespace) opens a function definition."""
    return DEF_START_PATTERN.match(line.lstrip()) is not None


def collect_multiline_def(
    lines: Sequence[str],
    index: int,
    max_lines: int = DEFAULT_MAX_DEF_LINES,
) -> Optional[CollectedDefinition]:
    """Join lines starting at ``index`` until the definition header closes.

    Args:
        lines: All lines of the file.
        index: Index of the line believed to start a definition.
        max_lines: Line budget; exceeding it means "not a definition".

    Returns:
        CollectedDefinition, or None if the start line is not a definition,
        the header never closes, or the budget is exceeded. The caller must
        skip ``lines_consumed - 1`` further lines.
    """
    if index < 0 or index >= len(lines):
        return None
    if not is_def_start(lines[index]):
        return None

    paren_depth = 0
    parts = []
    lines_consumed = 0

    for current in lines[index:]:
        parts.append(current.strip())
        lines_consumed += 1

        for char in current:
            if char == "(":
                paren_depth += 1
            elif char == ")":
                paren_depth -= 1

        if paren_depth == 0:
            combined = " ".join(parts)
            if "):" in combined or _RETURN_ANNOTATION_CLOSE.search(combined):
                return CollectedDefinition(combined_text=combined, lines_consumed=lines_consumed)

        if lines_consumed >= max_lines:
            break

    return None


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def parse_function_def(text: str) -> Optional[FunctionSignature]:
    """Parse a (possibly joined) ``def`` header.

    Returns:
        FunctionSignature, or None when the text is not shaped like
        ``[async ]def name(params)[ -> type]:``.
    """
    match = _SIGNATURE_PATTERN.match(normalize_whitespace(text))
    if match is None:
        return None

    return FunctionSignature(
        is_async=bool(match.group(1)),
        name=match.group(2),
        params=(match.group(3) or "").strip(),
        return_type=(match.group(4) or "").strip(),
    )
