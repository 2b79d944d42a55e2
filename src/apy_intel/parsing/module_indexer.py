# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Line-based module indexer.

Scans raw module text and recovers a ParsedModuleIndex:
- Top-level functions (single or multi-line headers, sync or async)
- Top-level classes, with the methods defined in their bodies
- Top-level simple assignments (as variables, type not inferred)

Only lines at indentation zero anchor the scan. Anything that does not match
a recognized shape is skipped, so the indexer never fails on a whole file;
the worst case is an empty index.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from apy_intel.models import ParsedModuleIndex, ParsedSymbol
from apy_intel.parsing.signatures import (
    DEFAULT_MAX_DEF_LINES,
    FunctionSignature,
    collect_multiline_def,
    parse_function_def,
)

logger = logging.getLogger(__name__)

DEFAULT_CLASS_BODY_INDENT = 4

_LINE_SPLIT = re.compile(r"\r?\n")
_CLASS_PATTERN = re.compile(r"^class\s+([A-Za-z_][A-Za-z0-9_]*)\s*(\((.*)\))?\s*:")
_VARIABLE_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=")


def split_lines(text: str) -> List[str]:
    return _LINE_SPLIT.split(text)


def is_top_level(line: str) -> bool:
    """Non-empty line that does not start with whitespace."""
    return len(line) > 0 and not line[0].isspace()


def indentation_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _is_skippable(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


class ModuleIndexer:
    """Builds ParsedModuleIndex objects from module text.

    Args:
        body_indent: Minimum indentation of a class body line that may hold a
            method definition (default: 4).
        max_def_lines: Line budget for one definition header (default: 20).
    """

    def __init__(
        self,
        body_indent: int = DEFAULT_CLASS_BODY_INDENT,
        max_def_lines: int = DEFAULT_MAX_DEF_LINES,
    ) -> None:
        self.body_indent = body_indent
        self.max_def_lines = max_def_lines

    def build(self, text: str) -> ParsedModuleIndex:
        """Index module text.

        Args:
            text: Full module source.

        Returns:
            A new ParsedModuleIndex. Duplicate names: last definition wins.
        """
        lines = split_lines(text)
        top_level: Dict[str, ParsedSymbol] = {}
        methods_by_class: Dict[str, Dict[str, ParsedSymbol]] = {}

        i = 0
        while i < len(lines):
            raw_line = lines[i]
            line = raw_line.rstrip()

            if _is_skippable(line) or not is_top_level(raw_line):
                i += 1
                continue

            if line.startswith("def ") or line.startswith("async def "):
                parsed, consumed = self._read_definition(lines, i)
                if parsed is not None:
                    top_level[parsed.name] = ParsedSymbol.function(parsed.name, parsed.format())
                    i += consumed
                    continue

            class_match = _CLASS_PATTERN.match(line)
            if class_match:
                class_name = class_match.group(1)
                bases = (class_match.group(3) or "").strip()
                signature = f"class {class_name}({bases})" if bases else f"class {class_name}"
                top_level[class_name] = ParsedSymbol.klass(class_name, signature)

                methods = self._scan_class_body(lines, i + 1, class_name)
                if methods:
                    methods_by_class[class_name] = methods
                i += 1
                continue

            var_match = _VARIABLE_PATTERN.match(line)
            if var_match:
                name = var_match.group(1)
                top_level[name] = ParsedSymbol.variable(name)

            i += 1

        index = ParsedModuleIndex(top_level=top_level, methods_by_class=methods_by_class)
        logger.debug(
            f"Indexed module: {len(top_level)} top-level symbols, "
            f"{len(methods_by_class)} classes with methods"
        )
        return index

    def _read_definition(
        self, lines: Sequence[str], index: int
    ) -> Tuple[Optional[FunctionSignature], int]:
        """Collect and parse a definition starting at ``index``.

        Returns:
            (signature, lines_consumed); signature is None if the lines are
            not a recognizable definition.
        """
        collected = collect_multiline_def(lines, index, max_lines=self.max_def_lines)
        if collected is None:
            return None, 1
        parsed = parse_function_def(collected.combined_text)
        if parsed is None:
            return None, 1
        return parsed, collected.lines_consumed

    def _scan_class_body(
        self, lines: Sequence[str], start: int, class_name: str
    ) -> Dict[str, ParsedSymbol]:
        """Recover methods from the body of ``class_name``.

        The body ends at the next indentation-zero line or at the first line
        indented less than ``body_indent``. Blank lines and comments do not
        end it.
        """
        methods: Dict[str, ParsedSymbol] = {}

        j = start
        while j < len(lines):
            raw_line = lines[j]
            line = raw_line.rstrip()

            if _is_skippable(line):
                j += 1
                continue

            if is_top_level(raw_line):
                break

            if indentation_of(raw_line) < self.body_indent:
                break

            stripped = line.lstrip()
            if stripped.startswith("def ") or stripped.startswith("async def "):
                parsed, consumed = self._read_definition(lines, j)
                if parsed is not None:
                    methods[parsed.name] = ParsedSymbol.method(
                        class_name, parsed.name, parsed.format(class_name)
                    )
                    j += consumed
                    continue

            j += 1

        return methods


def build_module_index(
    text: str,
    body_indent: int = DEFAULT_CLASS_BODY_INDENT,
    max_def_lines: int = DEFAULT_MAX_DEF_LINES,
) -> ParsedModuleIndex:
    """Build a ParsedModuleIndex from module text (pure function of the text)."""
    return ModuleIndexer(body_indent=body_indent, max_def_lines=max_def_lines).build(text)
