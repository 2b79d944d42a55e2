# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Definition-jump support: find where a symbol is declared in a file."""

import re
from typing import List, Optional, Pattern

from apy_intel.models import DefinitionLocation, SymbolDescriptor, SymbolKind
from apy_intel.parsing.module_indexer import split_lines


def _class_pattern(name: str) -> Pattern[str]:
    return re.compile(rf"^class\s+{re.escape(name)}\b")


def _patterns_for(descriptor: SymbolDescriptor) -> List[Pattern[str]]:
    name = re.escape(descriptor.name)
    if descriptor.kind == SymbolKind.FUNCTION:
        return [re.compile(rf"^(async\s+)?def\s+{name}\s*\(")]
    if descriptor.kind == SymbolKind.CLASS:
        return [_class_pattern(descriptor.name)]
    if descriptor.kind == SymbolKind.VARIABLE:
        return [re.compile(rf"^{name}\s*=")]
    return []


def _find_method(lines: List[str], class_name: str, method_name: str) -> Optional[DefinitionLocation]:
    class_regex = _class_pattern(class_name)
    class_line = -1
    for i, line in enumerate(lines):
        if line[:1].isspace():
            continue
        if class_regex.match(line.rstrip()):
            class_line = i
            break
    if class_line == -1:
        return None

    method_regex = re.compile(rf"^(async\s+)?def\s+{re.escape(method_name)}\s*\(")
    for j in range(class_line + 1, len(lines)):
        line = lines[j]
        if not line.strip():
            continue
        if not line[:1].isspace():
            break
        if method_regex.match(line.strip()):
            return DefinitionLocation(line=j, column=0)

    # Method not found in the body: anchor on the class itself
    return DefinitionLocation(line=class_line, column=0)


def find_definition_location(
    file_text: str, descriptor: SymbolDescriptor
) -> Optional[DefinitionLocation]:
    """Locate the declaration line of a symbol.

    Methods are searched inside their class body and fall back to the class
    line; other kinds are matched against unindented lines only.

    Returns:
        DefinitionLocation (0-based), or None if nothing matches.
    """
    lines = split_lines(file_text)

    if descriptor.kind == SymbolKind.METHOD:
        if not descriptor.class_name:
            return None
        return _find_method(lines, descriptor.class_name, descriptor.name)

    patterns = _patterns_for(descriptor)
    if not patterns:
        return None

    for i, line in enumerate(lines):
        if line[:1].isspace():
            continue
        trimmed = line.rstrip()
        for pattern in patterns:
            if pattern.match(trimmed):
                return DefinitionLocation(line=i, column=0)

    return None
