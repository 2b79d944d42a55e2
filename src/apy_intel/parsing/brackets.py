# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Bracket-depth tracking and parameter-list utilities.

Used by signature help to split a signature into parameter labels and to
work out which parameter the cursor is in.

Known Limitations:
- Counting is purely lexical: delimiters inside string literals or comments
  are counted like any other character. A signature default such as
  ``sep: str = ","`` is split at that comma.
"""

from typing import List, Optional

_OPENERS = {"(": "paren", "[": "bracket", "{": "brace"}
_CLOSERS = {")": "paren", "]": "bracket", "}": "brace"}


class BracketDepth:
    """Paren/bracket/brace depth counters over a character stream.

    A closing delimiter never takes its counter below zero, so unbalanced
    input is tolerated without raising. The caller owns the instance.
    """

    __slots__ = ("paren", "bracket", "brace")

    def __init__(self) -> None:
        self.paren = 0
        self.bracket = 0
        self.brace = 0

    def update(self, char: str) -> None:
        """Apply one character to the counters."""
        opener = _OPENERS.get(char)
        if opener is not None:
            setattr(self, opener, getattr(self, opener) + 1)
            return
        closer = _CLOSERS.get(char)
        if closer is not None:
            setattr(self, closer, max(0, getattr(self, closer) - 1))

    @property
    def at_top_level(self) -> bool:
        return self.paren == 0 and self.bracket == 0 and self.brace == 0

    def __repr__(self) -> str:
        return f"BracketDepth(paren={self.paren}, bracket={self.bracket}, brace={self.brace})"


def count_top_level_commas(text: str) -> int:
    """Count commas that are not nested inside any bracket pair.

    Example:
        >>> count_top_level_commas("a, b, (c, d), e")
        3
    """
    depth = BracketDepth()
    commas = 0
    for char in text:
        depth.update(char)
        if char == "," and depth.at_top_level:
            commas += 1
    return commas


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split text on ``sep`` at bracket depth zero, dropping empty pieces."""
    result: List[str] = []
    buffer: List[str] = []
    depth = BracketDepth()

    for char in text:
        depth.update(char)
        if char == sep and depth.at_top_level:
            piece = "".join(buffer).strip()
            if piece:
                result.append(piece)
            buffer = []
            continue
        buffer.append(char)

    piece = "".join(buffer).strip()
    if piece:
        result.append(piece)
    return result


def _parameter_blob(signature: str) -> Optional[str]:
    """Return the text between the first '(' and its matching ')'."""
    start = signature.find("(")
    if start == -1:
        return None

    depth = 0
    for pos in range(start, len(signature)):
        char = signature[pos]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return signature[start + 1 : pos]
    # Unclosed: fall back to the last ')' like a greedy match would
    end = signature.rfind(")")
    if end <= start:
        return None
    return signature[start + 1 : end]


def extract_param_labels_from_signature(signature: str) -> List[str]:
    """Split a signature's parameter list into labels.

    Commas nested in default values (parens, brackets, braces) do not split.

    Example:
        >>> extract_param_labels_from_signature("(a: int, b: list = [1,2,3])")
        ['a: int', 'b: list = [1,2,3]']
    """
    blob = _parameter_blob(signature)
    if blob is None:
        return []
    inside = blob.strip()
    if not inside:
        return []
    return split_top_level(inside)


def active_parameter_index(args_text: str, param_count: int) -> int:
    """Index of the parameter the cursor is in, clamped to the last parameter."""
    return min(count_top_level_commas(args_text), max(0, param_count - 1))
