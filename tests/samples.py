# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Sample APY sources and test helpers shared by the test modules."""

from typing import List

UTILS_SOURCE = '''"""String and HTTP helpers."""
import json

MAX_RETRIES = 3

def slugify(text: str, sep: str = "-") -> str:
    return text.lower().replace(" ", sep)

async def fetch(url,
                timeout: int = 10,
                retries: int = 3) -> dict:
    return {}

class Formatter(Base):
    """Formats values."""

    def __init__(self, width: int = 80):
        self.width = width

    def render(self, value, *, upper: bool = False) -> str:
        return str(value)
'''

INVOICES_SOURCE = """def total(items, tax_rate: float = 0.2) -> float:
    return 0.0

class Invoice:
    def pay(self, amount):
        pass

DEFAULT_CURRENCY = "EUR"
"""

HANDLER_SOURCE = """def handler():
    logger.info("start")
    value = utils.slugify("A B", "_")
    return Response(200)

def helper(x):
    return x

LIMIT = 10
"""


def line_of(text: str, needle: str) -> int:
    """0-based index of the first line containing ``needle``."""
    lines: List[str] = text.split("\n")
    for i, line in enumerate(lines):
        if needle in line:
            return i
    raise AssertionError(f"{needle!r} not found")


class FakeClock:
    """Millisecond clock advanced manually by tests."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms

