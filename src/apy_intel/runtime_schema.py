# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Runtime object model lookup.

APY handlers run with a set of injected globals (``reve``, ``logger``,
``exceptions``, ``Response``, the ``Http4xx``/``Http500`` classes and the
JWT token classes) that no library module defines. Their members are
described by the bundled ``data/runtime_schema.yml``, loaded once with
PyYAML.

Two views are derived from the schema:
- completions: completion key (``"reve.request"``, ``"logger"``) to the
  members listed after typing ``<key>.``
- signatures: display signature for a dotted expression, used by hover
  and signature help
"""

import logging
import re
from dataclasses import dataclass
from importlib import resources
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

SCHEMA_RESOURCE = "runtime_schema.yml"

# Greedy up to the last ")" so defaults such as ``of: tuple = ()`` stay inside the parameters
_METHOD_DETAIL = re.compile(r"def\s+(\w+)\s*\((?:self\s*,?\s*)?(.*)\)\s*(->\s*[^:]+)?")
_PROPERTY_DETAIL = re.compile(r"^\w+\s*:\s*(.+)$")


class MemberKind:
    """Kinds of runtime class members."""

    METHOD = "method"
    PROPERTY = "property"
    CLASS = "class"


@dataclass(frozen=True)
class RuntimeMember:
    """One member of a runtime class, as declared in the schema."""

    name: str
    kind: str
    signature: str


@dataclass(frozen=True)
class RuntimeClass:
    name: str
    completion_key: str
    members: Tuple[RuntimeMember, ...] = ()
    nested_classes: Tuple[str, ...] = ()
    init_params: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RuntimeCompletion:
    """A completion entry for a runtime key."""

    label: str
    kind: str
    detail: Optional[str] = None


def extract_completion_detail(signature: str, kind: str) -> Optional[str]:
    """Short display form of a member signature.

    ``def name(self, a: int) -> str: ...`` becomes ``name(a: int) -> str``
    and a property ``name: T`` becomes ``T``.
    """
    if kind == MemberKind.METHOD:
        match = _METHOD_DETAIL.search(signature)
        if match is None:
            return None
        name, params, returns = match.group(1), match.group(2), match.group(3)
        detail = f"{name}({params.strip()})"
        if returns:
            detail += f" {returns.strip()}"
        return detail

    if kind == MemberKind.PROPERTY:
        match = _PROPERTY_DETAIL.match(signature.strip())
        return match.group(1).strip() if match else None

    return None


def strip_method_signature(signature: str) -> str:
    """Turn a schema method stub into a call signature without ``self``."""
    text = signature.strip()
    if text.startswith("def "):
        text = text[len("def ") :]
    text = re.sub(r"\(self\s*,\s*", "(", text)
    text = re.sub(r"\(self\s*\)", "()", text)
    text = re.sub(r"\s*:\s*\.\.\.\s*$", "", text)
    return text


class RuntimeSchema:
    """Immutable runtime schema with completion and signature lookups.

    Usage:
        schema = RuntimeSchema.load()
        schema.completions_for("reve.request")
        schema.get_signature("logger.info")
    """

    def __init__(self, roots: List[str], classes: List[RuntimeClass]):
        self.roots: Tuple[str, ...] = tuple(roots)
        self.classes: Dict[str, RuntimeClass] = {cls.name: cls for cls in classes}
        self.completions: Mapping[str, List[RuntimeCompletion]] = self._build_completions(classes)
        self._class_by_key: Dict[str, RuntimeClass] = {cls.completion_key: cls for cls in classes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeSchema":
        """Build a schema from the parsed YAML document.

        Raises:
            ValueError: If the document is not shaped like a runtime schema.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Runtime schema must be a mapping, got {type(data)}")

        classes: List[RuntimeClass] = []
        for raw in data.get("classes") or []:
            members = tuple(
                RuntimeMember(name=m["name"], kind=m["kind"], signature=m["signature"])
                for m in raw.get("members") or []
            )
            nested = tuple(n["name"] for n in raw.get("nested_classes") or [])
            classes.append(
                RuntimeClass(
                    name=raw["name"],
                    completion_key=raw.get("completion_key", raw["name"]),
                    members=members,
                    nested_classes=nested,
                    init_params=tuple(raw.get("init_params") or []),
                )
            )

        return cls(roots=list(data.get("roots") or []), classes=classes)

    @classmethod
    def load(cls) -> "RuntimeSchema":
        """Load the schema bundled with the package."""
        resource = resources.files("apy_intel").joinpath("data").joinpath(SCHEMA_RESOURCE)
        text = resource.read_text(encoding="utf-8")
        schema = cls.from_dict(yaml.safe_load(text))
        logger.debug(
            f"Loaded runtime schema: {len(schema.classes)} classes, "
            f"{len(schema.completions)} completion keys"
        )
        return schema

    @staticmethod
    def _build_completions(classes: List[RuntimeClass]) -> Dict[str, List[RuntimeCompletion]]:
        completions: Dict[str, List[RuntimeCompletion]] = {}
        for cls in classes:
            items = [
                RuntimeCompletion(
                    label=member.name,
                    kind=member.kind,
                    detail=extract_completion_detail(member.signature, member.kind),
                )
                for member in cls.members
            ]
            items.extend(
                RuntimeCompletion(label=nested, kind=MemberKind.CLASS, detail=f"class {nested}")
                for nested in cls.nested_classes
            )
            if items:
                completions[cls.completion_key] = items
        return completions

    def is_runtime_root(self, name: str) -> bool:
        return name in self.roots

    def completions_for(self, key: str) -> Optional[List[RuntimeCompletion]]:
        """Members listed after ``<key>.``, or None if ``key`` is not a runtime key."""
        return self.completions.get(key)

    def get_signature(self, dotted: str) -> Optional[str]:
        """Display signature for a runtime dotted expression.

        Lookup order:
        1. ``Response`` and the other constructible roots: ``Name(params)``
        2. ``exceptions.X`` for a nested exception class: ``X()``
        3. completion detail of the last part, trying the longest key first
        4. the full method stub with ``self`` removed

        Returns:
            The signature, or None for unknown expressions.
        """
        parts = [part for part in dotted.split(".") if part]
        if not parts:
            return None

        if len(parts) == 1:
            cls = self.classes.get(parts[0])
            if cls is not None and cls.init_params:
                return f"{cls.name}({', '.join(cls.init_params)})"
            return None

        if len(parts) == 2 and parts[0] == "exceptions":
            exceptions = self.classes.get("exceptions")
            if exceptions is not None and parts[1] in exceptions.nested_classes:
                return f"{parts[1]}()"

        member = parts[-1]
        for i in range(len(parts) - 1, 0, -1):
            key = ".".join(parts[:i])
            for item in self.completions.get(key) or []:
                if item.label == member and item.detail:
                    return item.detail

        for i in range(len(parts) - 1, 0, -1):
            cls = self._class_by_key.get(".".join(parts[:i]))
            if cls is None:
                continue
            for runtime_member in cls.members:
                if runtime_member.name == member and runtime_member.kind == MemberKind.METHOD:
                    return strip_method_signature(runtime_member.signature)

        return None


_default_schema: Optional[RuntimeSchema] = None


def get_runtime_schema() -> RuntimeSchema:
    """Process-wide bundled schema, loaded on first use."""
    global _default_schema
    if _default_schema is None:
        _default_schema = RuntimeSchema.load()
    return _default_schema


def get_runtime_signature(dotted: str) -> Optional[str]:
    return get_runtime_schema().get_signature(dotted)
