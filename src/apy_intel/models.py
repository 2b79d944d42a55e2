# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for APY language intelligence.

This module defines the data structures shared by the indexer, resolver,
caches and language service:
- SymbolKind: Enum-like class for symbol kinds
- ParsedSymbol: Tagged symbol variant (function, class, variable, method)
- ParsedModuleIndex: Structural index of one module's text
- SymbolDescriptor / DefinitionLocation: Definition-jump input and output
- CallSite: Enclosing call found by the call-site locator
- DirectoryEntry / ResolvedLocation / ResolvedLibTarget: Library resolution
- IndexCacheEntry / ImportListEntry / CacheStatistics: Cache bookkeeping

All models use JSON-compatible primitives for serialization.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class SymbolKind:
    """Kinds of symbols recovered from module text.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    FUNCTION = "function"  # def foo(): or async def foo():
    CLASS = "class"  # class Foo:
    VARIABLE = "variable"  # module-level assignment: foo = ...
    METHOD = "method"  # def foo(self): inside a class body

    ALL = (FUNCTION, CLASS, VARIABLE, METHOD)


@dataclass(frozen=True)
class ParsedSymbol:
    """A symbol recovered from module text.

    Tagged variant over SymbolKind. Every variant carries ``name`` and a
    human-readable ``signature``; only the ``method`` variant carries
    ``class_name``. Construction rejects any other combination, so consumers
    can rely on ``class_name is not None`` exactly when ``kind == METHOD``.
    """

    kind: str
    name: str
    signature: str
    class_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in SymbolKind.ALL:
            raise ValueError(f"Unknown symbol kind: {self.kind!r}")
        if self.kind == SymbolKind.METHOD and not self.class_name:
            raise ValueError(f"Method symbol {self.name!r} requires class_name")
        if self.kind != SymbolKind.METHOD and self.class_name is not None:
            raise ValueError(f"Only method symbols carry class_name, got kind {self.kind!r}")

    @classmethod
    def function(cls, name: str, signature: str) -> "ParsedSymbol":
        return cls(kind=SymbolKind.FUNCTION, name=name, signature=signature)

    @classmethod
    def klass(cls, name: str, signature: str) -> "ParsedSymbol":
        return cls(kind=SymbolKind.CLASS, name=name, signature=signature)

    @classmethod
    def variable(cls, name: str) -> "ParsedSymbol":
        return cls(kind=SymbolKind.VARIABLE, name=name, signature=f"{name} = ...")

    @classmethod
    def method(cls, class_name: str, name: str, signature: str) -> "ParsedSymbol":
        return cls(
            kind=SymbolKind.METHOD, name=name, signature=signature, class_name=class_name
        )

    @property
    def is_method(self) -> bool:
        return self.kind == SymbolKind.METHOD

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "kind": self.kind,
            "name": self.name,
            "signature": self.signature,
        }
        if self.class_name is not None:
            result["class_name"] = self.class_name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedSymbol":
        """Deserialize from JSON-compatible dict."""
        return cls(
            kind=data["kind"],
            name=data["name"],
            signature=data["signature"],
            class_name=data.get("class_name"),
        )


@dataclass(frozen=True)
class ParsedModuleIndex:
    """Structural index of a module's top-level and class-nested definitions.

    Built fresh from one file's text and never mutated afterwards; a re-parse
    produces a new index. The mappings are exposed as read-only views.
    """

    top_level: Mapping[str, ParsedSymbol] = field(default_factory=dict)
    methods_by_class: Mapping[str, Mapping[str, ParsedSymbol]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the mappings handed in by the indexer
        object.__setattr__(self, "top_level", MappingProxyType(dict(self.top_level)))
        object.__setattr__(
            self,
            "methods_by_class",
            MappingProxyType(
                {
                    class_name: MappingProxyType(dict(methods))
                    for class_name, methods in self.methods_by_class.items()
                }
            ),
        )

    @classmethod
    def empty(cls) -> "ParsedModuleIndex":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.top_level and not self.methods_by_class

    def get_method(self, class_name: str, method_name: str) -> Optional[ParsedSymbol]:
        """Look up a method symbol, or None if the class or method is unknown."""
        methods = self.methods_by_class.get(class_name)
        if methods is None:
            return None
        return methods.get(method_name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "top_level": {name: sym.to_dict() for name, sym in self.top_level.items()},
            "methods_by_class": {
                class_name: {name: sym.to_dict() for name, sym in methods.items()}
                for class_name, methods in self.methods_by_class.items()
            },
        }


@dataclass(frozen=True)
class SymbolDescriptor:
    """Input to the symbol locator: what to look for in a file."""

    kind: str
    name: str
    class_name: Optional[str] = None


@dataclass(frozen=True)
class DefinitionLocation:
    """A 0-based line/column position inside a file."""

    line: int
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class CallSite:
    """Innermost unclosed call found in a line prefix."""

    callee_expression: str  # e.g. "foo.bar"
    args_text: str  # text after the opening paren, verbatim


@dataclass(frozen=True)
class DirectoryEntry:
    """One child of a listed directory."""

    name: str
    is_directory: bool


@dataclass(frozen=True)
class ModuleChild:
    """An importable package or module under a library directory."""

    PACKAGE = "package"
    MODULE = "module"

    name: str
    kind: str  # PACKAGE or MODULE


class LocationKind:
    """Kinds of library resolution results."""

    DIRECTORY = "directory"
    MODULE = "module"


@dataclass(frozen=True)
class ResolvedLocation:
    """Result of resolving a dotted module path to the file system."""

    kind: str  # LocationKind value
    path: str
    ext: Optional[str] = None  # module extension, only for LocationKind.MODULE

    @property
    def is_directory(self) -> bool:
        return self.kind == LocationKind.DIRECTORY


@dataclass(frozen=True)
class ResolvedLibTarget:
    """Module (and optional member) a dotted expression resolves to.

    Constructed per request, never persisted.
    """

    module_path: str
    member: Optional[str] = None
    member_owner_class: Optional[str] = None

    @property
    def is_module_only(self) -> bool:
        return self.member is None and self.member_owner_class is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"module_path": self.module_path}
        if self.member is not None:
            result["member"] = self.member
        if self.member_owner_class is not None:
            result["member_owner_class"] = self.member_owner_class
        return result


@dataclass
class IndexCacheEntry:
    """Cached module index with the time it was built."""

    timestamp_ms: float
    index: ParsedModuleIndex


@dataclass
class ImportListEntry:
    """Cached list of top-level library imports for one workspace."""

    key: str
    imports: Tuple[str, ...]
    last_refresh_ms: float


@dataclass
class CacheStatistics:
    """Statistics for the index and import caches."""

    hits: int = 0
    misses: int = 0
    stale_refreshes: int = 0  # Number of reloads due to TTL expiry
    invalidations: int = 0
    current_entry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_refreshes": self.stale_refreshes,
            "invalidations": self.invalidations,
            "current_entry_count": self.current_entry_count,
        }
