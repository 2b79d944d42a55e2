# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""LanguageService - editor feature logic for APY documents.

This module is the coordinator between editor-facing surfaces (the MCP
server, tests) and the text-level machinery. It owns the caches, the
library resolver and the optional library watcher.

Request Workflow:
1. Extract the cursor context from the document line (dotted chain,
   enclosing call, table reference)
2. Look the target up in the runtime schema or resolve it against the
   library tree
3. Load the target module's index through the TTL cache
4. Map the parsed symbols onto the result type

Every request accepts an optional CancellationToken, checked between I/O
steps. A result computed for a document version that has since been
superseded (see update_document) is discarded.
"""

import logging
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import unquote, urlparse

from apy_intel.cache import ImportListCache, ModuleIndexCache
from apy_intel.config import Config
from apy_intel.file_watcher import LibraryWatcher
from apy_intel.filesystem import FileSystem, LocalFileSystem
from apy_intel.lib_imports import LibraryImports
from apy_intel.models import (
    LocationKind,
    ParsedModuleIndex,
    ParsedSymbol,
    ResolvedLibTarget,
    SymbolDescriptor,
    SymbolKind,
)
from apy_intel.parsing import (
    ModuleIndexer,
    active_parameter_index,
    extract_dotted_chain_before_dot,
    extract_param_labels_from_signature,
    find_definition_location,
    get_dotted_expression_at,
    get_table_name_at_position,
    locate_enclosing_call,
)
from apy_intel.parsing.module_indexer import split_lines
from apy_intel.resolver import LibraryResolver, resolve_table_yaml, split_dotted
from apy_intel.runtime_schema import RuntimeSchema, get_runtime_schema

logger = logging.getLogger(__name__)

T = TypeVar("T")

# reve.database["Table"].  ->  completion key "reve.database[]"
_TABLE_CHAIN_BEFORE_DOT = re.compile(
    r"([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\[[\"'][A-Za-z0-9_]*[\"']\]\.$"
)

# Definition lookup order for a single identifier
_SAME_FILE_KINDS = (SymbolKind.FUNCTION, SymbolKind.CLASS, SymbolKind.VARIABLE)


class CompletionKind:
    """Kinds of completion items."""

    MODULE = "module"
    PACKAGE = "package"
    FUNCTION = SymbolKind.FUNCTION
    CLASS = SymbolKind.CLASS
    VARIABLE = SymbolKind.VARIABLE
    METHOD = SymbolKind.METHOD
    PROPERTY = "property"


@dataclass(frozen=True)
class Position:
    """0-based line and character offset."""

    line: int
    character: int


@dataclass
class Document:
    """An open document as seen by one request."""

    uri: str
    text: str
    version: int = 0

    @property
    def path(self) -> str:
        """File-system path of the document (``file://`` URIs are decoded)."""
        if self.uri.startswith("file://"):
            return unquote(urlparse(self.uri).path)
        return self.uri

    def line_at(self, line: int) -> str:
        lines = split_lines(self.text)
        if 0 <= line < len(lines):
            return lines[line]
        return ""


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a request."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class RequestCancelled(Exception):
    """Raised internally when a request's token is cancelled mid-flight."""

    pass


@dataclass(frozen=True)
class CompletionItem:
    label: str
    kind: str
    detail: Optional[str] = None
    sort_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"label": self.label, "kind": self.kind}
        if self.detail is not None:
            result["detail"] = self.detail
        if self.sort_text is not None:
            result["sort_text"] = self.sort_text
        return result


@dataclass(frozen=True)
class Location:
    """A 0-based position inside a file."""

    path: str
    line: int
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "line": self.line, "column": self.column}


@dataclass(frozen=True)
class Hover:
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {"signature": self.signature}


@dataclass(frozen=True)
class SignatureHelp:
    """Signature of the enclosing call with the parameter under the cursor."""

    signature: str
    parameters: List[str] = field(default_factory=list)
    active_parameter: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "parameters": list(self.parameters),
            "active_parameter": self.active_parameter,
        }


class LanguageService:
    """Completion, definition, hover and signature help for APY documents.

    Owned Components:
    - LibraryResolver: dotted path to module/package resolution
    - ModuleIndexCache: parsed module indexes (TTL 3000ms by default)
    - ImportListCache: top-level library imports (TTL 5000ms by default)
    - RuntimeSchema: members of the injected runtime objects
    - LibraryWatcher: optional, invalidates caches on library edits

    Supports dependency injection for testing; every collaborator has a
    production default built from the Config.
    """

    def __init__(
        self,
        config: Config,
        filesystem: Optional[FileSystem] = None,
        module_cache: Optional[ModuleIndexCache] = None,
        import_cache: Optional[ImportListCache] = None,
        runtime_schema: Optional[RuntimeSchema] = None,
        library_watcher: Optional[LibraryWatcher] = None,
    ):
        """Initialize the service with its dependencies.

        Args:
            config: Configuration object
            filesystem: File-system capability (default: LocalFileSystem)
            module_cache: Module index cache (default: TTL from config)
            import_cache: Import list cache (default: TTL from config)
            runtime_schema: Runtime object schema (default: bundled schema)
            library_watcher: Watcher for the libs root (default: created on
                start_library_watcher)
        """
        self.config = config
        self.filesystem = (
            filesystem
            if filesystem is not None
            else LocalFileSystem(max_file_size_bytes=config.max_file_size_bytes)
        )
        self.resolver = LibraryResolver(
            self.filesystem, str(config.libs_root), config.module_extensions
        )
        self.module_cache = (
            module_cache
            if module_cache is not None
            else ModuleIndexCache(ttl_ms=config.module_index_ttl_ms)
        )
        self.import_cache = (
            import_cache
            if import_cache is not None
            else ImportListCache(ttl_ms=config.import_list_ttl_ms)
        )
        self.library_imports = LibraryImports(self.resolver, self.import_cache)
        self.runtime_schema = runtime_schema if runtime_schema is not None else get_runtime_schema()

        self._indexer = ModuleIndexer(
            body_indent=config.class_body_indent, max_def_lines=config.max_def_lines
        )
        self._workspace_key = str(config.workspace_root)

        self._document_versions: Dict[str, int] = {}
        self._versions_lock = threading.Lock()

        self._library_watcher = library_watcher

        logger.info(
            f"LanguageService initialized with libs_root={config.libs_root}, "
            f"tables_root={config.tables_root}"
        )

    # ------------------------------------------------------------------
    # Document versions and cancellation
    # ------------------------------------------------------------------

    def update_document(self, uri: str, version: int) -> None:
        """Record the latest known version of a document.

        An older version than the one recorded is ignored.
        """
        with self._versions_lock:
            if version >= self._document_versions.get(uri, version):
                self._document_versions[uri] = version

    def close_document(self, uri: str) -> None:
        with self._versions_lock:
            self._document_versions.pop(uri, None)

    def is_current(self, document: Document) -> bool:
        """Whether ``document`` is the latest version (untracked documents are)."""
        with self._versions_lock:
            latest = self._document_versions.get(document.uri)
        return latest is None or latest == document.version

    @staticmethod
    def _check_cancelled(token: Optional[CancellationToken]) -> None:
        if token is not None and token.is_cancelled:
            raise RequestCancelled()

    def _run(
        self,
        operation: str,
        document: Document,
        token: Optional[CancellationToken],
        compute: Callable[[], T],
        empty: T,
    ) -> T:
        try:
            self._check_cancelled(token)
            result = compute()
        except RequestCancelled:
            logger.debug(f"{operation} cancelled for {document.uri}")
            return empty

        if not self.is_current(document):
            logger.debug(
                f"Discarding {operation} result for stale version "
                f"{document.version} of {document.uri}"
            )
            return empty
        return result

    # ------------------------------------------------------------------
    # Library access
    # ------------------------------------------------------------------

    @staticmethod
    def _cache_key(path: str) -> str:
        return os.path.normcase(os.path.realpath(path))

    def _build_index(
        self, path: str, token: Optional[CancellationToken] = None
    ) -> ParsedModuleIndex:
        text = self.filesystem.read_file(path)
        # Raising from the loader keeps a cancelled build out of the cache
        self._check_cancelled(token)
        if text is None:
            logger.debug(f"Module not readable, using empty index: {path}")
            return ParsedModuleIndex.empty()
        return self._indexer.build(text)

    def load_module_index(
        self, path: str, token: Optional[CancellationToken] = None
    ) -> ParsedModuleIndex:
        """Index of the module at ``path``, served from the TTL cache."""
        self._check_cancelled(token)
        return self.module_cache.get(self._cache_key(path), lambda: self._build_index(path, token))

    def get_top_level_imports(self) -> List[str]:
        return self.library_imports.get_top_level_imports(self._workspace_key)

    def compute_deep_imports(self, text: str) -> List[str]:
        """Dotted library modules referenced by ``text``."""
        return self.resolver.compute_deep_imports(text, self.get_top_level_imports())

    def _resolve_library_target(
        self, dotted: str, token: Optional[CancellationToken]
    ) -> Optional[ResolvedLibTarget]:
        parts = split_dotted(dotted)
        if not parts:
            return None
        self._check_cancelled(token)
        if parts[0] not in self.get_top_level_imports():
            return None
        self._check_cancelled(token)
        return self.resolver.resolve_dotted_path(dotted)

    def _library_symbol(
        self, target: ResolvedLibTarget, token: Optional[CancellationToken]
    ) -> Optional[ParsedSymbol]:
        if target.member is None:
            return None
        index = self.load_module_index(target.module_path, token)
        if target.member_owner_class is not None:
            return index.get_method(target.member_owner_class, target.member)
        return index.top_level.get(target.member)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete(
        self,
        document: Document,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> List[CompletionItem]:
        """Completion items for the cursor position.

        - no dotted chain before the cursor: top-level library imports
        - runtime key (``reve.request.``): runtime members, sorted first
        - chain rooted outside the library imports: nothing
        - package directory: its child packages and modules
        - module: its top-level symbols
        - ``module.Class.``: the class's methods
        """
        return self._run(
            "completion",
            document,
            token,
            lambda: self._complete(document, position, token),
            [],
        )

    def _complete(
        self, document: Document, position: Position, token: Optional[CancellationToken]
    ) -> List[CompletionItem]:
        prefix = document.line_at(position.line)[: max(0, position.character)]

        table_match = _TABLE_CHAIN_BEFORE_DOT.search(prefix)
        chain = (
            f"{table_match.group(1)}[]"
            if table_match
            else extract_dotted_chain_before_dot(prefix)
        )

        if chain is None:
            return [
                CompletionItem(label=name, kind=CompletionKind.MODULE)
                for name in self.get_top_level_imports()
            ]

        runtime_items = self.runtime_schema.completions_for(chain)
        if runtime_items is not None:
            return [
                CompletionItem(
                    label=item.label,
                    kind=item.kind,
                    detail=item.detail,
                    sort_text=f"0_{item.label}",
                )
                for item in runtime_items
            ]

        parts = split_dotted(chain)
        if not parts or parts[0] not in self.get_top_level_imports():
            return []

        self._check_cancelled(token)
        resolved = self.resolver.resolve_module_or_directory(parts)
        if resolved is not None and resolved.kind == LocationKind.DIRECTORY:
            self._check_cancelled(token)
            return [
                CompletionItem(label=child.name, kind=child.kind)
                for child in self.resolver.list_directory_children(resolved.path)
            ]

        if resolved is not None and resolved.kind == LocationKind.MODULE:
            index = self.load_module_index(resolved.path, token)
            return [
                CompletionItem(label=name, kind=symbol.kind, detail=symbol.signature)
                for name, symbol in sorted(index.top_level.items())
            ]

        target = self.resolver.resolve_dotted_path(chain)
        if target is None or target.member is None or target.member_owner_class is not None:
            return []
        index = self.load_module_index(target.module_path, token)
        methods = index.methods_by_class.get(target.member) or {}
        return [
            CompletionItem(label=name, kind=CompletionKind.METHOD, detail=symbol.signature)
            for name, symbol in sorted(methods.items())
        ]

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def definition(
        self,
        document: Document,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[Location]:
        """Declaration location of the symbol under the cursor.

        Lookup order: table schema YAML, library dotted path, same-file
        function/class/variable. A table with no schema file falls through
        to the symbol lookups.
        """
        return self._run(
            "definition",
            document,
            token,
            lambda: self._definition(document, position, token),
            None,
        )

    def _definition(
        self, document: Document, position: Position, token: Optional[CancellationToken]
    ) -> Optional[Location]:
        line = document.line_at(position.line)

        table_name = get_table_name_at_position(line, position.character)
        if table_name is not None:
            self._check_cancelled(token)
            path = resolve_table_yaml(self.filesystem, str(self.config.tables_root), table_name)
            if path is not None:
                return Location(path=path, line=0)
            logger.debug(f"No schema file for table {table_name}, trying symbol lookup")

        expression = get_dotted_expression_at(line, position.character)
        if expression is None:
            return None

        target = self._resolve_library_target(expression, token)
        if target is not None:
            return self._library_location(target, token)

        parts = split_dotted(expression)
        if len(parts) != 1:
            return None
        for kind in _SAME_FILE_KINDS:
            found = find_definition_location(document.text, SymbolDescriptor(kind, parts[0]))
            if found is not None:
                return Location(path=document.path, line=found.line, column=found.column)
        return None

    def _library_location(
        self, target: ResolvedLibTarget, token: Optional[CancellationToken]
    ) -> Location:
        if target.is_module_only:
            return Location(path=target.module_path, line=0)

        self._check_cancelled(token)
        text = self.filesystem.read_file(target.module_path)
        if text is None or target.member is None:
            return Location(path=target.module_path, line=0)

        if target.member_owner_class is not None:
            descriptors = [
                SymbolDescriptor(SymbolKind.METHOD, target.member, target.member_owner_class)
            ]
        else:
            symbol = self.load_module_index(target.module_path, token).top_level.get(target.member)
            kinds = (symbol.kind,) if symbol is not None else _SAME_FILE_KINDS
            descriptors = [SymbolDescriptor(kind, target.member) for kind in kinds]

        for descriptor in descriptors:
            found = find_definition_location(text, descriptor)
            if found is not None:
                return Location(path=target.module_path, line=found.line, column=found.column)
        return Location(path=target.module_path, line=0)

    # ------------------------------------------------------------------
    # Hover and signature help
    # ------------------------------------------------------------------

    def _signature_for(
        self,
        dotted: str,
        token: Optional[CancellationToken],
        functions_only: bool = False,
    ) -> Optional[str]:
        parts = split_dotted(dotted)
        if not parts:
            return None

        if self.runtime_schema.is_runtime_root(parts[0]):
            return self.runtime_schema.get_signature(dotted)

        target = self._resolve_library_target(dotted, token)
        if target is None or target.is_module_only:
            return None

        symbol = self._library_symbol(target, token)
        if symbol is None:
            return None
        if functions_only and symbol.kind not in (SymbolKind.FUNCTION, SymbolKind.METHOD):
            return None
        return symbol.signature

    def hover(
        self,
        document: Document,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[Hover]:
        """Signature of the runtime member or library symbol under the cursor."""

        def compute() -> Optional[Hover]:
            line = document.line_at(position.line)
            expression = get_dotted_expression_at(line, position.character)
            if expression is None:
                return None
            signature = self._signature_for(expression, token)
            return Hover(signature=signature) if signature else None

        return self._run("hover", document, token, compute, None)

    def signature_help(
        self,
        document: Document,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[SignatureHelp]:
        """Signature and active parameter of the innermost open call."""

        def compute() -> Optional[SignatureHelp]:
            prefix = document.line_at(position.line)[: max(0, position.character)]
            call = locate_enclosing_call(prefix)
            if call is None:
                return None

            signature = self._signature_for(call.callee_expression, token, functions_only=True)
            if not signature:
                return None

            parameters = extract_param_labels_from_signature(signature)
            return SignatureHelp(
                signature=signature,
                parameters=parameters,
                active_parameter=active_parameter_index(call.args_text, len(parameters)),
            )

        return self._run("signature help", document, token, compute, None)

    # ------------------------------------------------------------------
    # Cache invalidation and lifecycle
    # ------------------------------------------------------------------

    def on_library_changed(self, path: Optional[str] = None) -> None:
        """Drop cached library data after a change under the libs root.

        Args:
            path: Changed module file. If None, every cached index is dropped.
        """
        self.import_cache.invalidate()
        if path:
            self.module_cache.invalidate(self._cache_key(path))
        else:
            self.module_cache.invalidate()
        logger.debug(f"Library caches invalidated ({path or 'all modules'})")

    def get_cache_statistics(self) -> Dict[str, Any]:
        return {
            "module_index": self.module_cache.get_statistics().to_dict(),
            "import_list": self.import_cache.get_statistics().to_dict(),
        }

    def read_document(
        self, path: str, text: Optional[str] = None, version: Optional[int] = None
    ) -> Optional[Document]:
        """Build a Document from explicit text or from disk.

        The document gets ``version`` when given, else the tracked version of
        ``path`` (0 if untracked).

        Returns:
            Document, or None if ``text`` is omitted and the file is unreadable.
        """
        if text is None:
            text = self.filesystem.read_file(path)
            if text is None:
                return None
        if version is None:
            with self._versions_lock:
                version = self._document_versions.get(path, 0)
        return Document(uri=path, text=text, version=version)

    def start_library_watcher(self) -> None:
        """Start watching the libs root, if enabled and present."""
        if not self.config.watch_libraries:
            logger.info("Library watching disabled by configuration")
            return

        if self._library_watcher is None:
            libs_root = Path(self.config.libs_root)
            if not libs_root.is_dir():
                logger.info(f"Libs root {libs_root} does not exist, not watching")
                return
            self._library_watcher = LibraryWatcher(
                str(libs_root), extensions=self.config.module_extensions
            )

        self._library_watcher.register_invalidation_callback(self.on_library_changed)
        if not self._library_watcher.is_running():
            self._library_watcher.start()

    def stop_library_watcher(self) -> None:
        if self._library_watcher is not None and self._library_watcher.is_running():
            self._library_watcher.stop()

    def shutdown(self) -> None:
        """Stop the watcher and drop all cached data."""
        logger.info("LanguageService shutting down...")
        self.stop_library_watcher()
        self.import_cache.invalidate()
        self.module_cache.invalidate()
        logger.info("LanguageService shutdown complete")
