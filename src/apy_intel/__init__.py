# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""APY language intelligence: completion, definition, hover and signature help."""

from .cache import ImportListCache, ModuleIndexCache
from .config import Config, ConfigurationError
from .filesystem import FileSystem, LocalFileSystem
from .lib_imports import LibraryImports
from .models import (
    ParsedModuleIndex,
    ParsedSymbol,
    ResolvedLibTarget,
    ResolvedLocation,
    SymbolDescriptor,
    SymbolKind,
)
from .parsing import (
    build_module_index,
    count_top_level_commas,
    extract_param_labels_from_signature,
    find_definition_location,
    locate_enclosing_call,
)
from .resolver import LibraryResolver, resolve_dotted_path
from .runtime_schema import RuntimeSchema, get_runtime_signature
from .service import (
    CancellationToken,
    CompletionItem,
    Document,
    Hover,
    LanguageService,
    Location,
    Position,
    SignatureHelp,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CompletionItem",
    "Config",
    "ConfigurationError",
    "Document",
    "FileSystem",
    "Hover",
    "ImportListCache",
    "LanguageService",
    "LibraryImports",
    "LibraryResolver",
    "LocalFileSystem",
    "Location",
    "ModuleIndexCache",
    "ParsedModuleIndex",
    "ParsedSymbol",
    "Position",
    "ResolvedLibTarget",
    "ResolvedLocation",
    "RuntimeSchema",
    "SignatureHelp",
    "SymbolDescriptor",
    "SymbolKind",
    "build_module_index",
    "count_top_level_commas",
    "extract_param_labels_from_signature",
    "find_definition_location",
    "get_runtime_signature",
    "locate_enclosing_call",
    "resolve_dotted_path",
]

# Conditional import for MCP server (requires Python 3.10+ and mcp package)
try:
    from .mcp_server import APYLanguageMCPServer

    __all__.append("APYLanguageMCPServer")
except ImportError:
    # MCP package not available
    pass
