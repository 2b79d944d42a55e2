# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Text-level parsing for APY modules.

This package recovers structure from raw source text without a full parser:
- brackets: Bracket-depth tracking and parameter splitting
- signatures: Multi-line definition collection and signature parsing
- module_indexer: Module-wide index of top-level symbols and methods
- call_site: Cursor-context extraction (enclosing call, dotted chains)
- symbol_locator: Declaration-line lookup for definition jumps

All functions here are pure and synchronous. Malformed input degrades to
empty or None results instead of raising.
"""

from apy_intel.parsing.brackets import (
    BracketDepth,
    active_parameter_index,
    count_top_level_commas,
    extract_param_labels_from_signature,
    split_top_level,
)
from apy_intel.parsing.call_site import (
    extract_dotted_chain_before_dot,
    get_dotted_expression_at,
    get_table_name_at_position,
    locate_enclosing_call,
)
from apy_intel.parsing.module_indexer import ModuleIndexer, build_module_index
from apy_intel.parsing.signatures import (
    CollectedDefinition,
    FunctionSignature,
    collect_multiline_def,
    parse_function_def,
)
from apy_intel.parsing.symbol_locator import find_definition_location

__all__ = [
    "BracketDepth",
    "CollectedDefinition",
    "FunctionSignature",
    "ModuleIndexer",
    "active_parameter_index",
    "build_module_index",
    "collect_multiline_def",
    "count_top_level_commas",
    "extract_dotted_chain_before_dot",
    "extract_param_labels_from_signature",
    "find_definition_location",
    "get_dotted_expression_at",
    "get_table_name_at_position",
    "locate_enclosing_call",
    "parse_function_def",
    "split_top_level",
]
