# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Library module resolution.

Maps dotted paths (``pkg.module.member``) onto the library tree under the
libs root. Two file extensions identify modules: the primary ``.py`` and
the dialect ``.apy``; a directory holding neither is a package.

Disambiguation Rule:
    When a dotted expression mixes module path and member path, prefixes
    are tried from longest to shortest and the first one that exists on
    disk becomes the module. A module is always preferred over treating
    more of the path as attribute access.
"""

import logging
import os
import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from apy_intel.filesystem import FileSystem
from apy_intel.models import LocationKind, ModuleChild, ResolvedLibTarget, ResolvedLocation

logger = logging.getLogger(__name__)

DEFAULT_MODULE_EXTENSIONS: Tuple[str, str] = (".py", ".apy")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_DOTTED_CHAIN = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*){1,10})\b")


def is_valid_identifier(name: str) -> bool:
    return _IDENTIFIER.match(name) is not None


def split_dotted(dotted: str) -> List[str]:
    """Split on '.' and drop empty segments."""
    return [part for part in dotted.split(".") if part]


class LibraryResolver:
    """Resolves dotted paths against a library directory tree.

    Args:
        filesystem: File-system capability used for every lookup.
        libs_root: Root directory of the library tree.
        extensions: Recognized module extensions, primary first.
    """

    def __init__(
        self,
        filesystem: FileSystem,
        libs_root: str,
        extensions: Sequence[str] = DEFAULT_MODULE_EXTENSIONS,
    ):
        self.filesystem = filesystem
        self.libs_root = libs_root
        self.extensions = tuple(extensions)

    def module_name_for(self, filename: str) -> Optional[str]:
        """Strip a recognized module extension, or None if it has none."""
        lower = filename.lower()
        for ext in self.extensions:
            if lower.endswith(ext):
                return filename[: -len(ext)]
        return None

    def _is_directory(self, path: str) -> bool:
        return self.filesystem.list_directory(path) is not None

    def resolve_module_or_directory(self, parts: Sequence[str]) -> Optional[ResolvedLocation]:
        """Resolve a module path to a package directory or a module file.

        The full path is tried as a directory first; otherwise the last part
        is a file stem looked up with each extension in order.

        Returns:
            ResolvedLocation, or None if the libs root or target is missing.
        """
        if not self._is_directory(self.libs_root):
            return None

        directory = os.path.join(self.libs_root, *parts)
        if parts and self._is_directory(directory):
            return ResolvedLocation(kind=LocationKind.DIRECTORY, path=directory)

        if not parts:
            return ResolvedLocation(kind=LocationKind.DIRECTORY, path=self.libs_root)

        parent = os.path.join(self.libs_root, *parts[:-1])
        for ext in self.extensions:
            candidate = os.path.join(parent, f"{parts[-1]}{ext}")
            if self.filesystem.exists(candidate) and not self._is_directory(candidate):
                return ResolvedLocation(kind=LocationKind.MODULE, path=candidate, ext=ext)

        return None

    def resolve_dotted_path(self, dotted: str) -> Optional[ResolvedLibTarget]:
        """Resolve ``a.b.c`` to a module and optional member.

        Tries module-path prefixes from longest to shortest. The remainder
        becomes the member path:
        - empty: module only
        - one part: module.member
        - two or more parts: module.Class.method (extra parts ignored)

        Returns:
            ResolvedLibTarget, or None if nothing resolves or the longest
            existing prefix is a package directory.
        """
        parts = split_dotted(dotted)
        if not parts:
            return None

        for k in range(len(parts), 0, -1):
            head = parts[:k]
            tail = parts[k:]

            resolved = self.resolve_module_or_directory(head)
            if resolved is None:
                continue
            if resolved.is_directory:
                logger.debug(f"Dotted path {dotted} resolves to package {resolved.path}")
                return None

            if not tail:
                return ResolvedLibTarget(module_path=resolved.path)
            if len(tail) >= 2:
                return ResolvedLibTarget(
                    module_path=resolved.path, member_owner_class=tail[0], member=tail[1]
                )
            return ResolvedLibTarget(module_path=resolved.path, member=tail[0])

        return None

    def module_exists(self, dotted_module: str) -> bool:
        """Whether a dotted module exists as a module file or a directory."""
        parts = split_dotted(dotted_module)
        if not parts:
            return False

        parent = os.path.join(self.libs_root, *parts[:-1])
        for ext in self.extensions:
            if self.filesystem.exists(os.path.join(parent, f"{parts[-1]}{ext}")):
                return True
        return self.filesystem.exists(os.path.join(self.libs_root, *parts))

    def list_directory_children(self, directory: str) -> List[ModuleChild]:
        """List importable packages and modules inside a library directory.

        Skips ``__pycache__``, private names and non-identifiers.

        Returns:
            Children sorted by name; empty if the directory is missing.
        """
        entries = self.filesystem.list_directory(directory)
        if entries is None:
            return []

        children: List[ModuleChild] = []
        for entry in entries:
            if entry.name == "__pycache__" or entry.name.startswith("_"):
                continue

            if entry.is_directory:
                if is_valid_identifier(entry.name):
                    children.append(ModuleChild(entry.name, ModuleChild.PACKAGE))
                continue

            module_name = self.module_name_for(entry.name)
            if module_name is None:
                continue
            if not is_valid_identifier(module_name) or module_name.startswith("_"):
                continue
            children.append(ModuleChild(module_name, ModuleChild.MODULE))

        children.sort(key=lambda child: child.name)
        return children

    def compute_deep_imports(self, text: str, top_level_imports: Iterable[str]) -> List[str]:
        """Find the dotted library modules a document references.

        Every dotted chain rooted at a top-level import is reduced to the
        longest prefix (of at least two parts) that exists as a module.

        Returns:
            Sorted, de-duplicated dotted module names.
        """
        if not self._is_directory(self.libs_root):
            return []

        top_level: Set[str] = set(top_level_imports)
        results: Set[str] = set()

        for match in _DOTTED_CHAIN.finditer(text):
            parts = match.group(1).split(".")
            if len(parts) < 2 or parts[0] not in top_level:
                continue

            chosen: Optional[str] = None
            for k in range(len(parts), 1, -1):
                candidate = ".".join(parts[:k])
                if self.module_exists(candidate):
                    chosen = candidate
                    break

            if chosen is None and len(parts) >= 3:
                candidate = ".".join(parts[:-1])
                if self.module_exists(candidate):
                    chosen = candidate

            if chosen is not None:
                results.add(chosen)

        return sorted(results)


def resolve_table_yaml(filesystem: FileSystem, tables_root: str, table_name: str) -> Optional[str]:
    """Path of ``<tables_root>/<table_name>.yaml`` if it exists."""
    candidate = os.path.join(tables_root, f"{table_name}.yaml")
    if filesystem.exists(candidate):
        return candidate
    return None


def resolve_dotted_path(
    filesystem: FileSystem,
    libs_root: str,
    dotted: str,
    extensions: Sequence[str] = DEFAULT_MODULE_EXTENSIONS,
) -> Optional[ResolvedLibTarget]:
    """Functional form of LibraryResolver.resolve_dotted_path."""
    return LibraryResolver(filesystem, libs_root, extensions).resolve_dotted_path(dotted)
