# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Top-level library import discovery.

The names directly under the libs root are the modules an APY document may
reference without an import statement. Listing the directory on every
keystroke is wasteful, so results go through an ImportListCache keyed by
workspace.
"""

import logging
from typing import List

from apy_intel.cache import ImportListCache
from apy_intel.resolver import LibraryResolver

logger = logging.getLogger(__name__)


class LibraryImports:
    """Discovers and caches the top-level importable library names.

    Args:
        resolver: Resolver bound to the workspace's libs root.
        cache: Import list cache shared with the owning service.
    """

    def __init__(self, resolver: LibraryResolver, cache: ImportListCache):
        self.resolver = resolver
        self.cache = cache

    def get_top_level_imports(self, workspace_key: str) -> List[str]:
        """Return sorted top-level module and package names under the libs root.

        A missing libs directory yields (and caches) an empty list.
        """
        return self.cache.get(workspace_key, self._scan)

    def _scan(self) -> List[str]:
        children = self.resolver.list_directory_children(self.resolver.libs_root)
        names = [child.name for child in children]
        logger.debug(f"Discovered {len(names)} top-level library imports in {self.resolver.libs_root}")
        return names
