# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File-system capabilities consumed by the resolver and caches.

The core depends on two fallible operations, read a file and list a
directory, that signal absence by returning None instead of raising.
FileSystem is the abstract interface; LocalFileSystem implements it over
the local disk with the same reading rules as the rest of the package:
- UTF-8 first, latin-1 fallback for non-UTF-8 files
- File size limit to prevent memory exhaustion
- Missing files are "absent", not errors
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from apy_intel.models import DirectoryEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB


class FileSystem(ABC):
    """Abstract file-system capability.

    Implementations MUST NOT raise for missing or unreadable paths.
    """

    @abstractmethod
    def read_file(self, path: str) -> Optional[str]:
        """Return the full text of ``path``, or None if absent/unreadable."""
        pass

    @abstractmethod
    def list_directory(self, path: str) -> Optional[List[DirectoryEntry]]:
        """Return the children of ``path``, or None if it is not a directory."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether ``path`` exists (file or directory)."""
        pass


class LocalFileSystem(FileSystem):
    """FileSystem backed by the local disk."""

    def __init__(self, max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> None:
        self.max_file_size_bytes = max_file_size_bytes

    def read_file(self, path: str) -> Optional[str]:
        """Read a file with UTF-8/latin-1 fallback and a size limit.

        Args:
            path: Path to the file.

        Returns:
            File contents, or None if the file is missing, too large or
            unreadable.
        """
        try:
            file_path = Path(path)
            if not file_path.is_file():
                logger.debug(f"File not found: {path}")
                return None

            file_size = file_path.stat().st_size
            if file_size > self.max_file_size_bytes:
                logger.warning(
                    f"Skipping {path}: {file_size} bytes exceeds limit "
                    f"({self.max_file_size_bytes})"
                )
                return None

            try:
                return file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.warning(f"File {path} is not UTF-8, using latin-1 fallback encoding")
                return file_path.read_text(encoding="latin-1")

        except FileNotFoundError:
            logger.debug(f"File not found: {path}")
            return None
        except PermissionError:
            logger.warning(f"Permission denied reading file: {path}")
            return None
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def list_directory(self, path: str) -> Optional[List[DirectoryEntry]]:
        """List a directory.

        Returns:
            DirectoryEntry list in file-system order, or None if ``path`` is
            missing or not a directory.
        """
        try:
            with os.scandir(path) as it:
                return [
                    DirectoryEntry(name=entry.name, is_directory=entry.is_dir()) for entry in it
                ]
        except (FileNotFoundError, NotADirectoryError):
            logger.debug(f"Directory not found: {path}")
            return None
        except OSError as e:
            logger.warning(f"Failed to list directory {path}: {e}")
            return None

    def exists(self, path: str) -> bool:
        return os.path.exists(path)
