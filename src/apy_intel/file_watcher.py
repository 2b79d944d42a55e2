# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Library tree watcher.

Monitors the libs root with watchdog and notifies invalidation callbacks
whenever a module file is created, modified, deleted or moved. The
language service registers a callback that drops the affected module
index and the top-level import list, so edits to a library show up on the
next request instead of after the cache TTL.

Unlike the module caches, the watcher never reads files: it only reports
paths.

Known Limitations:
- Directory creation/removal is reported only through the files it
  contains; an empty new package appears once the import list TTL expires.
- Symlinks are followed by watchdog.
"""

import fnmatch
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: (filepath: str) -> None
InvalidationCallback = Callable[[str], None]


class LibraryWatcher:
    """Watches a library tree and reports module changes.

    Thread Safety:
    - Callbacks run synchronously on the watchdog observer thread and must
      be thread-safe (the module caches are).

    Usage:
        watcher = LibraryWatcher(libs_root="/path/to/src/libs")
        watcher.register_invalidation_callback(service.on_library_changed)
        watcher.start()
        ...
        watcher.stop()
    """

    ALWAYS_IGNORED = {
        "__pycache__",
        ".git",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "*.pyc",
        "*.swp",
        "*~",
        ".#*",
    }

    DEFAULT_EXTENSIONS = (".py", ".apy")

    def __init__(self, libs_root: str, extensions: Optional[Iterable[str]] = None):
        """Initialize LibraryWatcher.

        Args:
            libs_root: Library directory to watch recursively.
            extensions: Module extensions that trigger notifications.
        """
        self.libs_root = Path(libs_root).resolve()
        self.extensions = tuple(extensions) if extensions is not None else self.DEFAULT_EXTENSIONS

        self._invalidation_callbacks: List[InvalidationCallback] = []

        self._observer: Optional[BaseObserver] = None
        self._event_handler = _LibraryEventHandler(self)

        logger.info(f"LibraryWatcher initialized for {self.libs_root}")

    def should_ignore(self, file_path: str) -> bool:
        """Whether any component of ``file_path`` matches an ignore pattern."""
        path = Path(file_path)
        for part in path.parts:
            for pattern in self.ALWAYS_IGNORED:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False

    def is_module_file(self, file_path: str) -> bool:
        """Whether ``file_path`` has a recognized module extension."""
        return file_path.lower().endswith(self.extensions)

    def register_invalidation_callback(self, callback: InvalidationCallback) -> None:
        """Register a callback invoked with the path of each changed module.

        Args:
            callback: Function taking the absolute file path. Exceptions it
                raises are logged and do not stop other callbacks.
        """
        if callback not in self._invalidation_callbacks:
            self._invalidation_callbacks.append(callback)
            logger.debug(f"Registered invalidation callback: {callback}")

    def unregister_invalidation_callback(self, callback: InvalidationCallback) -> None:
        if callback in self._invalidation_callbacks:
            self._invalidation_callbacks.remove(callback)
            logger.debug(f"Unregistered invalidation callback: {callback}")

    def _notify_invalidation_callbacks(self, file_path: str) -> None:
        for callback in list(self._invalidation_callbacks):
            try:
                callback(file_path)
            except Exception as e:
                # One callback failure shouldn't prevent the others from running
                logger.error(f"Invalidation callback failed for {file_path}: {e}")

    def start(self) -> None:
        """Start watching the library tree.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("LibraryWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.libs_root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"LibraryWatcher started, monitoring {self.libs_root}")

    def stop(self) -> None:
        """Stop watching. Blocks until the observer thread terminates (with timeout)."""
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("LibraryWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class _LibraryEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog.

    Delegates filtering and notification to LibraryWatcher.
    """

    def __init__(self, watcher: LibraryWatcher):
        super().__init__()
        self.watcher = watcher

    def _report(self, file_path: str, event_type: str) -> None:
        if self.watcher.should_ignore(file_path):
            return
        if not self.watcher.is_module_file(file_path):
            return

        logger.debug(f"Event: {event_type} - {file_path}")
        self.watcher._notify_invalidation_callbacks(file_path)

    def _handle_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        # Convert path from Union[bytes, str] to str
        self._report(str(event.src_path), event.event_type)

    def on_created(self, event: FileSystemEvent) -> None:
        # New modules change the import list
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Treated as a delete of the old path plus a create of the new one."""
        if event.is_directory:
            return

        if not isinstance(event, FileMovedEvent):
            return

        self._report(str(event.src_path), "moved_from")
        self._report(str(event.dest_path), "moved_to")
