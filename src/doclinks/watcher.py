"""Content watcher: invalidate cached trees and indexes when content changes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import CONTENT_EXTENSION, FOLDER_INDEX_JSON, WATCHER_DEBOUNCE_SECONDS

log = logging.getLogger(__name__)


def is_content_file(path: Path) -> bool:
    """True for files that affect the document tree (.mdx and index.json)."""
    if path.name.startswith((".", "_")):
        return False
    return path.suffix.lower() == CONTENT_EXTENSION or path.name == FOLDER_INDEX_JSON


class DebouncedHandler(FileSystemEventHandler):
    """Collect content changes and fire one callback per quiet period."""

    def __init__(
        self,
        callback: Callable[[set[Path]], None],
        debounce_seconds: float = WATCHER_DEBOUNCE_SECONDS,
    ):
        super().__init__()
        self._callback = callback
        self._debounce_seconds = debounce_seconds
        self._pending_files: set[Path] = set()
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def _schedule_callback(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self._debounce_seconds, self.flush)
        self._timer.daemon = True
        self._timer.start()

    def flush(self) -> None:
        """Fire the callback now with every pending change."""
        with self._lock:
            files = self._pending_files.copy()
            self._pending_files.clear()
            self._timer = None
        if files:
            self._callback(files)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_files.clear()

    def _add(self, raw_path: str | bytes | None, is_directory: bool = False) -> bool:
        if not raw_path:
            return False
        path = Path(raw_path.decode() if isinstance(raw_path, bytes) else raw_path)
        if is_directory:
            if path.name.startswith((".", "_")):
                return False
        elif not is_content_file(path):
            return False
        self._pending_files.add(path)
        return True

    def _handle_event(self, event: FileSystemEvent) -> None:
        with self._lock:
            if self._add(event.src_path, event.is_directory):
                self._schedule_callback()

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtime changes are already covered by the file events
        if not event.is_directory:
            self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        with self._lock:
            changed = self._add(event.src_path, event.is_directory)
            changed = self._add(getattr(event, "dest_path", None), event.is_directory) or changed
            if changed:
                self._schedule_callback()


class ContentWatcher:
    """Watch a content root and call `on_change` after changes settle."""

    def __init__(
        self,
        content_root: Path,
        on_change: Callable[[set[Path]], None],
        debounce_seconds: float = WATCHER_DEBOUNCE_SECONDS,
    ):
        self._content_root = Path(content_root)
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._observer: Observer | None = None
        self._handler: DebouncedHandler | None = None
        self._running = False

    def _on_files_changed(self, files: set[Path]) -> None:
        log.info("Content changed (%d files), invalidating caches", len(files))
        try:
            self._on_change(files)
        except Exception as e:
            log.warning("Change callback failed: %s", e)

    def start(self) -> None:
        if self._running:
            return

        if not self._content_root.exists():
            log.warning("Content root does not exist: %s", self._content_root)
            return

        self._handler = DebouncedHandler(
            callback=self._on_files_changed,
            debounce_seconds=self._debounce_seconds,
        )
        self._observer = Observer()
        self._observer.daemon = True
        self._observer.schedule(self._handler, str(self._content_root), recursive=True)
        self._observer.start()
        self._running = True
        log.info("Started watching: %s", self._content_root)

    def stop(self) -> None:
        if not self._running or self._observer is None:
            return

        if self._handler is not None:
            self._handler.cancel()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._handler = None
        self._running = False
        log.info("Stopped content watcher")

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> "ContentWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
