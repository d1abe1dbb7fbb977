"""File system watcher that drops stale tree roots using watchdog."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from collections.abc import Callable

    from watchdog.events import FileSystemEvent
    from watchdog.observers.api import ObservedWatch

    from .tree import TreeService


def _as_str(path: str | bytes) -> str:
    return path.decode() if isinstance(path, bytes) else path


class TreeInvalidationHandler(FileSystemEventHandler):
    """Invalidates cached tree roots when something beneath them changes."""

    def __init__(
        self,
        tree: TreeService,
        logger: logging.Logger,
        on_invalidated: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Initialize the event handler.

        Args:
            tree: Tree service whose roots are invalidated.
            logger: Logger instance.
            on_invalidated: Called with the paths of dropped roots.

        """
        super().__init__()
        self.tree = tree
        self.logger = logger
        self.on_invalidated = on_invalidated

    def on_created(self, event: FileSystemEvent) -> None:
        self._invalidate(_as_str(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._invalidate(_as_str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moves: both the old and new location are stale."""
        self._invalidate(_as_str(event.src_path))
        self._invalidate(_as_str(event.dest_path))

    def _invalidate(self, path: str) -> None:
        if dropped := self.tree.invalidate(path):
            self.logger.debug("Tree roots invalidated by change to %s: %s", path, dropped)
            if self.on_invalidated is not None:
                self.on_invalidated(dropped)


class TreeWatcher:
    """Watches opened tree roots for outside changes.

    Once a root is invalidated its watch is forgotten, so calling
    :meth:`watch` again after reopening the root schedules a fresh one.
    Stale watches are unscheduled from the caller's thread, never from the
    observer's event thread.
    """

    def __init__(self, tree: TreeService, logger: logging.Logger | None = None) -> None:
        self.tree = tree
        self.logger = logger or logging.getLogger(__name__)
        self._observer: Observer | None = None
        self._handler = TreeInvalidationHandler(tree, self.logger, on_invalidated=self._forget)
        self._lock = threading.Lock()
        self._watches: dict[str, ObservedWatch] = {}
        self._stale: dict[str, ObservedWatch] = {}

    def start(self) -> None:
        """Start the observer thread."""
        if self._observer is not None:
            return

        self._observer = Observer()
        self._observer.start()
        self.logger.info("Tree watcher started")

    def watch(self, path: str) -> None:
        """Watch ``path`` recursively. Starts the observer if needed."""
        with self._lock:
            if path in self._watches:
                return
            stale = self._stale.pop(path, None)

        if self._observer is None:
            self.start()
        if stale is not None:
            self._unschedule(stale)

        try:
            watch = self._observer.schedule(self._handler, path, recursive=True)
        except OSError as e:
            self.logger.warning("Cannot watch %s: %s", path, e)
            return

        with self._lock:
            self._watches[path] = watch
        self.logger.debug("Watching tree root: %s", path)

    def unwatch(self, path: str) -> None:
        with self._lock:
            watch = self._watches.pop(path, None) or self._stale.pop(path, None)
        if watch is not None:
            self._unschedule(watch)

    def stop(self) -> None:
        """Stop watching directories."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
            with self._lock:
                self._watches.clear()
                self._stale.clear()
            self.logger.info("Tree watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    @property
    def watched_paths(self) -> list[str]:
        with self._lock:
            return list(self._watches)

    def _forget(self, paths: list[str]) -> None:
        with self._lock:
            for path in paths:
                if (watch := self._watches.pop(path, None)) is not None:
                    self._stale[path] = watch

    def _unschedule(self, watch: ObservedWatch) -> None:
        if self._observer is None:
            return
        try:
            self._observer.unschedule(watch)
        except KeyError:
            # The emitter already went away with its directory
            self.logger.debug("Watch already removed: %s", watch.path)
