"""Lazily expanded directory tree for interactive browsing.

A node's ``children`` is ``None`` until the node is expanded; after that it
is a list, possibly empty. Expansion happens once per node. Deleting a path
elsewhere does not update the tree: callers discard the affected roots with
:meth:`TreeService.invalidate` and open fresh ones.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CleanTargetType, ScanResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


class TreeError(Exception):
    """A tree node could not be opened or expanded."""


class MaxDepthError(TreeError):
    """Expansion was requested beyond the configured depth limit."""


class TreeScanError(TreeError):
    """The directory behind a node could not be read."""


@dataclass
class TreeNode:
    """One filesystem entry in the browser."""

    path: str
    name: str
    size: int = 0
    is_dir: bool = False
    type: CleanTargetType | None = None
    children: list[TreeNode] | None = None
    scanned: bool = False
    depth: int = 0
    file_count: int = 0

    def needs_scanning(self) -> bool:
        """True for a directory whose children have not been computed."""
        return self.is_dir and not self.scanned

    def has_children(self) -> bool:
        return bool(self.children)

    def add_child(self, child: TreeNode) -> None:
        """Append ``child``, keeping discovery order."""
        if self.children is None:
            self.children = []
        self.children.append(child)

    @classmethod
    def from_scan_result(cls, result: ScanResult) -> TreeNode:
        """Create an unscanned depth-0 root for a scan result."""
        return cls(
            path=result.path,
            name=result.name,
            size=result.size,
            is_dir=True,
            type=result.type,
            file_count=result.file_count,
        )


def _is_within(path: str, ancestor: str) -> bool:
    ancestor = ancestor.rstrip("/") or "/"
    if path == ancestor:
        return True
    prefix = ancestor if ancestor.endswith("/") else f"{ancestor}/"
    return path.startswith(prefix)


class TreeService:
    """Caches tree roots by path and expands nodes on demand.

    Roots are shared with the watcher thread, so access to the cache is
    serialized. Expanding a node is not: one expansion at a time, driven by
    the UI.
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        walker: Callable[[str, int], list[TreeNode]] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            max_depth: Nodes at this depth or deeper cannot be expanded.
            walker: Reads one directory level as child nodes. Defaults to
                :func:`dev_cleaner.walker.list_children`.

        """
        if walker is None:
            from .walker import list_children

            walker = list_children

        self.max_depth = max_depth
        self._walker = walker
        self._roots: dict[str, TreeNode] = {}
        self._lock = threading.Lock()

    def open(self, result: ScanResult) -> TreeNode:
        """Return the cached root for ``result``, creating it if needed.

        Raises:
            TreeError: If the path does not exist.

        """
        with self._lock:
            if (root := self._roots.get(result.path)) is not None:
                return root

        if not os.path.lexists(result.path):
            raise TreeError(f"path does not exist: {result.path}")

        root = TreeNode.from_scan_result(result)
        with self._lock:
            return self._roots.setdefault(result.path, root)

    def get(self, path: str) -> TreeNode | None:
        with self._lock:
            return self._roots.get(path)

    def expand(self, node: TreeNode) -> TreeNode:
        """Compute ``node``'s children once.

        Files and already-scanned nodes are returned unchanged.

        Raises:
            MaxDepthError: If ``node`` is at or past the depth limit.
            TreeScanError: If the directory cannot be read; the node stays
                unscanned so the expansion can be retried.

        """
        if not node.needs_scanning():
            return node

        if node.depth >= self.max_depth:
            raise MaxDepthError(f"max depth {self.max_depth} reached at {node.path}")

        try:
            children = self._walker(node.path, node.depth)
        except OSError as e:
            raise TreeScanError(f"failed to read directory {node.path}: {e}") from e

        node.children = list(children)
        node.scanned = True

        logger.debug("Expanded %s (%d children)", node.path, len(node.children))
        return node

    def invalidate(self, path: str) -> list[str]:
        """Discard every cached root at, inside, or containing ``path``.

        Returns:
            Paths of the discarded roots.

        """
        with self._lock:
            stale = [
                root_path
                for root_path in self._roots
                if _is_within(root_path, path) or _is_within(path, root_path)
            ]
            for root_path in stale:
                del self._roots[root_path]

        if stale:
            logger.debug("Invalidated %d tree roots for %s", len(stale), path)
        return stale

    def clear(self) -> None:
        with self._lock:
            self._roots.clear()

    @property
    def roots(self) -> list[TreeNode]:
        with self._lock:
            return list(self._roots.values())
