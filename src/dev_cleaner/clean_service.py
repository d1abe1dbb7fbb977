"""Front-end facing wrapper around the clean engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .cleaner import DeletionFailedError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .cleaner import CleanEngine, CleanResult
    from .models import ScanResult
    from .tree import TreeService

logger = logging.getLogger(__name__)


@dataclass
class CleanSummary:
    """Totals for one clean batch."""

    results: list[CleanResult] = field(default_factory=list)
    freed_bytes: int = 0
    success_count: int = 0
    failure_count: int = 0
    dry_run: bool = False


class CleanService:
    """Runs one clean batch at a time and keeps the tree cache honest."""

    def __init__(self, engine: CleanEngine, tree: TreeService | None = None) -> None:
        self.engine = engine
        self.tree = tree
        self._lock = threading.Lock()
        self._cleaning = False

    @property
    def is_cleaning(self) -> bool:
        with self._lock:
            return self._cleaning

    def clean(self, items: Sequence[ScanResult]) -> CleanSummary:
        """Clean ``items`` and summarize the outcome.

        Raises:
            ValueError: If ``items`` is empty.
            RuntimeError: If another batch is still running.
            AuditLogError: If the engine's audit log is unavailable.

        """
        if not items:
            raise ValueError("no items to clean")

        with self._lock:
            if self._cleaning:
                raise RuntimeError("clean already in progress")
            self._cleaning = True

        try:
            logger.info("Cleaning %d items", len(items))
            results = self.engine.clean(items)
        finally:
            with self._lock:
                self._cleaning = False

        summary = CleanSummary(results=results, dry_run=self.engine.dry_run)
        for result in results:
            if result.success:
                summary.freed_bytes += result.size
                summary.success_count += 1
            else:
                summary.failure_count += 1

            # A failed removal may still have deleted part of the subtree
            touched = (result.success and not result.was_dry_run) or isinstance(result.error, DeletionFailedError)
            if self.tree is not None and touched:
                self.tree.invalidate(result.path)

        return summary
