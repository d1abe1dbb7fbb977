"""Batch deletion of cleanup candidates with dry-run and audit support."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .audit import AuditLog
from .formatting import format_size
from .safety import PathSafetyValidator, SafetyError

if TYPE_CHECKING:
    from .config import CleanerConfig
    from .models import ScanResult

__all__ = [
    "CleanEngine",
    "CleanResult",
    "DeletionFailedError",
    "format_size",
    "total_size",
]

_MB = 1024 * 1024


class DeletionFailedError(Exception):
    """The filesystem refused or failed a real deletion."""

    kind = "DeletionFailed"

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


@dataclass
class CleanResult:
    """Outcome of acting on one scan result."""

    path: str
    size: int
    success: bool
    error: Exception | None = None
    was_dry_run: bool = False


class CleanEngine:
    """Validates and deletes scan results, one at a time, in input order."""

    def __init__(self, config: CleanerConfig, logger: logging.Logger | None = None) -> None:
        """Initialize the engine.

        Args:
            config: Cleaner configuration; supplies dry-run default, home
                directory and audit log location.
            logger: Logger for console messages.

        Raises:
            AuditLogError: If the audit log cannot be opened.

        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.dry_run = config.dry_run
        self.validator = PathSafetyValidator(config.home)
        self.audit = AuditLog(config.log_file)

    def __enter__(self) -> CleanEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the audit log."""
        self.audit.close()

    def set_dry_run(self, dry_run: bool) -> None:
        self.dry_run = dry_run

    def clean(self, results: Iterable[ScanResult]) -> list[CleanResult]:
        """Validate and delete (or simulate deleting) each result.

        Per-item failures are reported in the returned list and never stop
        the batch.

        Args:
            results: Candidates to clean.

        Returns:
            One CleanResult per input, in input order.

        Raises:
            AuditLogError: If the audit log is not open.

        """
        items = list(results)
        self.audit.ensure_open()

        return [self._clean_one(result) for result in items]

    def _clean_one(self, result: ScanResult) -> CleanResult:
        try:
            self.validator.validate(result.path)
        except SafetyError as e:
            self.logger.warning("Skipping %s: %s", result.path, e)
            return CleanResult(path=result.path, size=result.size, success=False, error=e)

        size_mb = result.size / _MB

        if self.dry_run:
            self.audit.record("[DRY-RUN] Would delete: %s (%.2f MB)", result.path, size_mb)
            return CleanResult(path=result.path, size=result.size, success=True, was_dry_run=True)

        self.audit.record("[DELETE] Removing: %s (%.2f MB)", result.path, size_mb)

        try:
            _remove_path(Path(result.path))
        except OSError as e:
            self.audit.record("[ERROR] Failed to delete %s: %s", result.path, e)
            self.logger.error("Failed to delete %s: %s", result.path, e)
            error = DeletionFailedError(f"failed to delete {result.path}: {e}", result.path)
            error.__cause__ = e
            return CleanResult(path=result.path, size=result.size, success=False, error=error)

        self.audit.record(
            "[SUCCESS] Deleted: %s at %s",
            result.path,
            datetime.now(UTC).isoformat(timespec="seconds"),
        )
        self.logger.info("Deleted %s (%s)", result.path, format_size(result.size))
        return CleanResult(path=result.path, size=result.size, success=True)


def _remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree without following links.

    Raises:
        FileNotFoundError: If nothing exists at ``path``.
        OSError: On any other removal failure.

    """
    if path.is_symlink() or not path.is_dir():
        # unlink() raises FileNotFoundError for a vanished path
        path.unlink()
        return
    shutil.rmtree(path)


def total_size(results: Iterable[ScanResult | CleanResult]) -> int:
    """Sum the sizes of ``results`` regardless of success or failure."""
    return sum(result.size for result in results)
