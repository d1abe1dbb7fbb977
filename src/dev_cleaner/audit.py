"""Append-only audit trail of planned and performed deletions."""

from __future__ import annotations

import itertools
import logging
from pathlib import Path

AUDIT_LOGGER_NAME = "dev_cleaner.audit"
AUDIT_FORMAT = "%(asctime)s %(message)s"
AUDIT_DATEFMT = "%Y/%m/%d %H:%M:%S"

_instance_ids = itertools.count(1)


class AuditLogError(Exception):
    """The audit log could not be opened or is no longer open."""


class AuditLog:
    """Writes one timestamped line per event to a persistent file.

    The file is opened in append mode and created if missing; it is never
    truncated. Each instance writes through its own child of the
    ``dev_cleaner.audit`` logger, so several open logs never share a sink.
    Lines do not propagate to the application's console logger.
    """

    def __init__(self, path: Path) -> None:
        """Open the audit file.

        Args:
            path: Location of the audit file.

        Raises:
            AuditLogError: If the file cannot be created or opened.

        """
        self.path = path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            raise AuditLogError(f"cannot open audit log {path}: {e}") from e

        handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt=AUDIT_DATEFMT))
        self._handler: logging.FileHandler | None = handler

        self.logger = logging.getLogger(f"{AUDIT_LOGGER_NAME}.{next(_instance_ids)}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self.logger.addHandler(handler)

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def ensure_open(self) -> None:
        """Raise AuditLogError if the log has been closed."""
        if self._handler is None:
            raise AuditLogError(f"audit log is closed: {self.path}")

    def record(self, message: str, *args: object) -> None:
        """Append one event line.

        Raises:
            AuditLogError: If the log has been closed.

        """
        self.ensure_open()
        self.logger.info(message, *args)

    def close(self) -> None:
        """Flush and release the audit file."""
        if self._handler is None:
            return
        self.logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None
