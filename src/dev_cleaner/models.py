"""Shared data model for cleanup candidates."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class CleanTargetType(StrEnum):
    """Category of a cleanup candidate."""

    XCODE = "xcode"
    ANDROID = "android"
    NODE = "node"
    REACT_NATIVE = "react-native"
    FLUTTER = "flutter"
    CACHE = "cache"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"
    HOMEBREW = "homebrew"
    DOCKER = "docker"
    JAVA = "java"


@dataclass(frozen=True)
class ScanResult:
    """A directory the scanner flagged as safe to regenerate."""

    path: str
    type: CleanTargetType
    size: int = 0
    file_count: int = 0
    name: str = ""

    def __post_init__(self) -> None:
        # Coerce plain strings so callers can pass "node" instead of the enum
        object.__setattr__(self, "type", CleanTargetType(self.type))
        if self.size < 0:
            raise ValueError(f"size must be non-negative, got {self.size}")
        if self.file_count < 0:
            raise ValueError(f"file_count must be non-negative, got {self.file_count}")
        if not self.name:
            object.__setattr__(self, "name", os.path.basename(self.path.rstrip("/")) or self.path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanResult:
        """Build a result from the scanner's wire form.

        Accepts both ``fileCount`` and ``file_count`` keys.
        """
        if "path" not in data or "type" not in data:
            raise ValueError(f"scan result needs 'path' and 'type': {data!r}")

        return cls(
            path=str(data["path"]),
            type=CleanTargetType(data["type"]),
            size=int(data.get("size") or 0),
            file_count=int(data.get("fileCount", data.get("file_count")) or 0),
            name=str(data.get("name") or ""),
        )
