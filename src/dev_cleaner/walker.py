"""Filesystem walking used to size candidates and expand tree nodes."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .models import CleanTargetType, ScanResult
from .tree import TreeNode

logger = logging.getLogger(__name__)


def calculate_size(path: Path | str) -> tuple[int, int]:
    """Calculate total size and file count of a directory tree.

    Symlinks are neither followed nor counted. Unreadable entries are
    skipped.

    Returns:
        (total_bytes, file_count) tuple.

    """
    total = 0
    count = 0
    stack: list[Path | str] = [path]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                for entry in it:
                    try:
                        if entry.is_file(follow_symlinks=False):
                            total += entry.stat(follow_symlinks=False).st_size
                            count += 1
                        elif entry.is_dir(follow_symlinks=False):
                            stack.append(entry.path)
                    except OSError:
                        logger.debug("Skipping unreadable entry: %s", entry.path)
        except OSError:
            logger.debug("Skipping unreadable directory: %s", current)
    return total, count


def list_children(path: str, depth: int) -> list[TreeNode]:
    """Read one level of ``path`` as unscanned tree nodes.

    Args:
        path: Directory to list.
        depth: Depth of the directory being listed; children get depth + 1.

    Returns:
        Child nodes sorted by name. Symlinks are skipped to avoid cycles.

    Raises:
        OSError: If ``path`` itself cannot be read.

    """
    children: list[TreeNode] = []

    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        try:
            if entry.is_symlink():
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            if is_dir:
                size, file_count = calculate_size(entry.path)
            else:
                size, file_count = entry.stat(follow_symlinks=False).st_size, 1
        except OSError:
            logger.debug("Skipping unreadable entry: %s", entry.path)
            continue

        children.append(
            TreeNode(
                path=entry.path,
                name=entry.name,
                size=size,
                is_dir=is_dir,
                depth=depth + 1,
                file_count=file_count,
            )
        )

    return children


def scan_result_from_path(path: Path | str, target_type: CleanTargetType | str = CleanTargetType.CACHE) -> ScanResult:
    """Build a ScanResult for an explicitly named path.

    The path is made absolute but not resolved, so symlinks keep their
    own location.
    """
    absolute = os.path.abspath(os.path.expanduser(str(path)))
    if os.path.isdir(absolute) and not os.path.islink(absolute):
        size, file_count = calculate_size(absolute)
    elif os.path.lexists(absolute):
        size, file_count = os.lstat(absolute).st_size, 1
    else:
        size, file_count = 0, 0

    return ScanResult(
        path=absolute,
        type=CleanTargetType(target_type),
        size=size,
        file_count=file_count,
    )
