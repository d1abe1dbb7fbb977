"""Tests for the batch clean engine."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from dev_cleaner.audit import AuditLogError
from dev_cleaner.cleaner import CleanEngine, CleanResult, DeletionFailedError, _remove_path, total_size
from dev_cleaner.config import CleanerConfig
from dev_cleaner.models import CleanTargetType, ScanResult
from dev_cleaner.safety import OutsideHomeError, SystemPathError


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Create a fake home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path, home: Path) -> CleanerConfig:
    """Create a test configuration with real deletion enabled."""
    return CleanerConfig(
        dry_run=False,
        log_file=tmp_path / "logs" / "audit.log",
        home=str(home),
    )


@pytest.fixture
def logger() -> logging.Logger:
    """Create a test logger."""
    return logging.getLogger("test-cleaner")


@pytest.fixture
def engine(config: CleanerConfig, logger: logging.Logger):
    """Create an engine and close its audit log afterwards."""
    with CleanEngine(config, logger) as eng:
        yield eng


def _make_cache(root: Path, relative: str, payload: bytes = b"x" * 100) -> Path:
    """Create a cache directory with one file inside."""
    path = root / relative
    path.mkdir(parents=True)
    (path / "blob.bin").write_bytes(payload)
    return path


def _result(path: Path | str, size: int = 100, target: CleanTargetType = CleanTargetType.CACHE) -> ScanResult:
    return ScanResult(path=str(path), type=target, size=size, file_count=1)


def _audit_lines(config: CleanerConfig) -> list[str]:
    return config.log_file.read_text(encoding="utf-8").splitlines()


class TestCleanResult:
    """Tests for CleanResult dataclass."""

    def test_defaults(self) -> None:
        """Test that a bare result has no error and is not a dry run."""
        result = CleanResult(path="/tmp/x", size=10, success=True)
        assert result.error is None
        assert result.was_dry_run is False


class TestDryRun:
    """Tests for simulated deletion."""

    def test_dry_run_keeps_files(self, engine: CleanEngine, config: CleanerConfig, home: Path) -> None:
        """Test that dry run validates and logs without touching the filesystem."""
        engine.set_dry_run(True)
        cache = _make_cache(home, "Library/Caches/com.example")

        results = engine.clean([_result(cache, size=3 * 1024 * 1024)])

        assert results == [CleanResult(path=str(cache), size=3 * 1024 * 1024, success=True, was_dry_run=True)]
        assert (cache / "blob.bin").exists()
        lines = _audit_lines(config)
        assert len(lines) == 1
        assert f"[DRY-RUN] Would delete: {cache} (3.00 MB)" in lines[0]

    def test_dry_run_unsafe_item_not_marked_dry_run(self, engine: CleanEngine) -> None:
        """Test that refused items are failures even in dry run."""
        engine.set_dry_run(True)

        results = engine.clean([_result("/System/Library/Caches")])

        assert not results[0].success
        assert results[0].was_dry_run is False
        assert isinstance(results[0].error, SystemPathError)

    def test_dry_run_default_from_config(self, config: CleanerConfig) -> None:
        """Test that the engine starts in the configured mode."""
        config.dry_run = True
        with CleanEngine(config) as eng:
            assert eng.dry_run is True
            eng.set_dry_run(False)
            assert eng.dry_run is False


class TestRealDeletion:
    """Tests for actual removal."""

    def test_deletes_directory_tree(self, engine: CleanEngine, config: CleanerConfig, home: Path) -> None:
        """Test that a directory and everything under it is removed."""
        cache = _make_cache(home, "project/node_modules")
        _make_cache(cache, "left-pad/lib")

        results = engine.clean([_result(cache, target=CleanTargetType.NODE)])

        assert results[0].success
        assert results[0].was_dry_run is False
        assert results[0].error is None
        assert not cache.exists()
        assert (home / "project").exists()

        lines = _audit_lines(config)
        assert "[DELETE] Removing:" in lines[0]
        assert "[SUCCESS] Deleted:" in lines[1]
        assert lines[1].rstrip().endswith("+00:00")

    def test_deletes_single_file(self, engine: CleanEngine, home: Path) -> None:
        """Test that a plain file candidate is unlinked."""
        target = home / "build.log"
        target.write_text("log")

        results = engine.clean([_result(target)])

        assert results[0].success
        assert not target.exists()

    def test_symlink_removed_not_followed(self, engine: CleanEngine, home: Path, tmp_path: Path) -> None:
        """Test that a symlinked candidate is unlinked and its target survives."""
        outside = _make_cache(tmp_path, "elsewhere/data")
        link = home / "linked-cache"
        link.symlink_to(outside, target_is_directory=True)

        results = engine.clean([_result(link)])

        assert results[0].success
        assert not link.is_symlink()
        assert (outside / "blob.bin").exists()

    def test_missing_path_reported(self, engine: CleanEngine, config: CleanerConfig, home: Path) -> None:
        """Test that a vanished path is a per-item deletion failure."""
        missing = home / "DerivedData" / "Gone"

        results = engine.clean([_result(missing, size=4096)])

        assert not results[0].success
        assert results[0].size == 4096
        assert isinstance(results[0].error, DeletionFailedError)
        assert isinstance(results[0].error.__cause__, FileNotFoundError)
        assert any("[ERROR] Failed to delete" in line for line in _audit_lines(config))

    def test_permission_error_does_not_stop_batch(self, engine: CleanEngine, home: Path) -> None:
        """Test that one failing removal leaves later items to run."""
        locked = _make_cache(home, "locked")
        free = home / "free.txt"
        free.write_text("x")

        with patch("dev_cleaner.cleaner.shutil.rmtree", side_effect=PermissionError("denied")):
            results = engine.clean([_result(locked), _result(free)])

        assert not results[0].success
        assert "denied" in str(results[0].error)
        assert isinstance(results[0].error.__cause__, PermissionError)
        assert locked.exists()
        assert results[1].success
        assert not free.exists()


class TestBatchSemantics:
    """Tests for ordering and per-item isolation."""

    def test_one_result_per_input_in_order(self, engine: CleanEngine, home: Path) -> None:
        """Test that mixed outcomes keep a one-to-one, ordered mapping."""
        first = _make_cache(home, "a")
        second = _make_cache(home, "b")
        items = [
            _result(first, size=1),
            _result("/System/Library/Caches", size=2),
            _result("/Users/someone-else/cache", size=3),
            _result("relative/cache", size=4),
            _result(second, size=5),
        ]

        results = engine.clean(items)

        assert [r.path for r in results] == [i.path for i in items]
        assert [r.size for r in results] == [1, 2, 3, 4, 5]
        assert [r.success for r in results] == [True, False, False, False, True]
        assert isinstance(results[2].error, OutsideHomeError)

    def test_mixed_home_and_system_batch(self, engine: CleanEngine, home: Path) -> None:
        """Test deleting DerivedData while refusing a system cache."""
        derived = _make_cache(home, "Library/Developer/Xcode/DerivedData/Foo")
        items = [
            _result(derived, size=2_000_000_000, target=CleanTargetType.XCODE),
            _result("/System/Library/Caches", size=500_000),
        ]

        with patch("dev_cleaner.cleaner._remove_path", wraps=_remove_path) as remove:
            results = engine.clean(items)

        assert results[0].success
        assert results[0].was_dry_run is False
        assert not derived.exists()
        assert not results[1].success
        assert isinstance(results[1].error, SystemPathError)
        assert remove.call_count == 1

    def test_empty_batch(self, engine: CleanEngine) -> None:
        """Test that an empty batch produces no results."""
        assert engine.clean([]) == []

    def test_safety_failures_are_not_audited_as_deletions(self, engine: CleanEngine, config: CleanerConfig) -> None:
        """Test that refused items never produce a removal line."""
        engine.clean([_result("/usr/local/lib")])

        assert not any("/usr/local/lib" in line for line in _audit_lines(config))


class TestAuditLog:
    """Tests for the persistent audit trail."""

    def test_appends_across_engines(self, config: CleanerConfig, home: Path) -> None:
        """Test that a new engine appends rather than truncating."""
        config.log_file.parent.mkdir(parents=True)
        config.log_file.write_text("earlier line\n", encoding="utf-8")
        config.dry_run = True

        with CleanEngine(config) as first:
            first.clean([_result(home / "one")])
        with CleanEngine(config) as second:
            second.clean([_result(home / "two")])

        lines = _audit_lines(config)
        assert lines[0] == "earlier line"
        assert len(lines) == 3
        assert str(home / "one") in lines[1]
        assert str(home / "two") in lines[2]

    def test_unopenable_log_is_fatal(self, config: CleanerConfig, tmp_path: Path) -> None:
        """Test that the engine cannot be built without an audit trail."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        config.log_file = blocker / "audit.log"

        with pytest.raises(AuditLogError):
            CleanEngine(config)

    def test_closed_log_aborts_batch(self, config: CleanerConfig, home: Path) -> None:
        """Test that a batch fails before any item once the log is closed."""
        cache = _make_cache(home, "cache")
        eng = CleanEngine(config)
        eng.close()

        with pytest.raises(AuditLogError):
            eng.clean([_result(cache)])

        assert cache.exists()

    def test_log_created_if_absent(self, config: CleanerConfig) -> None:
        """Test that the audit file and its directory are created."""
        assert not config.log_file.exists()

        with CleanEngine(config):
            assert config.log_file.exists()

    def test_second_engine_does_not_steal_sink(self, config: CleanerConfig, home: Path, tmp_path: Path) -> None:
        """Test that closing another engine leaves this engine's log intact."""
        cache = _make_cache(home, "cache")
        other_config = CleanerConfig(dry_run=False, log_file=tmp_path / "other.log", home=str(home))

        with CleanEngine(config) as first:
            with CleanEngine(other_config):
                pass
            results = first.clean([_result(cache)])

        assert results[0].success
        assert not cache.exists()
        assert any(f"[SUCCESS] Deleted: {cache} at" in line for line in _audit_lines(config))
        assert str(cache) not in (tmp_path / "other.log").read_text(encoding="utf-8")


class TestTotalSize:
    """Tests for the size aggregate."""

    def test_sum_of_scan_results(self) -> None:
        """Test the arithmetic sum over inputs."""
        items = [_result("/tmp/a", size=1024), _result("/tmp/b", size=0), _result("/tmp/c", size=512)]
        assert total_size(items) == 1536

    def test_ignores_outcome(self) -> None:
        """Test that failures count toward the total."""
        results = [
            CleanResult(path="/tmp/a", size=10, success=True),
            CleanResult(path="/System", size=20, success=False, error=SystemPathError("no", "/System")),
        ]
        assert total_size(results) == 30

    def test_empty(self) -> None:
        assert total_size([]) == 0
