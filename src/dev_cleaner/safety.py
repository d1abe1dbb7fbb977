"""Path safety policy applied before anything is deleted.

Validation is purely lexical: the path string is compared against fixed
denylists and the user's home directory. The filesystem is never consulted,
so symlinks are not resolved and a link under the home directory pointing
elsewhere passes validation. Callers must not rely on this layer to defend
against symlink tricks.
"""

from __future__ import annotations

import os

# Checked with a plain string prefix, so "/optimize" also matches "/opt".
SYSTEM_PATHS: tuple[str, ...] = (
    "/System",
    "/Library/System",
    "/usr",
    "/bin",
    "/sbin",
    "/etc",
    "/var",
    "/private",
    "/Applications",
    "/opt",
)

# Checked anywhere in the path string, not only as a path component.
PROTECTED_PATTERNS: tuple[str, ...] = (
    ".ssh",
    ".gnupg",
    ".aws",
    ".kube",
    "Keychain",
    "Keychains",
)

TMP_PREFIX = "/tmp"


class SafetyError(Exception):
    """A path was refused by the safety policy."""

    kind: str = "Unsafe"

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class NotAbsoluteError(SafetyError):
    kind = "NotAbsolute"


class SystemPathError(SafetyError):
    kind = "SystemPath"


class ProtectedPatternError(SafetyError):
    kind = "ProtectedPattern"

    def __init__(self, message: str, path: str, pattern: str) -> None:
        super().__init__(message, path)
        self.pattern = pattern


class HomeUnsetError(SafetyError):
    kind = "HomeUnset"


class OutsideHomeError(SafetyError):
    kind = "OutsideHome"


class PathSafetyValidator:
    """Decides whether a path may ever be deleted."""

    def __init__(self, home: str | None) -> None:
        """Initialize the validator.

        Args:
            home: The user's home directory as captured at startup.
                ``None`` or an empty string means HOME was not set.

        """
        self.home = home or None

    def validate(self, path: str) -> None:
        """Check a path against the policy.

        Rules run in a fixed order and the first failing rule wins.

        Args:
            path: Absolute path to check.

        Raises:
            SafetyError: The matching subclass for the first failed rule.

        """
        if not path.startswith("/"):
            raise NotAbsoluteError(f"path must be absolute: {path}", path)

        for system_path in SYSTEM_PATHS:
            if path.startswith(system_path):
                raise SystemPathError(f"refusing to delete system path: {path}", path)

        for pattern in PROTECTED_PATTERNS:
            if pattern in path:
                raise ProtectedPatternError(
                    f"refusing to delete protected path containing '{pattern}': {path}",
                    path,
                    pattern,
                )

        if self.home is None:
            raise HomeUnsetError("HOME environment variable not set", path)

        if path.startswith(self.home) or path.startswith(TMP_PREFIX):
            return

        raise OutsideHomeError(f"path outside home directory: {path}", path)

    def is_safe(self, path: str) -> bool:
        """Return True if ``path`` passes every rule."""
        try:
            self.validate(path)
        except SafetyError:
            return False
        return True


def validate_path(path: str, home: str | None = None) -> None:
    """Validate ``path``, reading HOME from the environment when not given."""
    PathSafetyValidator(home if home is not None else os.environ.get("HOME")).validate(path)


def is_safe_to_delete(path: str, home: str | None = None) -> bool:
    """Boolean form of :func:`validate_path`."""
    return PathSafetyValidator(home if home is not None else os.environ.get("HOME")).is_safe(path)
