"""Permission hardening for files that hold the auth token or log payloads."""

from __future__ import annotations

import os
import stat
from pathlib import Path

__all__ = [
    "DEFAULT_SECURE_MODE",
    "ensure_restricted_permissions",
    "permissions_too_permissive",
    "secure_file",
]

DEFAULT_SECURE_MODE = 0o600


def _is_posix() -> bool:
    return os.name == "posix"


def permissions_too_permissive(path: Path | str, *, allowed_mode: int = DEFAULT_SECURE_MODE) -> bool:
    """Return ``True`` when ``path`` grants group/other permissions."""

    target = Path(path)
    if not target.exists() or not _is_posix():
        return False

    try:
        current_mode = stat.S_IMODE(target.stat().st_mode)
    except OSError:
        return False

    return bool(current_mode & ~stat.S_IMODE(allowed_mode))


def ensure_restricted_permissions(path: Path | str, *, allowed_mode: int = DEFAULT_SECURE_MODE) -> bool:
    """Drop group/other bits from ``path``; returns ``True`` when changed.

    No-op on non-POSIX platforms.
    """

    if not permissions_too_permissive(path, allowed_mode=allowed_mode):
        return False

    try:
        os.chmod(Path(path), stat.S_IMODE(allowed_mode))
    except OSError:
        return False
    return True


def secure_file(path: Path | str) -> None:
    """Harden ``path`` if it is readable by anyone but the owner."""

    if permissions_too_permissive(path):
        ensure_restricted_permissions(path)
