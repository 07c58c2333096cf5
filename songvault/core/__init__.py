"""
Core domain package.

This package contains the data-store engine which should be independent of any
UI layer (desktop shell, IPC, CLI). The goal is to keep this layer small,
testable, and free of presentation concerns.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `songvault.core.library`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "NotFoundError",
    "ConstraintViolationError",
    "StorageUnavailableError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class NotFoundError(CoreError):
    """Raised when a write needs an entity (song/playlist/etc.) that does not exist."""


class ConstraintViolationError(CoreError):
    """Raised when a write breaks a schema constraint; the transaction was rolled back."""


class StorageUnavailableError(CoreError):
    """
    Raised when SQLite is locked, busy or cannot be opened.

    Retryable. The core never retries on its own.
    """
