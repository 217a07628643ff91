"""Errors raised by object-store adapters and understood by the reconcile core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import ObjectKey


class StoreError(RuntimeError):
    """Raised when the object store cannot complete a request."""


class NotFoundError(StoreError):
    """Raised when the requested object does not exist (anymore)."""

    def __init__(self, kind: str, key: ObjectKey) -> None:
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class ConflictError(StoreError):
    """Raised when a write was based on a stale resource version."""

    def __init__(self, kind: str, key: ObjectKey, message: str | None = None) -> None:
        super().__init__(message or f"{kind} {key} was modified concurrently")
        self.kind = kind
        self.key = key
