# src/taskup/core/errors.py

from __future__ import annotations


class TaskUpError(Exception):
    """Base class for errors the app reports to the user."""


class AuthError(TaskUpError):
    """No authenticated user where one is required, or bad credentials."""


class ValidationError(TaskUpError):
    """Input rejected before any store call (empty title, missing start date, ...)."""


class StoreError(TaskUpError):
    """A document store operation failed (I/O, permission, corrupt data)."""


class NotFoundError(StoreError):
    """Mutate/delete on a document that does not exist (anymore)."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(f"task not found: {doc_id}")
        self.doc_id = doc_id


class BlobError(TaskUpError):
    """Image upload failed."""
