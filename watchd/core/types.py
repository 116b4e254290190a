"""Core data types for the watchd application."""

from typing import Any, TypedDict


class _FirestoreDocumentBase(TypedDict):
    id: str
    createdAt: Any


class FirestoreDocument(_FirestoreDocumentBase, total=False):
    """Generic Firestore document structure."""

    updatedAt: Any


class SendResult(TypedDict):
    """Outcome reported by the email collaborator."""

    sent: bool


class ErrorPayload(TypedDict):
    """Machine-readable error body returned by the API."""

    kind: str
    message: str
