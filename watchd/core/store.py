"""Firestore store handle shared by the service layer."""

from __future__ import annotations

import datetime
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from firebase_admin import firestore
from flask import g

from . import constants

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference

T = TypeVar("T")


def utcnow() -> datetime.datetime:
    """Timezone-aware current time."""
    return datetime.datetime.now(datetime.timezone.utc)


def membership_key(group_id: str, user_id: str) -> str:
    """Document id enforcing one membership per (group, user)."""
    return f"{group_id}:{user_id}"


def entry_key(user_id: str, imdb_id: str, group_id: str | None) -> str:
    """Document id enforcing one entry per (user, title, scope)."""
    return f"{user_id}:{imdb_id}:{group_id or constants.PERSONAL_SCOPE}"


def group_title_key(group_id: str, imdb_id: str) -> str:
    """Document id enforcing one entry per (group, title) across users."""
    return f"{group_id}:{imdb_id}"


def reaction_key(entry_id: str, user_id: str) -> str:
    """Document id enforcing one reaction per (entry, user)."""
    return f"{entry_id}:{user_id}"


def preference_key(group_id: str, user_id: str) -> str:
    """Document id of a user's notification preference for a group."""
    return f"{group_id}:{user_id}"


class Store:
    """Explicit handle on the Firestore client.

    Services receive a Store instead of calling ``firestore.client()``
    themselves. Multi-document writes go through ``run_transaction`` so that
    either all of them apply or none do.
    """

    def __init__(self, client: Client) -> None:
        self.client = client

    def collection(self, name: str) -> Any:
        return self.client.collection(name)

    def ref(self, collection: str, doc_id: str) -> DocumentReference:
        return self.client.collection(collection).document(doc_id)

    def new_ref(self, collection: str) -> DocumentReference:
        """Reference with a generated document id."""
        return self.client.collection(collection).document()

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document as a dict with its ``id``, or None."""
        snapshot = self.ref(collection, doc_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    def get_many(self, collection: str, doc_ids: list[str]) -> dict[str, Any]:
        """Fetch several documents of one collection, keyed by id."""
        found = {}
        for doc_id in dict.fromkeys(doc_ids):
            data = self.get(collection, doc_id)
            if data is not None:
                found[doc_id] = data
        return found

    def query(
        self,
        collection: str,
        *filters: tuple[str, str, Any],
        transaction: Any = None,
    ) -> list[Any]:
        """Return documents matching every ``(field, op, value)`` filter.

        Pass ``transaction`` to read the documents as part of it.
        """
        query = self.client.collection(collection)
        for field, op, value in filters:
            query = query.where(filter=firestore.FieldFilter(field, op, value))
        results = []
        for doc in query.stream(transaction=transaction):
            data = doc.to_dict() or {}
            data["id"] = doc.id
            results.append(data)
        return results

    def run_transaction(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(transaction, *args)`` as a single Firestore transaction."""
        transaction = self.client.transaction()
        return firestore.transactional(fn)(transaction, *args)


def read(transaction: Any, ref: DocumentReference) -> dict[str, Any] | None:
    """Transactional read returning the document dict or None."""
    snapshot = ref.get(transaction=transaction)
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def get_store() -> Store:
    """Return the store handle for the current request."""
    if "store" not in g:
        g.store = Store(firestore.client())
    return g.store
