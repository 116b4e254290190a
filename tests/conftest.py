"""Common utilities for tests."""

from typing import Any, Optional

from google.api_core import exceptions as google_exceptions
from mockfirestore import CollectionReference, MockFirestore, Query
from mockfirestore.document import DocumentReference, DocumentSnapshot


def _filter_args(filter: Any) -> tuple[str, str, Any]:
    """Plain ``(field, op, value)`` for a FieldFilter.

    Newer clients turn comparisons with None into IS_NULL / IS_NOT_NULL
    operators, which mockfirestore cannot evaluate.
    """
    op = filter.op_string
    if not isinstance(op, str):
        op = "!=" if "NOT" in getattr(op, "name", "") else "=="
    return filter.field_path, op, filter.value


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore to support FieldFilter and transactions."""

    def collection_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:  # noqa: E501
        if filter:
            return self._where(*_filter_args(filter))
        return self._where(field_path, op_string, value)

    if not hasattr(CollectionReference, "_where"):
        CollectionReference._where = CollectionReference.where
        CollectionReference.where = collection_where

    def query_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(*_filter_args(filter))
        return self._where(field_path, op_string, value)

    if not hasattr(Query, "_where"):
        Query._where = Query.where
        Query.where = query_where

    # mockfirestore keeps an empty placeholder for every referenced document;
    # Firestore never returns those from a stream.
    if not hasattr(CollectionReference, "_orig_stream"):
        CollectionReference._orig_stream = CollectionReference.stream

        def collection_stream(self: Any, transaction: Any = None) -> Any:
            for snapshot in self._orig_stream():
                if snapshot.exists:
                    yield snapshot

        CollectionReference.stream = collection_stream

    def doc_ref_eq(self: Any, other: Any) -> bool:
        if not isinstance(other, DocumentReference):
            return False
        return self._path == other._path

    if not hasattr(DocumentReference, "_orig_eq"):
        DocumentReference._orig_eq = DocumentReference.__eq__
        DocumentReference.__eq__ = doc_ref_eq
        DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

    if not hasattr(DocumentReference, "_orig_get"):
        DocumentReference._orig_get = DocumentReference.get

        def doc_ref_get(self: Any, transaction: Any = None, **kwargs: Any) -> Any:
            """Handle the transaction argument and deleted documents."""
            try:
                return self._orig_get()
            except KeyError:
                return DocumentSnapshot(self, {})

        DocumentReference.get = doc_ref_get

    if not hasattr(DocumentReference, "_orig_delete"):
        DocumentReference._orig_delete = DocumentReference.delete

        def doc_ref_delete(self: Any) -> None:
            """Deleting a missing document is a no-op, as in Firestore."""
            if self.get().exists:
                self._orig_delete()

        DocumentReference.delete = doc_ref_delete


class MockTransaction:
    """Buffers writes and applies them all at commit, like a Firestore transaction.

    ``create`` fails with AlreadyExists and ``update`` with NotFound when the
    precondition does not hold at commit time; nothing is applied then.
    """

    def __init__(self, db: "EnhancedMockFirestore") -> None:
        self.db = db
        self.writes: list[tuple[str, Any, Any]] = []

    def create(self, ref: Any, data: dict[str, Any]) -> None:
        self.writes.append(("create", ref, data))

    def set(self, ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(("set", ref, data))

    def update(self, ref: Any, data: dict[str, Any]) -> None:
        self.writes.append(("update", ref, data))

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref, None))

    def commit(self) -> None:
        while self.db.before_commit:
            self.db.before_commit.pop(0)()
        self.db.commits += 1

        created = set()
        for op, ref, _ in self.writes:
            path = tuple(ref._path)
            if op == "create":
                if ref.get().exists or path in created:
                    raise google_exceptions.AlreadyExists(
                        f"Document already exists: {'/'.join(path)}"
                    )
                created.add(path)
            elif op == "update" and not ref.get().exists and path not in created:
                raise google_exceptions.NotFound(
                    f"No document to update: {'/'.join(path)}"
                )

        for op, ref, data in self.writes:
            if op in ("create", "set"):
                ref.set(data)
            elif op == "update":
                ref.update(data)
            else:
                ref.delete()
        self.writes = []


class EnhancedMockFirestore(MockFirestore):
    """MockFirestore whose transactions buffer writes until commit.

    Callables appended to ``before_commit`` run once, just before the next
    commit, to simulate a competing request landing between reads and writes.
    Those in ``before_transaction`` run as the next transaction starts.
    """

    def __init__(self) -> None:
        super().__init__()
        self.before_transaction: list[Any] = []
        self.before_commit: list[Any] = []
        self.commits = 0

    def transaction(self, **kwargs: Any) -> MockTransaction:
        return MockTransaction(self)


def mock_transactional(fn: Any) -> Any:
    """Stand-in for ``firestore.transactional`` that commits after ``fn``."""

    def run(transaction: MockTransaction, *args: Any, **kwargs: Any) -> Any:
        while transaction.db.before_transaction:
            transaction.db.before_transaction.pop(0)()
        result = fn(transaction, *args, **kwargs)
        transaction.commit()
        return result

    return run
