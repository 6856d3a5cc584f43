"""Typed facade over Firestore CRUD, query and transaction primitives.

Every SDK exception is classified here, once, into the board error taxonomy.
Callers never see google-api-core exceptions.
"""
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as gexc
from google.cloud.firestore_v1 import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from board.core.errors import (
    BoardError,
    ConfigurationError,
    ErrorKind,
    NotFoundError,
    StoreError,
)
from board.utils.logging import get_logger
from ._client import MAX_BATCH_SIZE

logger = get_logger()
T = TypeVar("T")

_INDEX_URL_RE = re.compile(r"https://console\.firebase\.google\.com[^\s\"]*")

WHERE_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "array-contains", "in"})


def utc_now() -> datetime:
    """Current time as timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Where:
    """Single field filter."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in WHERE_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


def classify_exception(error: BaseException) -> ErrorKind:
    """Map an SDK exception to an ErrorKind."""
    message = str(error).lower()
    if "requires an index" in message:
        return ErrorKind.MISSING_INDEX
    if isinstance(error, gexc.FailedPrecondition):
        return ErrorKind.MISSING_INDEX if "index" in message else ErrorKind.UNKNOWN
    if isinstance(error, (gexc.ResourceExhausted, gexc.TooManyRequests)):
        return ErrorKind.QUOTA
    if isinstance(error, gexc.AlreadyExists):
        return ErrorKind.ALREADY_EXISTS
    if isinstance(error, (gexc.Aborted, gexc.Conflict)):
        return ErrorKind.CONFLICT
    if isinstance(error, (
        gexc.ServiceUnavailable,
        gexc.DeadlineExceeded,
        gexc.InternalServerError,
        gexc.GatewayTimeout,
        gexc.RetryError,
    )):
        return ErrorKind.TRANSIENT
    if isinstance(error, gexc.NotFound):
        return ErrorKind.NOT_FOUND
    if isinstance(error, (gexc.PermissionDenied, gexc.Unauthenticated)):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(error, gexc.InvalidArgument):
        return ErrorKind.INVALID_ARGUMENT
    return ErrorKind.UNKNOWN


def translate_exception(error: BaseException, operation: str) -> BoardError:
    """Convert an SDK exception into a BoardError."""
    kind = classify_exception(error)
    if kind == ErrorKind.MISSING_INDEX:
        match = _INDEX_URL_RE.search(str(error))
        index_url = match.group(0) if match else None
        if index_url:
            message = f"A Firestore composite index is required for {operation}. Create it here: {index_url}"
        else:
            message = f"A Firestore composite index is required for {operation}. Create it in the Firebase console."
        return ConfigurationError(message, index_url=index_url)
    if kind == ErrorKind.NOT_FOUND:
        return NotFoundError(f"Document not found during {operation}")
    return StoreError(f"{operation} failed: {str(error)[:200]}", kind=kind)


@contextmanager
def translate_errors(operation: str):
    """Re-raise SDK exceptions as classified BoardErrors."""
    try:
        yield
    except BoardError:
        raise
    except gexc.GoogleAPIError as e:
        translated = translate_exception(e, operation)
        logger.debug(
            "store_error_classified",
            operation=operation,
            kind=translated.kind.value if isinstance(translated, StoreError) else type(translated).__name__,
            error_type=type(e).__name__,
        )
        raise translated from e


def _snapshot_to_dict(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    return {**data, "id": snapshot.id}


def _apply_filters(query, where: Iterable[Where]):
    for clause in where:
        query = query.where(filter=FieldFilter(clause.field, clause.op, clause.value))
    return query


class DocumentStore:
    """Firestore facade returning plain dicts (document id under "id")."""

    def __init__(self, db):
        self._db = db

    def _ref(self, collection: str, doc_id: str):
        return self._db.collection(collection).document(doc_id)

    def _build_query(
        self,
        collection: str,
        where: Sequence[Where] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ):
        query = _apply_filters(self._db.collection(collection), where)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if start_after and not order_by:
            # Id cursor stays valid after the cursor document is deleted
            document_id = FieldPath.document_id()
            query = query.order_by(document_id).start_after({document_id: self._ref(collection, start_after)})
        elif start_after:
            cursor = self._ref(collection, start_after).get()
            if not cursor.exists:
                raise NotFoundError(f"Cursor document {collection}/{start_after} no longer exists")
            query = query.start_after(cursor)
        if limit:
            query = query.limit(limit)
        return query

    def new_id(self, collection: str) -> str:
        """Generate a document id without writing."""
        return self._db.collection(collection).document().id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get document by id, None if missing."""
        with translate_errors(f"get {collection}/{doc_id}"):
            snapshot = self._ref(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def query(
        self,
        collection: str,
        where: Sequence[Where] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Run a filtered, ordered query."""
        with translate_errors(f"query {collection}"):
            query = self._build_query(collection, where, order_by, descending, limit, start_after)
            return [_snapshot_to_dict(doc) for doc in query.stream()]

    def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Create document, generating an id when none is given."""
        with translate_errors(f"create {collection}"):
            ref = self._ref(collection, doc_id) if doc_id else self._db.collection(collection).document()
            ref.create(data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        with translate_errors(f"set {collection}/{doc_id}"):
            self._ref(collection, doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Update fields of an existing document (NotFoundError if missing)."""
        with translate_errors(f"update {collection}/{doc_id}"):
            self._ref(collection, doc_id).update(data)

    def delete(self, collection: str, doc_id: str) -> None:
        with translate_errors(f"delete {collection}/{doc_id}"):
            self._ref(collection, doc_id).delete()

    def set_many(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> int:
        """Write documents by id in batches. Returns number written."""
        items = list(documents.items())
        for start in range(0, len(items), MAX_BATCH_SIZE):
            chunk = items[start:start + MAX_BATCH_SIZE]
            with translate_errors(f"batch set {collection}"):
                batch = self._db.batch()
                for doc_id, data in chunk:
                    batch.set(self._ref(collection, doc_id), data)
                batch.commit()
        return len(items)

    def delete_many(self, collection: str, doc_ids: Sequence[str]) -> int:
        """Delete documents by id in batches. Returns number deleted."""
        ids = list(doc_ids)
        for start in range(0, len(ids), MAX_BATCH_SIZE):
            chunk = ids[start:start + MAX_BATCH_SIZE]
            with translate_errors(f"batch delete {collection}"):
                batch = self._db.batch()
                for doc_id in chunk:
                    batch.delete(self._ref(collection, doc_id))
                batch.commit()
        return len(ids)

    def run_transaction(self, fn: Callable[["StoreTransaction"], T]) -> T:
        """Run fn atomically. All reads in fn must precede its writes.

        The SDK re-runs fn on contention, so fn must not have side effects
        outside the transaction.
        """
        @firestore.transactional
        def _run(transaction):
            return fn(StoreTransaction(self._db, transaction))

        with translate_errors("transaction"):
            return _run(self._db.transaction())


class StoreTransaction:
    """Operations available inside DocumentStore.run_transaction."""

    def __init__(self, db, transaction):
        self._db = db
        self._transaction = transaction

    def _ref(self, collection: str, doc_id: str):
        return self._db.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._ref(collection, doc_id).get(transaction=self._transaction)
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def query(
        self,
        collection: str,
        where: Sequence[Where] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self._db.collection(collection), where)
        if limit:
            query = query.limit(limit)
        return [_snapshot_to_dict(doc) for doc in query.stream(transaction=self._transaction)]

    def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        ref = self._ref(collection, doc_id) if doc_id else self._db.collection(collection).document()
        self._transaction.create(ref, data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._transaction.set(self._ref(collection, doc_id), data, merge=merge)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._transaction.update(self._ref(collection, doc_id), data)

    def delete(self, collection: str, doc_id: str) -> None:
        self._transaction.delete(self._ref(collection, doc_id))
