"""Administrator JSON backup and restore.

Backup shape:
    {"metadata": {"createdAt", "version", "collections", "counts"},
     "data": {"<collection>": [{"id": ..., <fields>}, ...]}}

Timestamps are written as "YYYY-MM-DDTHH:MM:SS.mmmZ" and turned back into
datetimes on restore. Restore reports per-document failures as warnings
instead of aborting.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from board.core.errors import BoardError, ValidationError
from board.services.firebase._client import get_store, Collections, MAX_BATCH_SIZE
from board.services.firebase._retry import with_store_retry
from board.utils.logging import get_logger, log_duration
from .auth import AdminSession, require_admin

logger = get_logger()

BACKUP_VERSION = "1.0"

DEFAULT_COLLECTIONS = (
    Collections.POSTS,
    Collections.COMMENTS,
    Collections.SETTINGS,
    Collections.BOOKMARKS,
)

# Fields parsed as dates even when they do not match ISO_TIMESTAMP_RE
DATE_FIELDS = frozenset({"createdAt", "updatedAt", "editedAt"})

ISO_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,3}))?Z$"
)


@dataclass
class RestoreResult:
    """Outcome of restore_data."""
    success: bool
    message: str
    restored_counts: Dict[str, int] = field(default_factory=dict)
    failed_counts: Dict[str, int] = field(default_factory=dict)
    skipped_counts: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "restoredCounts": self.restored_counts,
            "failedCounts": self.failed_counts,
            "skippedCounts": self.skipped_counts,
            "warnings": self.warnings,
        }


# ==================== Timestamp conversion ====================

def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, None if it is not one."""
    match = ISO_TIMESTAMP_RE.match(text)
    if match:
        year, month, day, hour, minute, second, fraction = match.groups()
        try:
            return datetime(
                int(year), int(month), int(day), int(hour), int(minute), int(second),
                int((fraction or "0").ljust(3, "0")) * 1000,
                tzinfo=timezone.utc,
            )
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_backup_value(value: Any) -> Any:
    """Convert store values to JSON-safe values."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict):
        return {k: to_backup_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_backup_value(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def from_backup_value(value: Any, key: Optional[str] = None) -> Any:
    """Convert JSON values back, turning timestamp strings into datetimes."""
    if isinstance(value, dict):
        return {k: from_backup_value(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [from_backup_value(v) for v in value]
    if isinstance(value, str):
        if ISO_TIMESTAMP_RE.match(value) or key in DATE_FIELDS:
            parsed = parse_timestamp(value)
            if parsed is not None:
                return parsed
    return value


# ==================== Backup ====================

@with_store_retry(policy="admin", failure_message="Could not read data for backup. Please try again later.")
async def _fetch_page(collection: str, start_after: Optional[str]) -> List[Dict[str, Any]]:
    return get_store().query(collection, limit=MAX_BATCH_SIZE, start_after=start_after)


async def _fetch_collection(collection: str) -> List[Dict[str, Any]]:
    documents = []
    last_id = None
    while True:
        page = await _fetch_page(collection, last_id)
        documents.extend(page)
        if len(page) < MAX_BATCH_SIZE:
            return documents
        last_id = page[-1]["id"]


async def backup_data(
    session: AdminSession,
    collections: Optional[Sequence[str]] = None,
    include_users: bool = False,
) -> Dict[str, Any]:
    """Dump collections into a backup document.

    Args:
        collections: Collections to include (default posts, comments,
            settings, bookmarks)
        include_users: Include the users collection; it is skipped otherwise
            even when listed

    Returns:
        Backup dict with metadata and data
    """
    require_admin(session)
    names = [c for c in (collections or DEFAULT_COLLECTIONS) if c != Collections.USERS]
    if include_users:
        names.append(Collections.USERS)

    data = {}
    with log_duration(logger, "backup", collections=names):
        for name in dict.fromkeys(names):
            docs = await _fetch_collection(name)
            data[name] = [to_backup_value(doc) for doc in docs]

    backup = {
        "metadata": {
            "createdAt": format_timestamp(datetime.now(timezone.utc)),
            "version": BACKUP_VERSION,
            "collections": list(data),
            "counts": {name: len(docs) for name, docs in data.items()},
        },
        "data": data,
    }
    logger.info("backup_created", by=session.id, counts=backup["metadata"]["counts"])
    return backup


async def backup_json(session: AdminSession, **kwargs) -> str:
    """backup_data serialized as indented JSON."""
    return json.dumps(await backup_data(session, **kwargs), ensure_ascii=False, indent=2)


# ==================== Restore ====================

@with_store_retry(policy="admin", failure_message="Could not clear the collection. Please try again later.")
async def _delete_page(collection: str) -> int:
    store = get_store()
    docs = store.query(collection, limit=MAX_BATCH_SIZE)
    return store.delete_many(collection, [d["id"] for d in docs])


async def clear_collection(collection: str) -> int:
    """Delete every document of a collection, 500 per batch.

    Returns:
        Number of documents deleted
    """
    total = 0
    while True:
        deleted = await _delete_page(collection)
        total += deleted
        if deleted < MAX_BATCH_SIZE:
            break
    logger.info("collection_cleared", collection=collection, deleted=total)
    return total


@with_store_retry(policy="admin", failure_message="Could not check an existing document. Please try again later.")
async def _document_exists(collection: str, doc_id: str) -> bool:
    return get_store().get(collection, doc_id) is not None


@with_store_retry(policy="admin", failure_message="Could not write a restored document. Please try again later.")
async def _write_document(collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    get_store().set(collection, doc_id, data)


def _load_backup(payload: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError("Backup is not valid JSON. Check the backup file.") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise ValidationError("Backup format is invalid: missing data section.")
    return payload


async def restore_data(
    session: AdminSession,
    payload: Union[str, bytes, Dict[str, Any]],
    collections: Optional[Sequence[str]] = None,
    overwrite: bool = False,
    delete_before_restore: bool = False,
) -> RestoreResult:
    """Restore documents from a backup.

    Args:
        payload: Backup JSON text or already-parsed dict
        collections: Collections to restore (default posts, comments,
            settings, bookmarks); those absent from the backup are ignored
        overwrite: Replace existing documents (otherwise they are skipped)
        delete_before_restore: Clear each target collection first

    Returns:
        RestoreResult with per-collection counts and warnings

    Raises:
        ValidationError: If payload is not a valid backup
    """
    require_admin(session)
    backup = _load_backup(payload)
    metadata = backup.get("metadata") or {}
    logger.info(
        "restore_started",
        by=session.id,
        version=metadata.get("version", "unknown"),
        backup_created_at=metadata.get("createdAt", "unknown"),
    )

    result = RestoreResult(success=True, message="")
    for name in collections or DEFAULT_COLLECTIONS:
        items = backup["data"].get(name)
        if items is None:
            continue
        if not isinstance(items, list):
            result.warnings.append(f"{name}: expected a list of documents, skipped.")
            continue

        if delete_before_restore:
            try:
                await clear_collection(name)
            except BoardError as e:
                logger.warning("restore_clear_failed", collection=name, error=e.message[:100])
                result.warnings.append(f"{name}: could not clear the collection first; restored data may be mixed.")

        restored = failed = skipped = 0
        for item in items:
            doc_id = item.get("id") if isinstance(item, dict) else None
            if not doc_id:
                failed += 1
                result.warnings.append(f"{name}: document without id skipped.")
                continue
            try:
                if not overwrite and await _document_exists(name, doc_id):
                    skipped += 1
                    continue
                fields = {k: v for k, v in item.items() if k != "id"}
                await _write_document(name, doc_id, from_backup_value(fields))
                restored += 1
            except (BoardError, ValueError, TypeError) as e:
                failed += 1
                message = e.message if isinstance(e, BoardError) else str(e)
                result.warnings.append(f"{name}/{doc_id}: restore failed: {message[:200]}")
                logger.warning("restore_document_failed", collection=name, doc_id=doc_id, error=message[:100])

        result.restored_counts[name] = restored
        result.failed_counts[name] = failed
        result.skipped_counts[name] = skipped

    total_failed = sum(result.failed_counts.values())
    if total_failed:
        result.warnings.append(f"{total_failed} document(s) failed to restore.")
    result.message = (
        "Restore completed with warnings." if result.warnings else "Restore completed successfully."
    )
    logger.info(
        "restore_completed",
        by=session.id,
        restored=result.restored_counts,
        failed=result.failed_counts,
        skipped=result.skipped_counts,
        warnings=len(result.warnings),
    )
    return result
