"""
Firestore query helpers shared by the services.

NOTE: For the firebase_admin SDK we use positional where() arguments.
They emit a deprecation warning on newer client versions but remain fully
supported, and MockFirestore accepts the same call shape.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

# Firestore caps a write batch at 500 operations
BATCH_LIMIT = 500


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "category", "==", "Road")
        query = where_filter(query, "is_visible", "==", True)
    """
    return query.where(field_path, op_string, value)


def count_query(query) -> int:
    """Run a server-side count aggregation for a query."""
    result = query.count(alias="total").get()
    return int(result[0][0].value)


def snapshot_to_dict(doc) -> Dict[str, Any]:
    """Document snapshot to plain dict, with the document id under "id"."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def delete_documents(db, refs: Iterable) -> int:
    """Delete document references in batches. Returns how many were deleted."""
    deleted = 0
    batch = db.batch()
    pending = 0
    for ref in refs:
        batch.delete(ref)
        pending += 1
        if pending == BATCH_LIMIT:
            batch.commit()
            deleted += pending
            batch = db.batch()
            pending = 0
    if pending:
        batch.commit()
        deleted += pending
    return deleted


def to_datetime(value) -> Optional[datetime]:
    """
    Parse the timestamp shapes found in stored documents to an aware UTC datetime.

    CRITICAL: All datetimes must be timezone-aware to prevent comparison bugs.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    # Firestore Timestamp / protobuf shapes
    if hasattr(value, "ToDatetime"):
        return value.ToDatetime().replace(tzinfo=timezone.utc)
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    return None
