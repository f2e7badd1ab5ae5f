"""
In-memory Firestore stand-in for local development and tests.

Selected with USE_MOCK_DB=true. Implements the subset of the
google-cloud-firestore client API that CivicTrack uses:

- collection(name).document(id?) references
- get / set / create / update / delete (with exists and last_update_time
  preconditions; snapshots carry update_time)
- where / order_by / offset / limit / stream / count queries
- write batches
- SERVER_TIMESTAMP and Increment transforms

Errors are raised with the same google.api_core exception types the real
client raises (AlreadyExists on create, NotFound on update/delete,
FailedPrecondition on a stale last_update_time), so
services handle both backends identically.

Optionally persists to a JSON file (MOCK_DB_PATH) after each write.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as gexc

logger = logging.getLogger(__name__)

_MISSING = object()

_DATETIME_TAG = "__datetime__"


def _get_path(data: Dict, field_path: str) -> Any:
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data: Dict, field_path: str, value: Any) -> None:
    parts = field_path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _delete_path(data: Dict, field_path: str) -> None:
    parts = field_path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)


def _order_key(value: Any) -> Tuple:
    # Firestore orders null before any other value
    return (0, 0) if value is None else (1, value)


def _resolve_value(existing: Any, value: Any) -> Any:
    """Apply Firestore transforms (SERVER_TIMESTAMP, Increment) to a value."""
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, firestore.Increment):
        base = existing if isinstance(existing, (int, float)) and not isinstance(existing, bool) else 0
        return base + value.value
    if isinstance(value, dict):
        return {k: _resolve_value(_MISSING, v) for k, v in value.items()}
    return copy.deepcopy(value)


class _WriteOption:
    """Mirror of firestore ExistsOption / LastUpdateOption (write preconditions)."""

    def __init__(self, exists: Optional[bool] = None, last_update_time: Optional[datetime] = None):
        self._exists = exists
        self._last_update_time = last_update_time


class MockDocumentSnapshot:
    def __init__(
        self,
        reference: "MockDocumentReference",
        data: Optional[Dict],
        update_time: Optional[datetime] = None,
    ):
        self.reference = reference
        self._data = data
        self.update_time = update_time

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        if self._data is None:
            return None
        value = _get_path(self._data, field_path)
        return None if value is _MISSING else copy.deepcopy(value)


class MockDocumentReference:
    def __init__(self, client: "MockFirestore", collection: str, doc_id: str):
        self._client = client
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self, field_paths=None, transaction=None) -> MockDocumentSnapshot:
        data, update_time = self._client._read(self._collection, self.id)
        return MockDocumentSnapshot(self, data, update_time)

    def set(self, document_data: Dict, merge: bool = False) -> None:
        self._client._write("set", self._collection, self.id, document_data, merge=merge)

    def create(self, document_data: Dict) -> None:
        self._client._write("create", self._collection, self.id, document_data)

    def update(self, field_updates: Dict, option=None) -> None:
        self._client._write("update", self._collection, self.id, field_updates, option=option)

    def delete(self, option=None) -> None:
        self._client._write("delete", self._collection, self.id, None, option=option)


class _AggregationResult:
    def __init__(self, alias: str, value: int):
        self.alias = alias
        self.value = value


class _CountQuery:
    def __init__(self, query: "MockQuery", alias: str):
        self._query = query
        self._alias = alias

    def get(self, transaction=None) -> List[List[_AggregationResult]]:
        total = sum(1 for _ in self._query.stream())
        return [[_AggregationResult(self._alias, total)]]


class MockQuery:
    _OPERATORS = {
        "==": lambda a, b: a == b,
        "!=": lambda a, b: a != b,
        "<": lambda a, b: a < b,
        "<=": lambda a, b: a <= b,
        ">": lambda a, b: a > b,
        ">=": lambda a, b: a >= b,
        "in": lambda a, b: a in b,
        "not-in": lambda a, b: a not in b,
        "array_contains": lambda a, b: isinstance(a, list) and b in a,
    }

    def __init__(
        self,
        client: "MockFirestore",
        collection: str,
        filters: Tuple = (),
        orders: Tuple = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ):
        self._client = client
        self._collection = collection
        self._filters = filters
        self._orders = orders
        self._offset = offset
        self._limit = limit

    def _copy(self, **changes) -> "MockQuery":
        params = {
            "filters": self._filters,
            "orders": self._orders,
            "offset": self._offset,
            "limit": self._limit,
        }
        params.update(changes)
        return MockQuery(self._client, self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        if op_string not in self._OPERATORS:
            raise ValueError(f"Unsupported operator: {op_string}")
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = firestore.Query.ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + ((field_path, direction),))

    def offset(self, num_to_skip: int) -> "MockQuery":
        return self._copy(offset=num_to_skip)

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit=count)

    def count(self, alias: Optional[str] = None) -> _CountQuery:
        return _CountQuery(self._copy(offset=0, limit=None), alias or "count")

    def _matches(self, data: Dict) -> bool:
        for field_path, op_string, value in self._filters:
            current = _get_path(data, field_path)
            if current is _MISSING:
                return False
            try:
                if not self._OPERATORS[op_string](current, value):
                    return False
            except TypeError:
                return False
        return True

    def stream(self, transaction=None) -> Iterator[MockDocumentSnapshot]:
        rows = [
            (doc_id, data, update_time)
            for doc_id, data, update_time in self._client._snapshot(self._collection)
            if self._matches(data)
        ]

        # Firestore drops documents missing an order_by field
        for field_path, _ in self._orders:
            rows = [row for row in rows if _get_path(row[1], field_path) is not _MISSING]

        for field_path, direction in reversed(self._orders):
            rows.sort(
                key=lambda row: _order_key(_get_path(row[1], field_path)),
                reverse=direction == firestore.Query.DESCENDING,
            )
        if not self._orders:
            rows.sort(key=lambda row: row[0])

        rows = rows[self._offset:]
        if self._limit is not None:
            rows = rows[: self._limit]

        for doc_id, data, update_time in rows:
            ref = MockDocumentReference(self._client, self._collection, doc_id)
            yield MockDocumentSnapshot(ref, data, update_time)

    def get(self, transaction=None) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, client: "MockFirestore", name: str):
        super().__init__(client, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        if document_id is None:
            document_id = uuid.uuid4().hex[:20]
        return MockDocumentReference(self._client, self._collection, document_id)


class MockWriteBatch:
    """Buffered writes applied together on commit()."""

    def __init__(self, client: "MockFirestore"):
        self._client = client
        self._ops: List[Tuple] = []

    def set(self, reference: MockDocumentReference, document_data: Dict, merge: bool = False):
        self._ops.append(("set", reference, document_data, {"merge": merge}))
        return self

    def create(self, reference: MockDocumentReference, document_data: Dict):
        self._ops.append(("create", reference, document_data, {}))
        return self

    def update(self, reference: MockDocumentReference, field_updates: Dict, option=None):
        self._ops.append(("update", reference, field_updates, {"option": option}))
        return self

    def delete(self, reference: MockDocumentReference, option=None):
        self._ops.append(("delete", reference, None, {"option": option}))
        return self

    def commit(self):
        with self._client._lock:
            backup = copy.deepcopy(self._client._collections)
            times_backup = dict(self._client._update_times)
            try:
                for kind, ref, data, kwargs in self._ops:
                    self._client._write(kind, ref._collection, ref.id, data, persist=False, **kwargs)
            except Exception:
                self._client._collections = backup
                self._client._update_times = times_backup
                raise
            self._client._persist()
        self._ops = []
        return []


class MockFirestore:
    """Thread-safe in-memory document store with a Firestore-shaped API."""

    def __init__(self, path: Optional[str] = None):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict]] = {}
        # Document path -> last write time, strictly increasing per write
        self._update_times: Dict[str, datetime] = {}
        self._last_write_time: Optional[datetime] = None
        self._path = path
        if path and os.path.exists(path):
            self._load()

    # Public client API

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in self._collections]

    def batch(self) -> MockWriteBatch:
        return MockWriteBatch(self)

    def write_option(self, **kwargs) -> _WriteOption:
        if len(kwargs) != 1 or not set(kwargs) <= {"exists", "last_update_time"}:
            raise TypeError("write_option takes exactly one of exists or last_update_time")
        return _WriteOption(**kwargs)

    def reset(self) -> None:
        with self._lock:
            self._collections = {}
            self._update_times = {}
            self._persist()

    # Internal storage

    def _read(self, collection: str, doc_id: str) -> Tuple[Optional[Dict], Optional[datetime]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            if data is None:
                return None, None
            return copy.deepcopy(data), self._update_times.get(f"{collection}/{doc_id}")

    def _snapshot(self, collection: str) -> List[Tuple[str, Dict, Optional[datetime]]]:
        with self._lock:
            return [
                (doc_id, copy.deepcopy(data), self._update_times.get(f"{collection}/{doc_id}"))
                for doc_id, data in self._collections.get(collection, {}).items()
            ]

    def _next_write_time(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_write_time is not None and now <= self._last_write_time:
            now = self._last_write_time + timedelta(microseconds=1)
        self._last_write_time = now
        return now

    def _check_last_update(self, path: str, option) -> None:
        expected = getattr(option, "_last_update_time", None)
        if expected is not None and self._update_times.get(path) != expected:
            raise gexc.FailedPrecondition(f"Document changed since {expected.isoformat()}: {path}")

    def _write(
        self,
        kind: str,
        collection: str,
        doc_id: str,
        data: Optional[Dict],
        merge: bool = False,
        option=None,
        persist: bool = True,
    ) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            existing = docs.get(doc_id)
            path = f"{collection}/{doc_id}"

            if kind == "create":
                if existing is not None:
                    raise gexc.AlreadyExists(f"Document already exists: {path}")
                docs[doc_id] = {k: _resolve_value(_MISSING, v) for k, v in data.items()}

            elif kind == "set":
                target = copy.deepcopy(existing) if (merge and existing is not None) else {}
                for key, value in data.items():
                    target[key] = _resolve_value(target.get(key, _MISSING), value)
                docs[doc_id] = target

            elif kind == "update":
                if existing is None:
                    raise gexc.NotFound(f"No document to update: {path}")
                self._check_last_update(path, option)
                target = copy.deepcopy(existing)
                for field_path, value in data.items():
                    if value is firestore.DELETE_FIELD:
                        _delete_path(target, field_path)
                        continue
                    _set_path(target, field_path, _resolve_value(_get_path(target, field_path), value))
                docs[doc_id] = target

            elif kind == "delete":
                if existing is None and getattr(option, "_exists", None) is True:
                    raise gexc.NotFound(f"No document to delete: {path}")
                if existing is not None:
                    self._check_last_update(path, option)
                docs.pop(doc_id, None)
                self._update_times.pop(path, None)

            else:
                raise ValueError(f"Unknown write kind: {kind}")

            if kind != "delete":
                self._update_times[path] = self._next_write_time()

            if persist:
                self._persist()

    # JSON persistence

    def _persist(self) -> None:
        if not self._path:
            return
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(self._collections, f, default=_encode_json, indent=2)
        except OSError as e:
            logger.error(f"[MOCK_DB] Failed to persist mock database to {self._path}: {e}")
            raise

    def _load(self) -> None:
        with open(self._path, "r", encoding="utf-8") as f:
            self._collections = json.load(f, object_hook=_decode_json)
        logger.info(f"[MOCK_DB] Loaded mock database from {self._path}")


def _encode_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_json(obj: Dict) -> Any:
    if set(obj) == {_DATETIME_TAG}:
        return datetime.fromisoformat(obj[_DATETIME_TAG])
    return obj


_mock_db: Optional[MockFirestore] = None


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    """Get or create the process-wide MockFirestore instance."""
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestore(path)
    return _mock_db
