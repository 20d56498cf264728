"""Document collections with MongoDB primary and JSON-file fallback.

Repositories talk to a small collection API that mirrors the subset of
pymongo they need (``find_one``, ``find``, ``insert_one``, ``update_one`` ...).
When ``MONGODB_URI`` points at a reachable server the calls go straight to
pymongo; otherwise each collection is persisted as one JSON file under the
configured store directory and the same filter/update operators are evaluated
in process.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any, Iterable, Protocol

import pymongo
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from rbac.core.config import StorageConfig
from rbac.core.mongo_migrations import apply_mongo_migrations

LOGGER = logging.getLogger(__name__)

SortSpec = list[tuple[str, int]]


class DuplicateKeyError(Exception):
    """Raised when an insert or update violates a unique field."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"Duplicate value for {field}: {value!r}")
        self.field = field
        self.value = value


class DocumentCollection(Protocol):
    """Collection operations used by repositories."""

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        """Return first matching document or ``None``."""

    def find(
        self,
        query: dict[str, Any],
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        """Return matching documents."""

    def count(self, query: dict[str, Any]) -> int:
        """Count matching documents."""

    def insert_one(self, doc: dict[str, Any]) -> None:
        """Insert new document, raising ``DuplicateKeyError`` on unique clash."""

    def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        """Apply update to first match and return modified count."""

    def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        """Apply update to every match and return modified count."""

    def upsert_one(self, query: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        """Update first match or insert a new one, returning the result."""

    def delete_one(self, query: dict[str, Any]) -> bool:
        """Delete first match."""

    def delete_many(self, query: dict[str, Any]) -> int:
        """Delete every match and return deleted count."""

    def group_count(
        self, query: dict[str, Any], fields: tuple[str, ...]
    ) -> list[tuple[tuple[Any, ...], int]]:
        """Count matches grouped by the given fields, largest groups first."""


class MongoDocumentCollection:
    """Thin adapter over a pymongo collection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        return self._collection.find_one(query, {"_id": 0})

    def find(
        self,
        query: dict[str, Any],
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self._collection.find(query, {"_id": 0})
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, query: dict[str, Any]) -> int:
        return int(self._collection.count_documents(query))

    def insert_one(self, doc: dict[str, Any]) -> None:
        try:
            self._collection.insert_one(dict(doc))
        except MongoDuplicateKeyError as exc:
            key_value = (exc.details or {}).get("keyValue") or {}
            field, value = next(iter(key_value.items()), ("unknown", None))
            raise DuplicateKeyError(field, value) from exc

    def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        try:
            result = self._collection.update_one(query, update)
        except MongoDuplicateKeyError as exc:
            key_value = (exc.details or {}).get("keyValue") or {}
            field, value = next(iter(key_value.items()), ("unknown", None))
            raise DuplicateKeyError(field, value) from exc
        return int(result.modified_count)

    def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        return int(self._collection.update_many(query, update).modified_count)

    def upsert_one(self, query: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        doc = self._collection.find_one_and_update(
            query,
            update,
            projection={"_id": 0},
            upsert=True,
            return_document=pymongo.ReturnDocument.AFTER,
        )
        return dict(doc or {})

    def delete_one(self, query: dict[str, Any]) -> bool:
        return bool(self._collection.delete_one(query).deleted_count)

    def delete_many(self, query: dict[str, Any]) -> int:
        return int(self._collection.delete_many(query).deleted_count)

    def group_count(
        self, query: dict[str, Any], fields: tuple[str, ...]
    ) -> list[tuple[tuple[Any, ...], int]]:
        pipeline = [
            {"$match": query},
            {"$group": {"_id": {f: f"${f}" for f in fields}, "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        rows = self._collection.aggregate(pipeline)
        return [
            (tuple(row["_id"].get(f) for f in fields), int(row["count"])) for row in rows
        ]


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {"$date"}:
            return datetime.fromisoformat(value["$date"])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _lookup(doc: dict[str, Any], dotted: str) -> Any:
    node: Any = doc
    for key in dotted.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _match_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict) or not any(k.startswith("$") for k in condition):
        if isinstance(value, list) and not isinstance(condition, list):
            return condition in value
        return value == condition

    for op, operand in condition.items():
        if op == "$in":
            candidates = value if isinstance(value, list) else [value]
            if not any(item in operand for item in candidates):
                return False
        elif op == "$nin":
            candidates = value if isinstance(value, list) else [value]
            if any(item in operand for item in candidates):
                return False
        elif op == "$ne":
            if value == operand:
                return False
        elif op in {"$lt", "$lte", "$gt", "$gte"}:
            if value is None:
                return False
            try:
                ok = {
                    "$lt": value < operand,
                    "$lte": value <= operand,
                    "$gt": value > operand,
                    "$gte": value >= operand,
                }[op]
            except TypeError:
                return False
            if not ok:
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in str(condition.get("$options", "")) else 0
            if not isinstance(value, str) or not re.search(operand, value, flags):
                return False
        elif op == "$options":
            continue
        else:
            raise ValueError(f"Unsupported query operator: {op}")
    return True


def matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    """Evaluate the supported subset of Mongo query syntax against a document."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
            continue
        if not _match_condition(_lookup(doc, key), condition):
            return False
    return True


def _apply_update(doc: dict[str, Any], update: dict[str, Any]) -> bool:
    before = json.dumps(_encode(doc), sort_keys=True)
    for op, fields in update.items():
        if op == "$set":
            doc.update(fields)
        elif op == "$setOnInsert":
            continue
        elif op == "$addToSet":
            for field, spec in fields.items():
                items = spec["$each"] if isinstance(spec, dict) and "$each" in spec else [spec]
                current = list(doc.get(field) or [])
                for item in items:
                    if item not in current:
                        current.append(item)
                doc[field] = current
        elif op == "$pull":
            for field, spec in fields.items():
                drop = spec["$in"] if isinstance(spec, dict) and "$in" in spec else [spec]
                doc[field] = [item for item in (doc.get(field) or []) if item not in drop]
        else:
            raise ValueError(f"Unsupported update operator: {op}")
    return json.dumps(_encode(doc), sort_keys=True) != before


def _sort_key(field: str):
    def key(doc: dict[str, Any]) -> tuple[int, Any]:
        value = _lookup(doc, field)
        return (0, "") if value is None else (1, value)

    return key


class JsonFileDocumentCollection:
    """JSON-file collection used when MongoDB is not configured."""

    def __init__(self, path: Path, *, unique_fields: Iterable[str] = ()) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._unique_fields = tuple(unique_fields)
        self._lock = RLock()

    def _read(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("document_store_unreadable", extra={"path": str(self._path)})
            return []
        if not isinstance(payload, list):
            return []
        return [_decode(row) for row in payload if isinstance(row, dict)]

    def _write(self, items: list[dict[str, Any]]) -> None:
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps([_encode(row) for row in items], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        tmp_path.replace(self._path)

    def _check_unique(
        self, items: list[dict[str, Any]], candidate: dict[str, Any], skip_index: int = -1
    ) -> None:
        for field in self._unique_fields:
            value = candidate.get(field)
            if value in (None, ""):
                continue
            for index, row in enumerate(items):
                if index != skip_index and row.get(field) == value:
                    raise DuplicateKeyError(field, value)

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        with self._lock:
            for row in self._read():
                if matches(row, query):
                    return row
        return None

    def find(
        self,
        query: dict[str, Any],
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [row for row in self._read() if matches(row, query)]
        for field, direction in reversed(sort or []):
            rows.sort(key=_sort_key(field), reverse=direction < 0)
        rows = rows[skip:]
        return rows[:limit] if limit else rows

    def count(self, query: dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for row in self._read() if matches(row, query))

    def insert_one(self, doc: dict[str, Any]) -> None:
        with self._lock:
            items = self._read()
            self._check_unique(items, doc)
            items.append(dict(doc))
            self._write(items)

    def _update(self, query: dict[str, Any], update: dict[str, Any], *, many: bool) -> int:
        modified = 0
        with self._lock:
            items = self._read()
            for index, row in enumerate(items):
                if not matches(row, query):
                    continue
                candidate = dict(row)
                if _apply_update(candidate, update):
                    self._check_unique(items, candidate, skip_index=index)
                    items[index] = candidate
                    modified += 1
                if not many:
                    break
            if modified:
                self._write(items)
        return modified

    def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        return self._update(query, update, many=False)

    def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> int:
        return self._update(query, update, many=True)

    def upsert_one(self, query: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            items = self._read()
            for index, row in enumerate(items):
                if matches(row, query):
                    _apply_update(row, update)
                    items[index] = row
                    self._write(items)
                    return dict(row)
            doc = {k: v for k, v in query.items() if not k.startswith("$")}
            doc.update(update.get("$setOnInsert") or {})
            _apply_update(doc, {k: v for k, v in update.items() if k != "$setOnInsert"})
            items.append(doc)
            self._write(items)
            return dict(doc)

    def delete_one(self, query: dict[str, Any]) -> bool:
        with self._lock:
            items = self._read()
            for index, row in enumerate(items):
                if matches(row, query):
                    del items[index]
                    self._write(items)
                    return True
        return False

    def delete_many(self, query: dict[str, Any]) -> int:
        with self._lock:
            items = self._read()
            kept = [row for row in items if not matches(row, query)]
            deleted = len(items) - len(kept)
            if deleted:
                self._write(kept)
        return deleted

    def group_count(
        self, query: dict[str, Any], fields: tuple[str, ...]
    ) -> list[tuple[tuple[Any, ...], int]]:
        with self._lock:
            counter = Counter(
                tuple(_lookup(row, f) for f in fields)
                for row in self._read()
                if matches(row, query)
            )
        return counter.most_common()


UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("user_id", "email"),
    "roles": ("role_id", "name"),
    "permissions": ("permission_id", "name"),
    "sessions": ("session_id", "token_hash"),
    "audit_logs": ("log_id",),
    "settings": ("setting_id",),
}


class DocumentStore:
    """Named collection registry shared by all repositories."""

    def __init__(self, collections: dict[str, DocumentCollection], *, backend: str) -> None:
        self._collections = collections
        self.backend = backend
        self._client: Any | None = None

    def collection(self, name: str) -> DocumentCollection:
        return self._collections[name]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @classmethod
    def in_directory(cls, directory: Path) -> "DocumentStore":
        """Build a file-backed store rooted at ``directory``."""
        return cls(
            {
                name: JsonFileDocumentCollection(
                    directory / f"{name}.json", unique_fields=unique
                )
                for name, unique in UNIQUE_FIELDS.items()
            },
            backend="file",
        )


def open_document_store(config: StorageConfig, *, app_root: Path) -> DocumentStore:
    """Connect to MongoDB when configured, otherwise fall back to JSON files."""
    if config.mongodb_uri:
        client: Any = None
        try:
            client = pymongo.MongoClient(
                config.mongodb_uri, serverSelectionTimeoutMS=3000, tz_aware=True
            )
            client.admin.command("ping")
            db = client[config.mongodb_db]
            apply_mongo_migrations(db)
            store = DocumentStore(
                {name: MongoDocumentCollection(db[name]) for name in UNIQUE_FIELDS},
                backend="mongo",
            )
            store._client = client
            return store
        except pymongo.errors.PyMongoError:
            LOGGER.exception("mongo_unavailable_falling_back_to_file_store")
            if client is not None:
                client.close()

    return DocumentStore.in_directory((app_root / config.file_store_dir).resolve())
