from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from rbac.core.config import StorageConfig
from rbac.storage.documents import (
    DocumentStore,
    DuplicateKeyError,
    matches,
    open_document_store,
)


def test_file_collection_persists_and_queries(tmp_path: Path) -> None:
    users = DocumentStore.in_directory(tmp_path).collection("users")
    users.insert_one({"user_id": "u1", "email": "a@example.com", "role_ids": ["r1"]})
    users.insert_one({"user_id": "u2", "email": "b@example.com", "role_ids": ["r2"]})

    reopened = DocumentStore.in_directory(tmp_path).collection("users")

    assert reopened.count({}) == 2
    assert reopened.find_one({"role_ids": "r2"})["user_id"] == "u2"
    assert [d["user_id"] for d in reopened.find({}, sort=[("email", -1)])] == ["u2", "u1"]
    assert [d["user_id"] for d in reopened.find({}, sort=[("email", 1)], skip=1)] == ["u2"]


def test_file_collection_enforces_unique_fields(tmp_path: Path) -> None:
    users = DocumentStore.in_directory(tmp_path).collection("users")
    users.insert_one({"user_id": "u1", "email": "a@example.com"})
    users.insert_one({"user_id": "u2", "email": "b@example.com"})

    with pytest.raises(DuplicateKeyError) as exc:
        users.insert_one({"user_id": "u3", "email": "a@example.com"})
    with pytest.raises(DuplicateKeyError):
        users.update_one({"user_id": "u2"}, {"$set": {"email": "a@example.com"}})

    assert exc.value.field == "email"


def test_file_collection_round_trips_datetimes(tmp_path: Path) -> None:
    sessions = DocumentStore.in_directory(tmp_path).collection("sessions")
    now = datetime.now(timezone.utc)
    sessions.insert_one({"session_id": "s1", "token_hash": "h1", "expires_at": now})

    doc = sessions.find_one({"expires_at": {"$gt": now - timedelta(seconds=1)}})

    assert doc is not None
    assert doc["expires_at"] == now


def test_file_collection_array_updates(tmp_path: Path) -> None:
    roles = DocumentStore.in_directory(tmp_path).collection("roles")
    roles.insert_one({"role_id": "r1", "name": "ops", "permission_ids": ["p1"]})

    roles.update_one({"role_id": "r1"}, {"$addToSet": {"permission_ids": {"$each": ["p1", "p2"]}}})
    roles.update_many({}, {"$pull": {"permission_ids": "p1"}})

    assert roles.find_one({"role_id": "r1"})["permission_ids"] == ["p2"]
    assert roles.update_one({"role_id": "r1"}, {"$set": {"name": "ops"}}) == 0


def test_file_collection_upsert_applies_insert_defaults_once(tmp_path: Path) -> None:
    settings = DocumentStore.in_directory(tmp_path).collection("settings")

    created = settings.upsert_one(
        {"setting_id": "global"}, {"$setOnInsert": {"app_name": "RBAC App"}}
    )
    updated = settings.upsert_one(
        {"setting_id": "global"},
        {"$set": {"company_name": "Acme"}, "$setOnInsert": {"app_name": "ignored"}},
    )

    assert created == {"setting_id": "global", "app_name": "RBAC App"}
    assert updated["app_name"] == "RBAC App"
    assert updated["company_name"] == "Acme"
    assert settings.count({}) == 1


def test_file_collection_delete_and_group_count(tmp_path: Path) -> None:
    logs = DocumentStore.in_directory(tmp_path).collection("audit_logs")
    for index, action in enumerate(["login", "login", "logout"]):
        logs.insert_one({"log_id": str(index), "action": action, "status": "success"})

    grouped = logs.group_count({"status": "success"}, ("action",))
    deleted = logs.delete_many({"action": "login"})

    assert grouped == [(("login",), 2), (("logout",), 1)]
    assert deleted == 2
    assert logs.delete_one({"log_id": "2"}) is True
    assert logs.delete_one({"log_id": "2"}) is False


def test_file_collection_handles_corrupted_file(tmp_path: Path) -> None:
    (tmp_path / "users.json").write_text("{ invalid", encoding="utf-8")

    users = DocumentStore.in_directory(tmp_path).collection("users")

    assert users.find_one({"email": "broken@example.com"}) is None


def test_matches_supports_or_regex_and_in() -> None:
    doc = {"email": "Bob@Example.com", "first_name": "Bob", "is_active": True}

    assert matches(doc, {"$or": [{"email": {"$regex": "bob@", "$options": "i"}}]})
    assert matches(doc, {"first_name": {"$in": ["Alice", "Bob"]}, "is_active": True})
    assert not matches(doc, {"first_name": {"$nin": ["Bob"]}})
    assert not matches(doc, {"last_login_at": {"$lt": datetime.now(timezone.utc)}})


def test_open_document_store_falls_back_to_files(tmp_path: Path) -> None:
    store = open_document_store(
        StorageConfig(mongodb_uri="", mongodb_db="rbac", file_store_dir="runtime/store"),
        app_root=tmp_path,
    )

    store.collection("users").insert_one({"user_id": "u1", "email": "a@example.com"})
    store.close()

    assert store.backend == "file"
    assert (tmp_path / "runtime" / "store" / "users.json").exists()
