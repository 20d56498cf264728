"""Settings singleton persistence; reads create the document on first use."""

from __future__ import annotations

from typing import Any

from rbac.auth.models import utc_now
from rbac.settings.models import DEFAULT_SETTINGS, SETTINGS_ID, Settings
from rbac.storage.documents import DocumentStore


class SettingsRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._settings = store.collection("settings")

    def get(self) -> Settings:
        now = utc_now()
        doc = self._settings.upsert_one(
            {"setting_id": SETTINGS_ID},
            {"$setOnInsert": {**DEFAULT_SETTINGS, "created_at": now, "updated_at": now}},
        )
        return Settings.model_validate(doc)

    def update(self, changes: dict[str, Any], *, updated_by: str | None = None) -> Settings:
        now = utc_now()
        fields = {**changes, "updated_at": now, "updated_by": updated_by}
        doc = self._settings.upsert_one(
            {"setting_id": SETTINGS_ID},
            {
                "$set": fields,
                "$setOnInsert": {
                    **{k: v for k, v in DEFAULT_SETTINGS.items() if k not in fields},
                    "created_at": now,
                },
            },
        )
        return Settings.model_validate(doc)
