from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any

from .models import AppSettings
from .storage import SETTINGS_KEY, StorageError, validate_record

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = frozenset(f.name for f in fields(AppSettings))


class SettingsStore:
    """Process-wide preferences, written through on every change."""

    def __init__(self, storage: Any) -> None:
        self._storage = storage
        self.settings = AppSettings()

    def load(self) -> AppSettings:
        try:
            data = self._storage.get(SETTINGS_KEY)
        except StorageError as exc:
            logger.warning("Settings unreadable, using defaults: %s", exc)
            data = None

        if data is None:
            self.settings = AppSettings()
        elif validate_record(data, "settings.schema.json"):
            logger.warning("Settings record has an unexpected shape, using defaults")
            self.settings = AppSettings()
        else:
            self.settings = AppSettings.from_dict(data)
        return self.settings

    def save(self, settings: AppSettings) -> None:
        self.settings = settings
        try:
            self._storage.set(SETTINGS_KEY, settings.to_dict())
        except StorageError as exc:
            logger.error("Failed to save settings: %s", exc)

    def update(self, **changes: Any) -> AppSettings:
        unknown = set(changes) - SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        self.save(replace(self.settings, **changes))
        return self.settings
