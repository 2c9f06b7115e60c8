"""Application context tying settings and stories to one storage root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .debounce import Scheduler
from .dialogue import format_dialogue
from .models import AppSettings, Story
from .settings import SettingsStore
from .storage import KeyValueStorage
from .store import ManuscriptStore

logger = logging.getLogger(__name__)


class Workspace:
    """Owns the settings and manuscript stores for one session.

    ``open()`` loads settings first so the store is built with the saved
    auto-save interval; ``close()`` flushes any pending write.
    """

    def __init__(
        self,
        root: Path,
        storage: Any | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.root = root
        self.storage = storage if storage is not None else KeyValueStorage(root)
        self._scheduler = scheduler
        self.settings_store = SettingsStore(self.storage)
        self.store: ManuscriptStore | None = None

    @property
    def settings(self) -> AppSettings:
        return self.settings_store.settings

    def open(self) -> Workspace:
        settings = self.settings_store.load()
        self.store = ManuscriptStore(
            self.storage,
            auto_save_interval_ms=settings.auto_save_interval_ms,
            scheduler=self._scheduler,
        )
        self.store.load()
        logger.debug("Opened workspace at %s", self.root)
        return self

    def close(self) -> None:
        if self.store is not None:
            self.store.flush()

    def __enter__(self) -> Workspace:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def update_settings(self, **changes: Any) -> AppSettings:
        settings = self.settings_store.update(**changes)
        if self.store is not None:
            self.store.set_auto_save_interval(settings.auto_save_interval_ms)
        return settings

    def format_active_dialogue(self) -> Story | None:
        if self.store is None:
            return None
        story = self.store.active_story
        if story is None:
            return None
        formatted = format_dialogue(story.content)
        if formatted == story.content:
            return story
        return self.store.update(story.id, content=formatted)
