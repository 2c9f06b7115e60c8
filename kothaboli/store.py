"""In-memory story collection with debounced durable persistence."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable

from .debounce import Debouncer, Scheduler
from .models import (
    DEFAULT_AUTO_SAVE_INTERVAL_MS,
    EDITABLE_FIELDS,
    Category,
    Scene,
    Story,
    new_id,
    now_ms,
)
from .storage import ACTIVE_ID_KEY, STORIES_KEY, StorageError, validate_record

logger = logging.getLogger(__name__)

STORIES_SCHEMA = "stories.schema.json"


class ManuscriptStore:
    """Single source of truth for stories and the active-story pointer.

    Every mutation schedules a trailing-edge debounced write of the whole
    collection. The active id is written immediately whenever it changes.
    Storage failures are logged and recorded in ``last_error``; the
    in-memory collection is never discarded because of them.
    """

    def __init__(
        self,
        storage: Any,
        auto_save_interval_ms: int = DEFAULT_AUTO_SAVE_INTERVAL_MS,
        scheduler: Scheduler | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = threading.RLock()
        self._stories: list[Story] = []
        self._active_id: str | None = None
        self._saving = False
        self.last_error: StorageError | None = None
        self._debouncer = Debouncer(
            self._write_scheduled, auto_save_interval_ms / 1000.0, scheduler
        )

    @property
    def stories(self) -> list[Story]:
        with self._lock:
            return list(self._stories)

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active_story(self) -> Story | None:
        with self._lock:
            return self._find(self._active_id) if self._active_id else None

    @property
    def saving(self) -> bool:
        return self._saving

    def set_auto_save_interval(self, interval_ms: int) -> None:
        self._debouncer.delay_seconds = interval_ms / 1000.0

    def get(self, story_id: str) -> Story | None:
        with self._lock:
            return self._find(story_id)

    def load(self) -> list[Story]:
        with self._lock:
            self._stories = self._read_stories()
            stored_active = self._read_active_id()
            if stored_active is not None and self._find(stored_active) is not None:
                self._active_id = stored_active
            else:
                self._active_id = self._stories[0].id if self._stories else None
                if self._active_id != stored_active:
                    logger.info(
                        "Active story %r not found, reopening %r", stored_active, self._active_id
                    )
                    self._write_active_id()
            return list(self._stories)

    def create(self) -> Story:
        with self._lock:
            story = Story(id=self._unique_id(), last_modified=self._clock())
            self._stories.insert(0, story)
            self._mark_dirty()
            self._set_active(story.id)
            return story

    def update(self, story_id: str, **changes: Any) -> Story | None:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update story fields: {', '.join(sorted(unknown))}")
        if "category" in changes:
            changes["category"] = Category(changes["category"])
        if "storyboard" in changes:
            changes["storyboard"] = [_as_scene(item) for item in changes["storyboard"]]

        with self._lock:
            for index, story in enumerate(self._stories):
                if story.id == story_id:
                    updated = replace(
                        story,
                        **changes,
                        last_modified=max(self._clock(), story.last_modified),
                    )
                    self._stories[index] = updated
                    self._mark_dirty()
                    return updated
        return None

    def update_active(self, **changes: Any) -> Story | None:
        with self._lock:
            if self._active_id is None:
                return None
            return self.update(self._active_id, **changes)

    def append_content(self, story_id: str, fragment: str) -> Story | None:
        with self._lock:
            story = self._find(story_id)
            if story is None:
                return None
            return self.update(story_id, content=story.content + fragment)

    def delete(self, story_id: str) -> bool:
        with self._lock:
            remaining = [story for story in self._stories if story.id != story_id]
            if len(remaining) == len(self._stories):
                return False
            self._stories = remaining
            self._mark_dirty()
            if self._active_id == story_id:
                self._set_active(remaining[0].id if remaining else None)
            return True

    def set_active(self, story_id: str | None) -> None:
        with self._lock:
            if story_id is not None and self._find(story_id) is None:
                raise KeyError(f"No story with id {story_id}")
            self._set_active(story_id)

    def persist(self) -> None:
        """Write the collection and active id now, replacing any pending write."""
        with self._lock:
            self._debouncer.cancel()
            self._write()

    def flush(self) -> bool:
        """Write only if a debounced write is pending."""
        with self._lock:
            if not self._saving:
                return False
            self.persist()
            return True

    def _find(self, story_id: str | None) -> Story | None:
        for story in self._stories:
            if story.id == story_id:
                return story
        return None

    def _unique_id(self) -> str:
        story_id = new_id()
        while self._find(story_id) is not None:
            story_id = new_id()
        return story_id

    def _set_active(self, story_id: str | None) -> None:
        if story_id == self._active_id:
            return
        self._active_id = story_id
        self._write_active_id()

    def _mark_dirty(self) -> None:
        self._saving = True
        self._debouncer.trigger()

    def _write_scheduled(self) -> None:
        with self._lock:
            # persist() may have written while this timer waited on the lock.
            if not self._saving:
                return
            self._write()

    def _write(self) -> None:
        payload = [story.to_dict() for story in self._stories]
        try:
            self._storage.set(STORIES_KEY, payload)
            self._write_active_id(raise_errors=True)
        except StorageError as exc:
            self.last_error = exc
            logger.error("Failed to save stories: %s", exc)
        else:
            self.last_error = None
            logger.debug("Saved %d stories", len(payload))
        finally:
            self._saving = False

    def _write_active_id(self, raise_errors: bool = False) -> None:
        try:
            if self._active_id is None:
                self._storage.remove(ACTIVE_ID_KEY)
            else:
                self._storage.set(ACTIVE_ID_KEY, self._active_id)
        except StorageError as exc:
            if raise_errors:
                raise
            self.last_error = exc
            logger.error("Failed to save active story id: %s", exc)

    def _read_stories(self) -> list[Story]:
        try:
            data = self._storage.get(STORIES_KEY)
        except StorageError as exc:
            logger.warning("Stories record unreadable, starting empty: %s", exc)
            return []
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Stories record is not a list, starting empty")
            return []

        if validate_record(data, STORIES_SCHEMA):
            valid = [item for item in data if not validate_record([item], STORIES_SCHEMA)]
            logger.warning("Dropped %d malformed stories", len(data) - len(valid))
            data = valid

        stories: list[Story] = []
        seen: set[str] = set()
        for item in data:
            story = Story.from_dict(item)
            if story.id in seen:
                logger.warning("Dropped story with duplicate id %r", story.id)
                continue
            seen.add(story.id)
            stories.append(story)
        return stories

    def _read_active_id(self) -> str | None:
        try:
            value = self._storage.get(ACTIVE_ID_KEY)
        except StorageError as exc:
            logger.warning("Active story id unreadable: %s", exc)
            return None
        return value if isinstance(value, str) else None


def _as_scene(item: Scene | dict[str, Any]) -> Scene:
    if isinstance(item, Scene):
        return item
    return Scene.from_dict(item)
