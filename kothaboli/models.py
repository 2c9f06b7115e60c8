from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


DEFAULT_TITLE = "নতুন গল্প"
ALLOWED_AUTO_SAVE_INTERVALS_MS = (1000, 2000, 5000, 10000)
DEFAULT_AUTO_SAVE_INTERVAL_MS = 2000


class Category(str, Enum):
    SHORT_STORY = "Short Story"
    NOVEL = "Novel"
    POETRY = "Poetry"
    EXPERIMENTAL = "Experimental"


class Persona(str, Enum):
    CLASSIC = "Classic"
    THRILLER = "Thriller"
    DIALOGUE = "Dialogue"
    BOLD = "Bold"

    @property
    def mature(self) -> bool:
        return self is Persona.BOLD


class UiTheme(str, Enum):
    LIGHT = "light"
    SEPIA = "sepia"
    DARK = "dark"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid4().hex


@dataclass
class Scene:
    id: str
    text: str
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "text": self.text}
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scene:
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            image_url=data.get("imageUrl"),
        )


@dataclass
class Story:
    id: str
    title: str = DEFAULT_TITLE
    author: str = ""
    synopsis: str = ""
    content: str = ""
    category: Category = Category.SHORT_STORY
    last_modified: int = 0
    cover_image: str | None = None
    storyboard: list[Scene] = field(default_factory=list)
    is_mature: bool | None = None

    def word_count(self) -> int:
        return len(self.content.split())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "synopsis": self.synopsis,
            "content": self.content,
            "category": self.category.value,
            "lastModified": self.last_modified,
            "storyboard": [scene.to_dict() for scene in self.storyboard],
        }
        if self.cover_image is not None:
            data["coverImage"] = self.cover_image
        if self.is_mature is not None:
            data["isMature"] = self.is_mature
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Story:
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            author=data.get("author", ""),
            synopsis=data.get("synopsis", ""),
            content=data.get("content", ""),
            category=Category(data.get("category", Category.SHORT_STORY.value)),
            last_modified=int(data.get("lastModified", 0)),
            cover_image=data.get("coverImage"),
            storyboard=[Scene.from_dict(item) for item in data.get("storyboard", [])],
            is_mature=data.get("isMature"),
        )


# Fields a caller may change through ManuscriptStore.update.
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "author",
        "synopsis",
        "content",
        "category",
        "cover_image",
        "storyboard",
        "is_mature",
    }
)


@dataclass
class AppSettings:
    content_filter_relaxed: bool = False
    auto_save_interval_ms: int = DEFAULT_AUTO_SAVE_INTERVAL_MS
    ui_theme: UiTheme = UiTheme.LIGHT

    def __post_init__(self) -> None:
        if self.auto_save_interval_ms not in ALLOWED_AUTO_SAVE_INTERVALS_MS:
            allowed = ", ".join(str(value) for value in ALLOWED_AUTO_SAVE_INTERVALS_MS)
            raise ValueError(f"auto_save_interval_ms must be one of: {allowed}")
        self.ui_theme = UiTheme(self.ui_theme)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentFilterRelaxed": self.content_filter_relaxed,
            "autoSaveIntervalMs": self.auto_save_interval_ms,
            "uiTheme": self.ui_theme.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppSettings:
        defaults = cls()
        return cls(
            content_filter_relaxed=bool(
                data.get("contentFilterRelaxed", defaults.content_filter_relaxed)
            ),
            auto_save_interval_ms=int(
                data.get("autoSaveIntervalMs", defaults.auto_save_interval_ms)
            ),
            ui_theme=UiTheme(data.get("uiTheme", defaults.ui_theme.value)),
        )
