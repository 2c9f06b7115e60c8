"""Scene segmentation and illustration for a story's storyboard."""

from __future__ import annotations

import json
import logging

from . import llm
from .models import AppSettings, Scene, Story, new_id
from .storage import validate_record
from .store import ManuscriptStore

logger = logging.getLogger(__name__)

SEGMENT_INPUT_LIMIT = 4000
COVER_CONTEXT_CHARS = 500
SCENE_ASPECT_RATIO = "16:9"
COVER_ASPECT_RATIO = "2:3"


def build_prompt(text: str) -> list[dict[str, str]]:
    instruction = (
        "Split the following Bengali story into 4-6 key visual scenes, in "
        "narrative order. For each scene write a short 1-2 sentence "
        "description in Bengali. Return a JSON array of strings only, no "
        "extra text, no markdown fences.\n\n"
        "Story:\n"
        f"{text[:SEGMENT_INPUT_LIMIT]}"
    )
    return [
        {"role": "system", "content": "You are a careful storyboard artist."},
        {"role": "user", "content": instruction},
    ]


def parse_scenes(content: str) -> list[str] | None:
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[len("json"):]
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if validate_record(data, "storyboard.schema.json"):
        return None
    return [item.strip() for item in data]


def request_scenes(text: str, model: str | None = None) -> list[str]:
    chosen_model = model or llm.get_default_model()
    content = llm.chat(build_prompt(text), chosen_model, temperature=0.4)
    scenes = parse_scenes(content)
    if scenes is None:
        raise llm.LLMError("Scene segmentation returned an invalid response")
    return scenes


def segment(text: str, model: str | None = None) -> list[Scene]:
    return [Scene(id=new_id(), text=summary) for summary in request_scenes(text, model)]


def build_storyboard(store: ManuscriptStore, model: str | None = None) -> Story | None:
    """Replace the active story's storyboard with freshly segmented scenes."""
    story = store.active_story
    if story is None or not story.content.strip():
        return None
    scenes = segment(story.content, model)
    logger.info("Segmented story %s into %d scenes", story.id, len(scenes))
    return store.update(story.id, storyboard=scenes)


def image_data_uri(payload: str) -> str:
    return f"data:image/png;base64,{payload}"


def scene_image_prompt(scene: Scene, story: Story) -> str:
    return (
        "A cinematic illustration for a Bengali story. "
        f"Story title: {story.title}. Scene: {scene.text}"
    )


def cover_image_prompt(story: Story) -> str:
    summary = story.synopsis.strip() or story.content[:COVER_CONTEXT_CHARS]
    return (
        "A book cover illustration for a Bengali story, no text or lettering. "
        f"Title: {story.title}. Category: {story.category.value}. "
        f"Summary: {summary}"
    )


def illustrate_scene(store: ManuscriptStore, scene_id: str) -> Story | None:
    story = store.active_story
    if story is None:
        return None
    target = next((scene for scene in story.storyboard if scene.id == scene_id), None)
    if target is None:
        raise KeyError(f"No scene with id {scene_id}")

    payload = llm.generate_image(scene_image_prompt(target, story), SCENE_ASPECT_RATIO)
    if payload is None:
        raise llm.LLMError("Image generation returned no image")

    storyboard = [
        Scene(id=scene.id, text=scene.text, image_url=image_data_uri(payload))
        if scene.id == scene_id
        else scene
        for scene in story.storyboard
    ]
    return store.update(story.id, storyboard=storyboard)


def generate_cover(store: ManuscriptStore, settings: AppSettings) -> Story | None:
    story = store.active_story
    if story is None:
        return None
    payload = llm.generate_image(cover_image_prompt(story), COVER_ASPECT_RATIO)
    if payload is None:
        raise llm.LLMError("Image generation returned no image")
    return store.update(
        story.id,
        cover_image=image_data_uri(payload),
        is_mature=settings.content_filter_relaxed,
    )
