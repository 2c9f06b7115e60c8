import json

import pytest

from kothaboli import storyboard
from kothaboli.llm import LLMError
from kothaboli.models import AppSettings, Scene

SCENES = ["রহিম নদীর ধারে দাঁড়িয়ে।", "ঝড় ওঠে।", "নৌকা ডুবে যায়।", "ভোরের আলো।"]


def test_parse_scenes_accepts_fenced_json():
    content = "```json\n" + json.dumps(SCENES, ensure_ascii=False) + "\n```"
    assert storyboard.parse_scenes(content) == SCENES


def test_parse_scenes_rejects_bad_shapes():
    assert storyboard.parse_scenes("not json") is None
    assert storyboard.parse_scenes('{"scenes": []}') is None
    assert storyboard.parse_scenes("[]") is None


def test_prompt_truncates_input():
    text = "ক" * (storyboard.SEGMENT_INPUT_LIMIT + 100)
    prompt = storyboard.build_prompt(text)[1]["content"]
    assert "ক" * storyboard.SEGMENT_INPUT_LIMIT in prompt
    assert "ক" * (storyboard.SEGMENT_INPUT_LIMIT + 1) not in prompt


def test_build_storyboard_replaces_scenes(store, monkeypatch):
    story = store.create()
    store.update(
        story.id,
        content="একটি গল্প।",
        storyboard=[Scene(id="old", text="পুরনো", image_url="data:image/png;base64,AA==")],
    )

    def fake_chat(messages, model, temperature=0.4, top_p=None, max_tokens=None):
        return json.dumps(SCENES, ensure_ascii=False)

    monkeypatch.setattr("kothaboli.storyboard.llm.chat", fake_chat)

    updated = storyboard.build_storyboard(store)

    assert [scene.text for scene in updated.storyboard] == SCENES
    assert all(scene.image_url is None for scene in updated.storyboard)
    ids = [scene.id for scene in updated.storyboard]
    assert len(set(ids)) == len(ids)
    assert "old" not in ids


def test_build_storyboard_failure_keeps_old_scenes(store, monkeypatch):
    story = store.create()
    old = [Scene(id="old", text="পুরনো")]
    store.update(story.id, content="একটি গল্প।", storyboard=old)

    monkeypatch.setattr(
        "kothaboli.storyboard.llm.chat", lambda *args, **kwargs: "দুঃখিত, পারলাম না"
    )

    with pytest.raises(LLMError):
        storyboard.build_storyboard(store)
    assert store.get(story.id).storyboard == old


def test_build_storyboard_needs_content(store):
    store.create()
    assert storyboard.build_storyboard(store) is None


def test_illustrate_scene_sets_only_that_scene(store, monkeypatch):
    story = store.create()
    store.update(
        story.id,
        storyboard=[Scene(id="s1", text="এক"), Scene(id="s2", text="দুই")],
    )
    requests = []

    def fake_image(prompt, aspect_ratio="1:1"):
        requests.append((prompt, aspect_ratio))
        return "QUJD"

    monkeypatch.setattr("kothaboli.storyboard.llm.generate_image", fake_image)

    updated = storyboard.illustrate_scene(store, "s2")

    assert updated.storyboard[0].image_url is None
    assert updated.storyboard[1].image_url == "data:image/png;base64,QUJD"
    assert requests[0][1] == "16:9"
    assert "দুই" in requests[0][0]


def test_illustrate_unknown_scene(store):
    store.create()
    with pytest.raises(KeyError):
        storyboard.illustrate_scene(store, "missing")


def test_generate_cover(store, monkeypatch):
    story = store.create()
    store.update(story.id, title="পথের গান", synopsis="এক বালকের যাত্রা।")
    monkeypatch.setattr(
        "kothaboli.storyboard.llm.generate_image", lambda prompt, aspect_ratio: "QUJD"
    )

    updated = storyboard.generate_cover(store, AppSettings(content_filter_relaxed=True))

    assert updated.cover_image == "data:image/png;base64,QUJD"
    assert updated.is_mature is True


def test_generate_cover_absent_image(store, monkeypatch):
    store.create()
    monkeypatch.setattr(
        "kothaboli.storyboard.llm.generate_image", lambda prompt, aspect_ratio: None
    )

    with pytest.raises(LLMError):
        storyboard.generate_cover(store, AppSettings())
    assert store.active_story.cover_image is None
