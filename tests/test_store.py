import pytest

from kothaboli.models import Category, Scene, Story
from kothaboli.storage import MemoryStorage
from kothaboli.store import ManuscriptStore


def stories_writes(storage):
    return storage.writes.count("stories")


def seed(storage, stories, active_id=None):
    storage.set("stories", [story.to_dict() for story in stories])
    if active_id is not None:
        storage.set("active_id", active_id)
    storage.writes.clear()


def test_create_prepends_unique_stories(store):
    created = [store.create() for _ in range(5)]

    ids = [story.id for story in store.stories]
    assert len(ids) == 5
    assert len(set(ids)) == 5
    assert ids == [story.id for story in reversed(created)]
    assert store.active_id == created[-1].id
    assert store.active_story.title == "নতুন গল্প"
    assert store.active_story.storyboard == []


def test_create_writes_active_id_immediately(store, storage):
    story = store.create()

    assert storage.get("active_id") == story.id
    assert stories_writes(storage) == 0
    assert store.saving is True


def test_updates_coalesce_into_one_write(store, storage, scheduler):
    story = store.create()
    scheduler.advance(2.0)
    storage.writes.clear()

    for count in range(1, 6):
        store.update(story.id, content="ক" * count)
        scheduler.advance(0.5)
    assert stories_writes(storage) == 0
    assert len(scheduler.live) == 1

    scheduler.advance(1.0)
    assert stories_writes(storage) == 0
    assert store.saving is True

    scheduler.advance(0.5)
    assert stories_writes(storage) == 1
    assert store.saving is False
    assert storage.get("stories")[0]["content"] == "ককককক"


def test_update_merges_and_refreshes_timestamp(store, clock):
    story = store.create()
    clock.value += 5000

    updated = store.update(story.id, title="পদ্মা", category="Novel")

    assert updated.title == "পদ্মা"
    assert updated.category is Category.NOVEL
    assert updated.content == ""
    assert updated.last_modified == story.last_modified + 5000
    assert store.get(story.id) == updated


def test_last_modified_never_moves_backwards(store, clock):
    story = store.create()
    clock.value -= 60_000

    updated = store.update(story.id, content="নতুন")

    assert updated.last_modified == story.last_modified


def test_update_unknown_id_is_noop(store, scheduler):
    assert store.update("missing", title="x") is None
    assert store.saving is False
    assert scheduler.live == []


def test_update_rejects_identity_fields(store):
    story = store.create()
    with pytest.raises(ValueError):
        store.update(story.id, id="other")
    with pytest.raises(ValueError):
        store.update(story.id, last_modified=0)


def test_update_active_without_active_story(store):
    assert store.update_active(title="x") is None


def test_storyboard_accepts_dicts(store):
    story = store.create()
    updated = store.update(story.id, storyboard=[{"id": "s1", "text": "দৃশ্য"}])
    assert updated.storyboard == [Scene(id="s1", text="দৃশ্য")]


def test_streaming_fragments_append_in_order(store):
    story = store.create()
    store.update(story.id, content="সে বলল, ")

    for fragment in ["আমি ", "যাব।"]:
        store.append_content(story.id, fragment)

    assert store.get(story.id).content.endswith("আমি যাব।")


def test_delete_active_falls_back_to_head(store, storage):
    first = store.create()
    second = store.create()
    third = store.create()

    assert store.delete(third.id) is True
    assert store.active_id == second.id
    assert storage.get("active_id") == second.id

    assert store.delete(first.id) is True
    assert store.active_id == second.id

    assert store.delete(second.id) is True
    assert store.active_id is None
    assert storage.get("active_id") is None


def test_delete_unknown_id(store):
    store.create()
    assert store.delete("missing") is False
    assert len(store.stories) == 1


def test_set_active_unknown_id(store):
    with pytest.raises(KeyError):
        store.set_active("missing")


def test_load_keeps_valid_active_id(storage, scheduler):
    stories = [Story(id="a", last_modified=2), Story(id="b", last_modified=1)]
    seed(storage, stories, active_id="b")

    store = ManuscriptStore(storage, scheduler=scheduler)
    loaded = store.load()

    assert [story.id for story in loaded] == ["a", "b"]
    assert store.active_id == "b"
    assert storage.writes == []


def test_load_repairs_dangling_active_id(storage, scheduler):
    seed(storage, [Story(id="a"), Story(id="b")], active_id="deleted")

    store = ManuscriptStore(storage, scheduler=scheduler)
    store.load()

    assert store.active_id == "a"
    assert storage.get("active_id") == "a"


def test_load_empty_collection_clears_active_id(storage, scheduler):
    seed(storage, [], active_id="deleted")

    store = ManuscriptStore(storage, scheduler=scheduler)
    assert store.load() == []
    assert store.active_id is None
    assert storage.get("active_id") is None


def test_load_without_active_id_picks_first(storage, scheduler):
    seed(storage, [Story(id="a"), Story(id="b")])

    store = ManuscriptStore(storage, scheduler=scheduler)
    store.load()

    assert store.active_id == "a"


def test_load_corrupt_record_is_empty(storage, scheduler):
    storage.records["stories"] = "{not json"
    storage.records["active_id"] = "[1, 2"

    store = ManuscriptStore(storage, scheduler=scheduler)

    assert store.load() == []
    assert store.active_id is None


def test_load_unexpected_shape_is_empty(storage, scheduler):
    storage.set("stories", {"id": "a"})

    store = ManuscriptStore(storage, scheduler=scheduler)

    assert store.load() == []


def test_load_drops_malformed_and_duplicate_stories(storage, scheduler):
    good = Story(id="a", title="ভালো").to_dict()
    duplicate = Story(id="a", title="আবার").to_dict()
    storage.set("stories", [good, {"title": "no id"}, duplicate, {"id": "c", "category": "Epic"}])

    store = ManuscriptStore(storage, scheduler=scheduler)
    loaded = store.load()

    assert [story.title for story in loaded] == ["ভালো"]


def test_persist_round_trip(store, storage, scheduler):
    story = store.create()
    store.update(
        story.id,
        title="শেষ বিকেল",
        author="অনামিকা",
        content="প্রথম লাইন\nদ্বিতীয় লাইন",
        storyboard=[Scene(id="s1", text="দৃশ্য এক", image_url="data:image/png;base64,AA==")],
        is_mature=False,
    )
    store.persist()
    assert store.saving is False
    assert scheduler.live == []

    reloaded = ManuscriptStore(storage, scheduler=scheduler)
    reloaded.load()

    assert reloaded.stories == store.stories
    assert reloaded.active_id == story.id


def test_flush_writes_only_when_pending(store, storage):
    assert store.flush() is False

    store.create()
    assert store.flush() is True
    assert stories_writes(storage) == 1
    assert store.flush() is False


def test_storage_failure_keeps_memory_state(scheduler, clock):
    storage = MemoryStorage(fail_writes=True)
    store = ManuscriptStore(storage, scheduler=scheduler, clock=clock)

    story = store.create()
    store.update(story.id, content="হারাবে না")
    scheduler.advance(2.0)

    assert store.saving is False
    assert store.last_error is not None
    assert store.get(story.id).content == "হারাবে না"

    storage.fail_writes = False
    store.update(story.id, content="এবার থাকবে")
    scheduler.advance(2.0)

    assert store.last_error is None
    assert storage.get("stories")[0]["content"] == "এবার থাকবে"


def test_interval_change_applies_to_next_write(store, storage, scheduler):
    store.set_auto_save_interval(5000)
    store.create()

    scheduler.advance(2.0)
    assert stories_writes(storage) == 0
    scheduler.advance(3.0)
    assert stories_writes(storage) == 1
