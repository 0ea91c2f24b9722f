"""Unit tests for the durable handover note store."""

import json

import pytest

from chkd.errors import InvalidInput
from chkd.handover import HandoverStore
from chkd.models import HandoverNote


def make_note(task_id="sd-landing-page", note="Hero copy still needs review", created_at=100.0):
    return HandoverNote(
        task_id=task_id,
        task_title="Landing page",
        note=note,
        paused_by="user",
        created_at=created_at,
    )


class TestHandoverStore:
    """Get, set, clear and consume."""

    def test_get_missing(self, tmp_path):
        assert HandoverStore(tmp_path).get("sd-landing-page") is None

    def test_set_and_get(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note())
        note = store.get("sd-landing-page")
        assert note.note == "Hero copy still needs review"
        assert note.paused_by == "user"

    def test_set_overwrites(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note(note="first"))
        store.set(make_note(note="second"))
        assert store.get("sd-landing-page").note == "second"
        assert len(store.all()) == 1

    def test_clear(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note())
        assert store.clear("sd-landing-page") is True
        assert store.clear("sd-landing-page") is False
        assert store.get("sd-landing-page") is None

    def test_consume_returns_and_deletes(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note())
        assert store.consume("sd-landing-page").note == "Hero copy still needs review"
        assert store.consume("sd-landing-page") is None

    def test_unrelated_notes_survive_mutations(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note("sd-landing-page", "landing"))
        store.set(make_note("fe-login-form", "login"))
        store.clear("sd-landing-page")
        assert store.get("fe-login-form").note == "login"

    def test_all_sorted_by_creation(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note("b-task", created_at=2.0))
        store.set(make_note("a-task", created_at=3.0))
        store.set(make_note("c-task", created_at=1.0))
        assert [note.task_id for note in store.all()] == ["c-task", "b-task", "a-task"]

    def test_invalid_note_rejected(self, tmp_path):
        with pytest.raises(InvalidInput):
            HandoverStore(tmp_path).set(make_note(task_id=""))


class TestHandoverDurability:
    """File format and persistence."""

    def test_persists_across_instances(self, tmp_path):
        HandoverStore(tmp_path).set(make_note())
        assert HandoverStore(tmp_path).get("sd-landing-page").task_title == "Landing page"

    def test_file_holds_full_map(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note("sd-landing-page"))
        store.set(make_note("fe-login-form"))
        data = json.loads(store.path.read_text())
        assert sorted(data) == ["fe-login-form", "sd-landing-page"]
        assert data["fe-login-form"]["task_id"] == "fe-login-form"

    def test_no_temp_file_left_behind(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note())
        assert [p.name for p in tmp_path.iterdir()] == ["handover.json"]

    def test_file_removed_when_empty(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.set(make_note())
        store.clear("sd-landing-page")
        assert not store.path.exists()

    def test_creates_state_dir(self, tmp_path):
        store = HandoverStore(tmp_path / ".chkd" / "state")
        store.set(make_note())
        assert store.path.exists()

    def test_corrupt_file_raises(self, tmp_path):
        store = HandoverStore(tmp_path)
        store.path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            store.get("sd-landing-page")
