"""Unit tests for the session status machine and per-project store."""

import pytest

from chkd.errors import InvalidTransition
from chkd.models import Session
from chkd.session import ProjectState, SessionMachine, SessionStore


class TestSessionMachine:
    """Allowed and rejected status triggers."""

    def test_initial_state_follows_session(self):
        machine = SessionMachine(Session(status="rework"))
        assert machine.state == "rework"

    def test_begin_task_updates_session_status(self):
        session = Session()
        machine = SessionMachine(session)
        machine.fire("begin_task")
        assert session.status == "building"

    @pytest.mark.parametrize("trigger,dest", [
        ("begin_task", "building"),
        ("begin_impromptu", "impromptu"),
        ("begin_debug", "debugging"),
    ])
    def test_idle_entry_points(self, trigger, dest):
        session = Session()
        SessionMachine(session).fire(trigger)
        assert session.status == dest

    def test_idle_triggers(self):
        machine = SessionMachine(Session())
        assert sorted(machine.available_triggers()) == ["begin_debug", "begin_impromptu", "begin_task"]

    def test_review_loop(self):
        session = Session()
        machine = SessionMachine(session)
        for trigger, expected in [
            ("begin_task", "building"),
            ("request_review", "ready_for_testing"),
            ("send_back", "rework"),
            ("request_review", "ready_for_testing"),
            ("approve", "complete"),
            ("finish", "idle"),
        ]:
            machine.fire(trigger)
            assert session.status == expected

    def test_invalid_trigger_raises(self):
        session = Session()
        machine = SessionMachine(session)
        with pytest.raises(InvalidTransition) as excinfo:
            machine.fire("approve")
        assert excinfo.value.details == {"status": "idle", "trigger": "approve"}
        assert session.status == "idle"

    def test_cannot_begin_twice(self):
        machine = SessionMachine(Session())
        machine.fire("begin_task")
        assert not machine.can("begin_task")
        assert not machine.can("begin_debug")

    @pytest.mark.parametrize("status", [
        "building", "debugging", "impromptu", "ready_for_testing", "rework", "complete",
    ])
    def test_finish_from_every_active_status(self, status):
        session = Session(status=status)
        SessionMachine(session).fire("finish")
        assert session.status == "idle"

    def test_idle_cannot_finish(self):
        assert not SessionMachine(Session()).can("finish")

    def test_on_transition_callback(self):
        calls = []
        machine = SessionMachine(Session(), on_transition=lambda *args: calls.append(args))
        machine.fire("begin_debug")
        assert calls == [("idle", "debugging", "begin_debug")]

    def test_resyncs_after_direct_reset(self):
        session = Session()
        machine = SessionMachine(session)
        machine.fire("begin_task")
        session.clear()
        assert machine.can("begin_task")
        machine.fire("begin_task")
        assert session.status == "building"


class TestProjectState:
    def test_reset_clears_session_but_keeps_anchor(self):
        state = ProjectState(root="/tmp/project")
        state.machine.fire("begin_task")
        state.session.iteration = 4
        state.reset()
        assert state.session.status == "idle"
        assert state.session.iteration == 1
        assert state.machine.can("begin_task")


class TestSessionStore:
    """Per-project isolation."""

    def test_same_root_same_state(self, tmp_path):
        store = SessionStore()
        assert store.get(tmp_path) is store.get(str(tmp_path))

    def test_equivalent_paths_share_state(self, tmp_path):
        store = SessionStore()
        (tmp_path / "a").mkdir()
        assert store.get(tmp_path / "a") is store.get(tmp_path / "a" / ".." / "a")

    def test_projects_are_isolated(self, tmp_path):
        store = SessionStore()
        first = store.get(tmp_path / "one")
        second = store.get(tmp_path / "two")
        first.machine.fire("begin_task")
        first.last_tick_at = 123.0
        assert second.session.status == "idle"
        assert second.last_tick_at is None
        assert store.projects() == sorted([first.root, second.root])

    def test_separate_stores_share_nothing(self, tmp_path):
        assert SessionStore().get(tmp_path) is not SessionStore().get(tmp_path)

    def test_discard(self, tmp_path):
        store = SessionStore()
        state = store.get(tmp_path)
        store.discard(tmp_path)
        assert store.get(tmp_path) is not state
