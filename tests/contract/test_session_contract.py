"""
Contract tests for checklist sessions:
completion never leaves open work underneath a done item, item lookup
follows a fixed precedence, the minimum work window is enforced to the
boundary, and queued requests are delivered exactly once.
"""

import random

import pytest

from chkd.config import EngineSettings
from chkd.engine import SessionEngine
from chkd.errors import NotFound
from chkd.models import Session
from chkd.parser import parse, serialize
from chkd.resolver import find_item
from chkd.session import SessionStore

from tests.conftest import SAMPLE_SPEC, FakeClock, write_spec


def random_checklist(rng: random.Random) -> str:
    """Build a checklist with random nesting and statuses."""
    counter = iter(range(1, 10_000))
    lines = ["# Random Project", ""]

    def add_children(depth: int) -> None:
        if depth > 3:
            return
        for _ in range(rng.randint(0, 3)):
            glyph = rng.choice([" ", " ", "~", "-"])
            lines.append(f"{'  ' * depth}- [{glyph}] Item {next(counter)}")
            add_children(depth + 1)

    for code in ("AA", "BB"):
        lines += [f"## Area {code} ({code})", ""]
        for position in range(1, rng.randint(2, 4)):
            glyph = rng.choice([" ", "~"])
            lines.append(f"- [{glyph}] **{code}.{position} Item {next(counter)}**")
            add_children(1)
        lines.append("")
    return "\n".join(lines)


class TestParseContract:
    """Parsing then serializing reproduces the document byte for byte."""

    def test_sample_round_trip(self):
        assert serialize(parse(SAMPLE_SPEC)) == SAMPLE_SPEC

    def test_crlf_round_trip(self):
        text = SAMPLE_SPEC.replace("\n", "\r\n")
        assert serialize(parse(text)) == text

    @pytest.mark.parametrize("seed", range(10))
    def test_random_round_trip(self, seed):
        text = random_checklist(random.Random(seed))
        assert serialize(parse(text)) == text


class TestCompletionContract:
    """An item can only become done once nothing beneath it is open."""

    @pytest.mark.parametrize("seed", range(20))
    def test_tick_respects_descendants(self, tmp_path, seed):
        rng = random.Random(seed)
        spec_path = write_spec(tmp_path, random_checklist(rng))
        engine = SessionEngine(
            tmp_path,
            store=SessionStore(),
            settings=EngineSettings(min_work_seconds=0, rapid_tick_seconds=0),
            clock=FakeClock(),
        )

        ids = [item.internal_id for item in parse(spec_path.read_text()).iter_items()]
        for _ in range(3):
            rng.shuffle(ids)
            for internal_id in ids:
                before = parse(spec_path.read_text()).find_by_id(internal_id)
                result = engine.tick(internal_id)
                if before.status == "done":
                    assert result.reason == "already_complete"
                elif before.incomplete_descendants():
                    assert result.reason == "incomplete_children"
                else:
                    assert result.success

        document = parse(spec_path.read_text())
        for item in document.iter_items():
            if item.status == "done":
                assert item.incomplete_descendants() == []


PRECEDENCE_SPEC = """# Precedence

## Site Design (SD)

- [ ] **SD.1 Landing page**
  - [ ] Hero banner
- [ ] **SD.2 Fix SD.1 regression**
- [ ] **SD.3 Notes on SD.9**

## Frontend (FE)

- [ ] **FE.1 Marketing**
  - [x] Hero banner
  - [ ] Hero banner
"""


class TestResolverContract:
    """The first matching rule wins and explicit ids never fall back."""

    @pytest.fixture
    def document(self):
        return parse(PRECEDENCE_SPEC)

    def test_explicit_id_beats_title(self, document):
        # "SD.1" is also a substring of the SD.2 title
        assert find_item(document, "SD.1").internal_id == "sd-landing-page"
        assert find_item(document, "SD.2").title == "Fix SD.1 regression"
        assert find_item(document, "sd.1 regression").internal_id == "sd-fix-sd-1-regression"

    def test_explicit_miss_does_not_fall_back(self, document):
        with pytest.raises(NotFound):
            find_item(document, "SD.9")

    def test_current_task_subtree_first(self, document):
        task = document.find_by_id("fe-marketing")
        session = Session(status="building", current_task=task.to_ref())
        assert find_item(document, "hero", session).internal_id == "fe-marketing-hero-banner-2"

    def test_document_order_without_task(self, document):
        assert find_item(document, "hero").internal_id == "sd-landing-page-hero-banner"

    def test_done_items_need_ids(self, document):
        assert find_item(document, "fe-marketing-hero-banner").status == "done"


class TestDebounceContract:
    """Ticking the working item is refused until the window has fully elapsed."""

    @pytest.fixture
    def engine(self, project, clock):
        engine = SessionEngine(project, store=SessionStore(), settings=EngineSettings(), clock=clock)
        engine.start("SD.1")
        engine.working("hero")
        return engine

    def test_just_before_window(self, engine, clock):
        started = engine.session.current_item.started_at
        clock.now = started + 9.999
        result = engine.tick("hero")
        assert result.reason == "debounced"
        assert result["remaining_seconds"] == 1

    def test_at_window(self, engine, clock):
        clock.now = engine.session.current_item.started_at + 10
        assert engine.tick("hero").success

    def test_just_after_window(self, engine, clock):
        clock.now = engine.session.current_item.started_at + 10.001
        assert engine.tick("hero").success


class TestQueueContract:
    """Queued requests surface on exactly one tick."""

    def test_delivered_once(self, engine):
        engine.start("SD.1")
        for title in ("One", "Two", "Three"):
            engine.enqueue(title)

        first = engine.tick("hero")
        second = engine.tick("email")

        assert [entry["title"] for entry in first["queued_items"]] == ["One", "Two", "Three"]
        assert second["queued_items"] == []


class TestSessionLifecycleContract:
    """A full task from start to completion."""

    def test_top_level_tick_returns_to_idle(self, engine):
        engine.start("FE.2")
        result = engine.tick("FE.2")
        assert result["session_cleared"] is True
        assert engine.session.is_idle

    def test_landing_page_walkthrough(self, engine, clock, spec_path):
        engine.start("SD.1")

        engine.working("hero")
        clock.advance(12)
        hero = engine.tick("hero")
        assert hero["next_step"] == 'Continue to next sub-item: "Signup form"'

        engine.working("email")
        clock.advance(15)
        assert engine.tick("email").success

        signup = engine.tick("signup")
        assert signup["rapid_tick"] is True
        assert signup["next_step"] == 'Sub-items done. Close the task: tick "Landing page"'

        clock.advance(30)
        task = engine.tick()
        assert task["session_cleared"] is True
        assert task["next_task"]["internal_id"] == "fe-login-form"
        assert engine.session.is_idle
        assert engine.durations()["durations"] == {
            "sd-landing-page-hero-banner": 12,
            "sd-landing-page-signup-form-email-field-validation": 15,
        }
        assert "- [x] **SD.1 Landing page**" in spec_path.read_text()
