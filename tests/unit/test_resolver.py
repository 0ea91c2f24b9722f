"""Unit tests for item resolution precedence."""

import pytest

from chkd.errors import NotFound
from chkd.models import Session
from chkd.parser import parse
from chkd.resolver import find_item, resolve
from tests.conftest import SAMPLE_SPEC


@pytest.fixture
def document():
    return parse(SAMPLE_SPEC)


def session_on(document, internal_id):
    return Session(status="building", current_task=document.find_by_id(internal_id).to_ref())


class TestExplicitIds:
    """CODE.N addressing."""

    def test_code_and_position(self, document):
        assert find_item(document, "SD.1").title == "Landing page"
        assert find_item(document, "FE.2").title == "Settings screen"

    def test_case_insensitive(self, document):
        assert find_item(document, "fe.1").title == "Login form"

    def test_done_items_are_addressable_by_id(self, document):
        assert find_item(document, "SD.2").title == "About page"

    def test_missing_position_does_not_fall_back(self, document):
        with pytest.raises(NotFound):
            find_item(document, "SD.9")

    def test_unknown_area(self, document):
        with pytest.raises(NotFound):
            find_item(document, "ZZ.1")


class TestLegacyIds:
    """Bare N.M addressing."""

    def test_area_index_and_position(self, document):
        assert find_item(document, "2.1").title == "Login form"

    def test_disabled_legacy_falls_through(self, document):
        with pytest.raises(NotFound):
            find_item(document, "2.1", allow_legacy=False)

    def test_out_of_range_falls_through_to_titles(self):
        document = parse("## Core (CO)\n- [ ] **CO.1 Upgrade to 3.2 runtime**\n")
        assert find_item(document, "3.2").title == "Upgrade to 3.2 runtime"


class TestInternalIds:
    def test_exact_internal_id(self, document):
        assert find_item(document, "sd-landing-page-hero-banner").title == "Hero banner"

    def test_internal_id_of_done_item(self, document):
        assert find_item(document, "sd-about-page").title == "About page"


class TestTitleSearch:
    """Substring matching on incomplete items."""

    def test_global_depth_first_order(self, document):
        # Both "Email field validation" and "Password field" match
        assert find_item(document, "field").title == "Email field validation"

    def test_current_task_subtree_wins(self, document):
        session = session_on(document, "fe-login-form")
        assert find_item(document, "field", session).title == "Password field"

    def test_falls_back_to_global_when_subtree_has_no_match(self, document):
        session = session_on(document, "fe-login-form")
        assert find_item(document, "hero", session).title == "Hero banner"

    def test_subtree_excludes_the_task_itself(self, document):
        session = session_on(document, "fe-login-form")
        assert find_item(document, "login", session).title == "Login form"

    def test_case_insensitive(self, document):
        assert find_item(document, "HERO BAN").title == "Hero banner"

    def test_completed_items_are_not_title_matches(self, document):
        with pytest.raises(NotFound):
            find_item(document, "about")

    def test_in_progress_items_match(self, document):
        assert find_item(document, "settings").title == "Settings screen"

    def test_top_level_only(self, document):
        assert find_item(document, "login", top_level_only=True).title == "Login form"
        with pytest.raises(NotFound):
            find_item(document, "hero", top_level_only=True)

    def test_top_level_only_ignores_child_internal_ids(self, document):
        with pytest.raises(NotFound):
            find_item(document, "sd-landing-page-hero-banner", top_level_only=True)

    def test_empty_query(self, document):
        with pytest.raises(NotFound):
            find_item(document, "  ")


class TestResolve:
    def test_returns_item_ref(self, document):
        ref = resolve(document, "hero")
        assert ref.internal_id == "sd-landing-page-hero-banner"
        assert ref.parent_id == "sd-landing-page"
        assert ref.area_code == "SD"
        assert ref.display_id is None
        assert not ref.is_top_level

    def test_not_found_carries_query(self, document):
        with pytest.raises(NotFound) as excinfo:
            resolve(document, "nonexistent")
        assert excinfo.value.details["query"] == "nonexistent"
        assert excinfo.value.hint
