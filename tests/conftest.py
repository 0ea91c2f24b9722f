"""Shared fixtures for chkd tests."""

from pathlib import Path

import pytest

from chkd.config import EngineSettings
from chkd.engine import SessionEngine
from chkd.session import SessionStore


SAMPLE_SPEC = """# Demo Project

## Site Design (SD)

- [ ] **SD.1 Landing page** - Marketing entry point

> As a visitor I want to understand the product.

**Key requirements:**
- Hero section
- Signup call to action

**Files to change:**
- src/routes/+page.svelte

**Testing:**
- TBC

  - [ ] Hero banner
  - [ ] Signup form
    - [ ] Email field validation
- [x] **SD.2 About page** - Company story

## Frontend (FE)

- [ ] **FE.1 Login form**
  - [ ] Password field
- [~] **FE.2 Settings screen**

## Backend (BE)

- [ ] **BE.1 Auth API**
"""


class FakeClock:
    """Manually advanced clock for debounce and rate-limit tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def write_spec(root: Path, text: str = SAMPLE_SPEC) -> Path:
    spec_path = root / "docs" / "SPEC.md"
    spec_path.parent.mkdir(parents=True, exist_ok=True)
    spec_path.write_text(text, encoding="utf-8")
    return spec_path


@pytest.fixture
def project(tmp_path):
    """Project root containing the sample checklist."""
    write_spec(tmp_path)
    return tmp_path


@pytest.fixture
def spec_path(project):
    return project / "docs" / "SPEC.md"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def engine(project, store, clock):
    return SessionEngine(project, store=store, settings=EngineSettings(), clock=clock)
