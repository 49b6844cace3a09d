"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from recall.cards.cloze import first_cloze_range  # noqa: E402
from recall.cards.fingerprint import fingerprint  # noqa: E402
from recall.cards.models import BasicContent, Card, ClozeContent  # noqa: E402
from recall.scheduling.forecaster import Forecast, MemoryState, OutcomeForecast  # noqa: E402
from recall.store.schedule_store import ScheduleStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (filesystem + SQLite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Helpers
# =============================================================================


class FakeForecaster:
    """
    Deterministic stand-in for the FSRS model.

    Returns fixed intervals and records every call.
    """

    def __init__(self, pass_days: float = 3.0, fail_days: float = 0.5):
        self.pass_days = pass_days
        self.fail_days = fail_days
        self.calls: list[tuple[MemoryState | None, float, int]] = []

    def forecast(self, prior, desired_retention, elapsed_days):
        self.calls.append((prior, desired_retention, elapsed_days))
        stability = (prior.stability if prior else 1.0) + 1.0
        return Forecast(
            on_pass=OutcomeForecast(MemoryState(stability * 2, 4.0), self.pass_days),
            on_fail=OutcomeForecast(MemoryState(stability / 2, 6.0), self.fail_days),
        )


def make_basic_card(question: str = "What is 2+2?", answer: str = "4", path: str = "deck/math.md") -> Card:
    text = f"Q: {question}\nA: {answer}\n"
    return Card(
        file_path=Path(path),
        file_range=(0, len(text.encode("utf-8"))),
        content=BasicContent(question=question, answer=answer),
        fingerprint=fingerprint(text),
    )


def make_cloze_card(text: str = "The capital of France is [Paris].", path: str = "deck/geo.md") -> Card:
    block = f"C: {text}\n"
    return Card(
        file_path=Path(path),
        file_range=(0, len(block.encode("utf-8"))),
        content=ClozeContent(text=text, cloze_range=first_cloze_range(text)),
        fingerprint=fingerprint(block),
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def store():
    """In-memory schedule store."""
    store = ScheduleStore.in_memory()
    yield store
    store.close()


@pytest.fixture
def forecaster():
    return FakeForecaster()


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_forecaster():
    """Factory for FakeForecaster with custom intervals."""
    return FakeForecaster


@pytest.fixture
def make_basic():
    return make_basic_card


@pytest.fixture
def make_cloze():
    return make_cloze_card


@pytest.fixture
def basic_card():
    return make_basic_card()


@pytest.fixture
def cloze_card():
    return make_cloze_card()


@pytest.fixture
def write_doc(tmp_path):
    """Write a document under tmp_path and return its path."""

    def _write(relative: str, text: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
