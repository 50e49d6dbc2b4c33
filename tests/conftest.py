# tests/conftest.py
# Shared pytest fixtures:
#   - sample users / profile / catalog items built in memory
#   - FakeClient: scripted async LLM client (content, delay, failure)
#   - mock_data_file: the bundled data/mock_data.json

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest

# ---------- Ensure project root is importable ----------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import reset_settings
from src.ai_layer.llm_client import LLMClient
from src.simulation_layer.backends import Backend
from src.simulation_layer.models import (
    ExposureItem,
    HistoryItem,
    SimulationResult,
    SimulationSection,
    User,
    UserProfile,
)


class FakeClient(LLMClient):
    """Async client returning a scripted completion after an optional delay or event."""

    def __init__(
        self,
        content: str = "",
        delay: float = 0.0,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.content = content
        self.delay = delay
        self.error = error
        self.gate = gate
        self.prompts = []
        self.system_prompts = []

    async def generate(self, prompt, system_prompt=None):
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content


def completion(behavior: str, text: str = "I want something new.") -> str:
    return "\n".join([
        "Thought:",
        f"Stimulus: {text}",
        "Stimulus Factors: Curiosity",
        "Knowledge: The options look interesting.",
        "Knowledge Factors: Novelty, Quality",
        "Evaluation: It fits me.",
        "Evaluation Style: Intuitive",
        f"Behavior: [{behavior}]",
    ])


def make_result(behavior: str, text: str = "cached") -> SimulationResult:
    return SimulationResult(
        stimulus=SimulationSection(text=text, factors="Curiosity"),
        knowledge=SimulationSection(text=text, factors="Past Experience"),
        evaluation=SimulationSection(text=text, style="Habitual"),
        behavior=behavior,
    )


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch, tmp_path):
    """Keep tests independent of a developer's .env."""
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        age=34,
        gender="Female",
        occupation="Librarian",
        location="Portland, OR",
        traits=("Fantasy enthusiast", "Enjoys long series"),
    )


@pytest.fixture
def history():
    return (
        HistoryItem(title="The Name of the Wind", year="2007", genre="Fantasy", rating="5",
                    author="Patrick Rothfuss", pages="662"),
        HistoryItem(title="The Silent Patient", year="2019", genre="Thriller", rating="2"),
    )


@pytest.fixture
def exposure_list():
    return (
        ExposureItem(title="Gone Girl", year="2012", genre="Thriller, Mystery"),
        ExposureItem(title="The Way of Kings", year="2010", genre="Fantasy, Epic"),
        ExposureItem(title="Atomic Habits", year="2018", genre="Self-help"),
    )


@pytest.fixture
def user(profile, history, exposure_list) -> User:
    return User(
        id="u1",
        name="Evelyn Hart",
        avatar="",
        domain="Books",
        profile=profile,
        history=history,
        exposure_list=exposure_list,
        model_outputs={"teacher": make_result("B", "cached teacher")},
        ground_truth="B",
    )


@pytest.fixture
def other_user(profile, exposure_list) -> User:
    return User(
        id="u2",
        name="Marcus Lee",
        avatar="",
        domain="Books",
        profile=profile,
        exposure_list=exposure_list,
    )


@pytest.fixture
def make_backend():
    def _make(name, client, fallback_eligible=False):
        return Backend(name=name, display_name=name.title(), client=client, fallback_eligible=fallback_eligible)
    return _make


@pytest.fixture(scope="session")
def mock_data_file() -> Path:
    p = ROOT / "data" / "mock_data.json"
    if not p.exists():
        raise FileNotFoundError(f"mock data not found: {p}")
    return p
