"""
Shared data models: users, catalog items and simulation results.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

NA = "N/A"
DEFAULT_BEHAVIOR = "A"
ERROR_BEHAVIOR = "Error"


@dataclass(frozen=True)
class UserProfile:
    """Demographics and free-text trait labels of a simulated user."""

    age: Union[int, str]
    gender: str
    occupation: Optional[str] = None
    location: Optional[str] = None
    traits: Tuple[str, ...] = ()


@dataclass(frozen=True)
class HistoryItem:
    """An item the user already consumed, with the user's rating."""

    title: str
    year: str
    genre: str
    rating: str
    cover: Optional[str] = None
    # Books domain
    description: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    pages: Optional[str] = None
    global_rating: Optional[str] = None
    my_behavior: Optional[str] = None


@dataclass(frozen=True)
class ExposureItem:
    """A candidate item. Its position in the exposure list decides its label."""

    title: str
    year: str
    genre: str
    cover: Optional[str] = None
    label: Optional[str] = None  # as stored; prompts relabel by position
    author: Optional[str] = None
    published_at: Optional[str] = None
    pages: Optional[str] = None
    rating: Optional[str] = None


@dataclass(frozen=True)
class SimulationSection:
    text: str = NA
    factors: Optional[str] = None
    style: Optional[str] = None


@dataclass(frozen=True)
class SimulationResult:
    """
    Structured decision record for one backend invocation.

    behavior holds the chosen exposure label, or ERROR_BEHAVIOR when the
    invocation failed.
    """

    stimulus: SimulationSection
    knowledge: SimulationSection
    evaluation: SimulationSection
    behavior: str = DEFAULT_BEHAVIOR

    @property
    def is_error(self) -> bool:
        return self.behavior == ERROR_BEHAVIOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stimulus": {"text": self.stimulus.text, "factors": self.stimulus.factors},
            "knowledge": {"text": self.knowledge.text, "factors": self.knowledge.factors},
            "evaluation": {"text": self.evaluation.text, "style": self.evaluation.style},
            "behavior": self.behavior,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationResult":
        def section(key: str) -> SimulationSection:
            raw = data.get(key) or {}
            return SimulationSection(
                text=raw.get("text", NA),
                factors=raw.get("factors"),
                style=raw.get("style"),
            )

        return cls(
            stimulus=section("stimulus"),
            knowledge=section("knowledge"),
            evaluation=section("evaluation"),
            behavior=str(data.get("behavior", DEFAULT_BEHAVIOR)),
        )


def default_result() -> SimulationResult:
    """Placeholder values used when a completion has no recognised lines."""
    return SimulationResult(
        stimulus=SimulationSection(text=NA, factors=NA),
        knowledge=SimulationSection(text=NA, factors=NA),
        evaluation=SimulationSection(text=NA, style=NA),
        behavior=DEFAULT_BEHAVIOR,
    )


def error_result(message: str) -> SimulationResult:
    """Error sentinel shown in place of a normal result."""
    return SimulationResult(
        stimulus=SimulationSection(text="Error simulating user.", factors="API Error"),
        knowledge=SimulationSection(text=message, factors="Debug"),
        evaluation=SimulationSection(text="Check the server logs for details.", style="Error"),
        behavior=ERROR_BEHAVIOR,
    )


@dataclass(frozen=True)
class User:
    """A simulated user with history, exposure list and any pre-computed outputs."""

    id: str
    name: str
    avatar: str
    domain: str  # 'Books' | 'Movie'
    profile: UserProfile
    history: Tuple[HistoryItem, ...] = ()
    exposure_list: Tuple[ExposureItem, ...] = ()
    raw_profile: Optional[str] = field(default=None, repr=False)
    model_outputs: Mapping[str, SimulationResult] = field(default_factory=dict, repr=False)
    ground_truth: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["model_outputs"] = {k: v.to_dict() for k, v in self.model_outputs.items()}
        return d


class SimulationState(str, Enum):
    IDLE = "IDLE"
    READY = "READY"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


def is_valid_behavior(result: SimulationResult, exposure_list: Sequence[ExposureItem]) -> bool:
    """True if the behavior is one of the labels assigned to the exposure list."""
    from src.ai_layer.prompt_builder import exposure_labels

    if result.is_error:
        return False
    return result.behavior in exposure_labels(len(exposure_list))


def matches_ground_truth(result: SimulationResult, user: User) -> Optional[bool]:
    """Compare a result with the user's recorded choice. None when not comparable."""
    if not user.ground_truth or result.is_error:
        return None
    return result.behavior == user.ground_truth.strip().strip("[]").upper()
