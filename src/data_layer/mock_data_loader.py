"""
Static user/catalog store.

The data is read once and treated as read-only for the session. Access goes
through the DataProvider interface so tests and the API can substitute their
own provider.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from src.data_layer.profile_parser import parse_user_profile
from src.simulation_layer.models import (
    ExposureItem,
    HistoryItem,
    SimulationResult,
    User,
    UserProfile,
)

logger = logging.getLogger(__name__)

# modelOutputs keys in the JSON -> backend names
MODEL_OUTPUT_KEYS = {
    "teacher": "teacher",
    "student": "student",
    "Fine-tuned_model": "fine_tuned",
    "fine_tuned": "fine_tuned",
}


class DataLoadError(RuntimeError):
    """Raised when the static data file cannot be parsed."""


class DataProvider(ABC):
    """Abstract base for user/catalog data access."""

    @abstractmethod
    def get_all_users(self) -> List[User]:
        ...

    @abstractmethod
    def get_available_domains(self) -> List[str]:
        ...

    def get_users_by_domain(self, domain: str) -> List[User]:
        return [u for u in self.get_all_users() if u.domain == domain]

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        for user in self.get_all_users():
            if user.id == user_id:
                return user
        return None


class InMemoryDataProvider(DataProvider):
    """Provider over an already-built list of users."""

    def __init__(self, users: Iterable[User]):
        self.users = list(users)

    def get_all_users(self) -> List[User]:
        return list(self.users)

    def get_available_domains(self) -> List[str]:
        domains: List[str] = []
        for user in self.users:
            if user.domain not in domains:
                domains.append(user.domain)
        return domains


class JsonDataProvider(DataProvider):
    """
    Provider backed by mock_data.json:

        {"domains": {"Books": {"users": [...]}, "Movie": {"users": [...]}}}
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._users_by_domain: Optional[Dict[str, List[User]]] = None

    def _load(self) -> Dict[str, List[User]]:
        if self._users_by_domain is not None:
            return self._users_by_domain

        if not self.path.exists():
            raise FileNotFoundError(f"Mock data not found: {self.path}")
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Failed to load mock data from {self.path}: {e}") from e

        domains = data.get("domains")
        if not isinstance(domains, dict):
            raise DataLoadError(f"{self.path}: missing 'domains' object")

        users_by_domain: Dict[str, List[User]] = {}
        for domain, domain_data in domains.items():
            raw_users = (domain_data or {}).get("users", [])
            users_by_domain[domain] = [convert_to_user(raw, domain) for raw in raw_users]

        total = sum(len(u) for u in users_by_domain.values())
        logger.info("Loaded %d users across %d domains from %s", total, len(users_by_domain), self.path)
        self._users_by_domain = users_by_domain
        return users_by_domain

    def get_all_users(self) -> List[User]:
        users: List[User] = []
        for domain_users in self._load().values():
            users.extend(domain_users)
        return users

    def get_users_by_domain(self, domain: str) -> List[User]:
        return list(self._load().get(domain, []))

    def get_available_domains(self) -> List[str]:
        return list(self._load().keys())


def _opt(raw: Mapping[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return str(value)


def convert_history_item(raw: Mapping[str, Any]) -> HistoryItem:
    return HistoryItem(
        title=str(raw.get("title", "")),
        year=str(raw.get("year", "")),
        genre=str(raw.get("genre", "")),
        rating=str(raw.get("rating", "")),
        cover=_opt(raw, "cover"),
        description=_opt(raw, "description"),
        author=_opt(raw, "author"),
        published_at=_opt(raw, "publishedAt"),
        pages=_opt(raw, "pages"),
        global_rating=_opt(raw, "globalRating"),
        my_behavior=_opt(raw, "myBehavior"),
    )


def convert_exposure_item(raw: Mapping[str, Any]) -> ExposureItem:
    return ExposureItem(
        title=str(raw.get("title", "")),
        year=str(raw.get("year", "")),
        genre=str(raw.get("genre", "")),
        cover=_opt(raw, "cover"),
        label=_opt(raw, "label"),
        author=_opt(raw, "author"),
        published_at=_opt(raw, "publishedAt"),
        pages=_opt(raw, "pages"),
        rating=_opt(raw, "rating"),
    )


def _items_from_raw_profile(raw_profile: str) -> tuple:
    """(history, exposure_list) parsed from a raw profile text."""
    parsed = parse_user_profile(raw_profile)
    history = tuple(
        HistoryItem(
            title=h.title,
            year=h.published_at.split(" - ")[0] if h.published_at else "",
            genre=", ".join(h.genres),
            rating=h.my_rating,
            description=h.description or None,
            author=h.author or None,
            published_at=h.published_at or None,
            pages=h.pages or None,
            global_rating=h.global_rating or None,
            my_behavior=h.my_behavior or None,
        )
        for h in parsed.history
    )
    exposure = tuple(
        ExposureItem(
            title=e.title,
            year=e.published_at.split(" - ")[0] if e.published_at else "",
            genre=", ".join(e.genres),
            label=e.label or None,
            author=e.author or None,
            published_at=e.published_at or None,
            pages=e.pages or None,
            rating=e.rating or None,
        )
        for e in parsed.exposure_list
    )
    return history, exposure


def convert_to_user(raw: Mapping[str, Any], domain: Optional[str] = None) -> User:
    """Convert a raw JSON user (camelCase keys) into a User."""
    profile_raw = raw.get("profile") or {}
    profile = UserProfile(
        age=profile_raw.get("age", ""),
        gender=str(profile_raw.get("gender", "")),
        occupation=_opt(profile_raw, "occupation"),
        location=_opt(profile_raw, "location"),
        traits=tuple(str(t) for t in profile_raw.get("traits", [])),
    )

    history = tuple(convert_history_item(h) for h in raw.get("history", []))
    exposure = tuple(convert_exposure_item(e) for e in raw.get("exposureList", raw.get("exposure_list", [])))

    raw_profile = raw.get("rawProfile")
    if raw_profile and (not history or not exposure):
        parsed_history, parsed_exposure = _items_from_raw_profile(raw_profile)
        history = history or parsed_history
        exposure = exposure or parsed_exposure

    model_outputs: Dict[str, SimulationResult] = {}
    for key, value in (raw.get("modelOutputs") or {}).items():
        name = MODEL_OUTPUT_KEYS.get(key)
        if name is None:
            logger.warning("User %s: ignoring unknown model output '%s'", raw.get("id"), key)
            continue
        if value:
            model_outputs[name] = SimulationResult.from_dict(value)

    return User(
        id=str(raw.get("id", "")),
        name=str(raw.get("name", "")),
        avatar=str(raw.get("avatar", "")),
        domain=str(raw.get("domain") or domain or ""),
        profile=profile,
        history=history,
        exposure_list=exposure,
        raw_profile=raw_profile,
        model_outputs=model_outputs,
        ground_truth=_opt(raw, "groundTruth"),
    )


def get_static_model_outputs(user: User) -> Mapping[str, SimulationResult]:
    """Pre-computed results for a user, keyed by backend name."""
    return user.model_outputs
