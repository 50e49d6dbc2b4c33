"""
Builds the simulation prompt from a user's profile, history and exposure list.

The output is a pure function of its inputs, so identical users always
produce byte-identical prompts.
"""

from typing import List, Optional, Sequence

from src.ai_layer.prompts import OUTPUT_FORMAT, SIMULATION_PROMPT, load_prompt, render_prompt
from src.simulation_layer.models import NA, ExposureItem, HistoryItem, UserProfile

STIMULUS_FACTORS = (
    "Internal States (Boredom, Hunger, Thirst, Fatigue/Restlessness, Emotional State, "
    "Curiosity, Need for Achievement, Inspiration), External Cues (Time of Day, Day of Week, "
    "Weather, Location, Social Factors, Special Occasion, Notification, Advertising, "
    "Financial Situation, Availability)"
)
KNOWLEDGE_FACTORS = (
    "Product/Service Attributes (Price, Quality, Features, Convenience, Novelty, "
    "Brand Reputation, Personal Relevance (Functional, Thematic, Identity-Based), "
    "Emotional Appeal, Time Commitment, Risk), Information Source & Presentation "
    "(Visual Presentation, Recommendation Source, Review Content/Sentiment, "
    "Rating Score/Distribution, Social Proof), User's Prior Knowledge "
    "(Past Experience, User Preferences/History)"
)
EVALUATION_STYLES = "Logical, Intuitive, Impulsive, Habitual"

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def exposure_label(index: int) -> str:
    """
    Label for the exposure item at ``index``.

    0 -> A ... 25 -> Z, then AA, AB, ... like spreadsheet columns.
    """
    if index < 0:
        raise ValueError(f"Exposure index must be non-negative, got {index}")
    label = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = ALPHABET[rem] + label
    return label


def exposure_labels(count: int) -> List[str]:
    return [exposure_label(i) for i in range(count)]


def _or_na(value) -> str:
    if value is None:
        return NA
    value = str(value).strip()
    return value if value else NA


def format_profile(profile: UserProfile, name: Optional[str] = None) -> str:
    traits = ", ".join(t for t in profile.traits if t) if profile.traits else ""
    lines = [
        f"- Name: {_or_na(name)}",
        f"- Age: {_or_na(profile.age)}",
        f"- Gender: {_or_na(profile.gender)}",
        f"- Occupation: {_or_na(profile.occupation)}",
        f"- Location: {_or_na(profile.location)}",
        f"- Traits: {_or_na(traits)}",
    ]
    return "\n".join(lines)


def _book_details(item) -> str:
    details = []
    if item.author:
        details.append(f"Author: {item.author}")
    if item.published_at:
        details.append(f"Published: {item.published_at}")
    if item.pages:
        details.append(f"Pages: {item.pages}")
    return " | ".join(details)


def format_history(history: Sequence[HistoryItem]) -> str:
    if not history:
        return NA
    lines = []
    for i, item in enumerate(history, start=1):
        line = f"{i}. {item.title} ({_or_na(item.year)}) - {_or_na(item.genre)} - Rating: {_or_na(item.rating)}"
        details = _book_details(item)
        if details:
            line += f" | {details}"
        lines.append(line)
    return "\n".join(lines)


def format_exposure_list(exposure_list: Sequence[ExposureItem]) -> str:
    if not exposure_list:
        return NA
    lines = []
    for i, item in enumerate(exposure_list):
        line = f"{exposure_label(i)}. {item.title} ({_or_na(item.year)}) - {_or_na(item.genre)}"
        details = _book_details(item)
        if details:
            line += f" | {details}"
        lines.append(line)
    return "\n".join(lines)


def build_prompt(
    profile: UserProfile,
    exposure_list: Sequence[ExposureItem],
    history: Optional[Sequence[HistoryItem]] = None,
    name: Optional[str] = None,
) -> str:
    """Render instructions, output template, profile, history and labeled candidates."""
    return render_prompt(
        SIMULATION_PROMPT,
        stimulus_factors=STIMULUS_FACTORS,
        knowledge_factors=KNOWLEDGE_FACTORS,
        evaluation_styles=EVALUATION_STYLES,
        output_format=load_prompt(OUTPUT_FORMAT).strip(),
        profile=format_profile(profile, name),
        history=format_history(history or ()),
        exposure_list=format_exposure_list(exposure_list),
    )


def build_user_prompt(user) -> str:
    """build_prompt for a loaded User."""
    return build_prompt(user.profile, user.exposure_list, user.history, name=user.name)
