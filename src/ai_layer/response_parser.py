"""
Turns a free-text model completion into a SimulationResult.

The completion is only loosely formatted, so parsing is best-effort line
prefix matching: unknown lines are skipped, a later line overwrites an
earlier one for the same field, and a completion with nothing recognisable
yields the default placeholders instead of an error.
"""

import logging
import re
from typing import Dict, Optional

from src.simulation_layer.models import (
    DEFAULT_BEHAVIOR,
    NA,
    SimulationResult,
    SimulationSection,
)

logger = logging.getLogger(__name__)

# Longer prefixes first: "Stimulus Factors:" must not be read as "Stimulus:".
PREFIXES = (
    ("Stimulus Factors:", "stimulus_factors"),
    ("Knowledge Factors:", "knowledge_factors"),
    ("Evaluation Style:", "evaluation_style"),
    ("Stimulus:", "stimulus"),
    ("Knowledge:", "knowledge"),
    ("Evaluation:", "evaluation"),
    ("Behavior:", "behavior"),
)

BRACKETED_LABEL = re.compile(r"\[\s*([A-Z]{1,2})\s*\]", re.IGNORECASE)
# unbracketed labels are a single letter; two-letter labels must be bracketed
LEADING_LABEL = re.compile(r"^([A-Z])(?![A-Za-z])", re.IGNORECASE)
LIST_MARKER = re.compile(r"^(?:(?:[-•]|\*(?!\*))\s*)+")


def _normalize_line(line: str) -> str:
    """Trim, drop list bullets and markdown bold around the label."""
    line = LIST_MARKER.sub("", line.strip())
    if line.startswith("**"):
        line = line[2:]
        # "**Stimulus:** text" or "**Stimulus**: text"
        line = line.replace(":**", ":", 1).replace("**:", ":", 1)
    return line.strip()


def extract_behavior(rest: str) -> Optional[str]:
    """Label from the text after 'Behavior:'; '[B]' or '[AB]' anywhere, else a lone leading 'B'."""
    match = BRACKETED_LABEL.search(rest)
    if match is None:
        match = LEADING_LABEL.match(rest.strip())
    if match is None:
        return None
    return match.group(1).upper()


def interpret_response(raw_text: Optional[str]) -> SimulationResult:
    """Parse a completion into a SimulationResult. Never raises on malformed text."""
    fields: Dict[str, str] = {
        "stimulus": NA,
        "stimulus_factors": NA,
        "knowledge": NA,
        "knowledge_factors": NA,
        "evaluation": NA,
        "evaluation_style": NA,
        "behavior": DEFAULT_BEHAVIOR,
    }

    for line in (raw_text or "").splitlines():
        line = _normalize_line(line)
        if not line:
            continue
        for prefix, key in PREFIXES:
            if not line.startswith(prefix):
                continue
            rest = line[len(prefix):].strip()
            if key == "behavior":
                label = extract_behavior(rest)
                if label:
                    fields["behavior"] = label
                else:
                    logger.debug(
                        "No label in behavior line %r; keeping %s", rest, fields["behavior"]
                    )
            else:
                fields[key] = rest
            break

    return SimulationResult(
        stimulus=SimulationSection(text=fields["stimulus"], factors=fields["stimulus_factors"]),
        knowledge=SimulationSection(text=fields["knowledge"], factors=fields["knowledge_factors"]),
        evaluation=SimulationSection(text=fields["evaluation"], style=fields["evaluation_style"]),
        behavior=fields["behavior"],
    )


def format_response(result: SimulationResult) -> str:
    """Render a result in the output format the prompt asks for."""
    return "\n".join([
        "Thought:",
        f"Stimulus: {result.stimulus.text}",
        f"Stimulus Factors: {result.stimulus.factors or NA}",
        f"Knowledge: {result.knowledge.text}",
        f"Knowledge Factors: {result.knowledge.factors or NA}",
        f"Evaluation: {result.evaluation.text}",
        f"Evaluation Style: {result.evaluation.style or NA}",
        f"Behavior: [{result.behavior}]",
    ])
