"""
Backend roster: the named models a simulation run is dispatched to.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from config import Settings, get_settings
from src.ai_layer.llm_client import LLMClient, create_llm_client
from src.ai_layer.prompts import SYSTEM_PROMPT, load_prompt
from src.ai_layer.response_parser import interpret_response
from src.simulation_layer.models import SimulationResult, error_result

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    """
    A named model endpoint.

    fallback_eligible: an error result from this backend may be replaced by
    the user's pre-computed result for the same backend.
    """

    name: str
    display_name: str
    client: LLMClient
    fallback_eligible: bool = False


def build_backends(settings: Optional[Settings] = None, force_mock: bool = False) -> List[Backend]:
    """Build the teacher / student / fine-tuned roster from settings."""
    settings = settings or get_settings()
    backends = []
    for backend_settings in settings.backends:
        if force_mock:
            backend_settings = backend_settings.model_copy(update={"kind": "mock"})
        backends.append(
            Backend(
                name=backend_settings.name,
                display_name=backend_settings.display_name,
                client=create_llm_client(backend_settings, settings.llm),
                fallback_eligible=backend_settings.fallback_eligible,
            )
        )
    return backends


async def simulate(backend: Backend, prompt: str) -> SimulationResult:
    """
    Invoke one backend and interpret its completion.

    Transport failures and empty completions come back as the error
    sentinel; this never raises.
    """
    try:
        content = await backend.client.generate(prompt, system_prompt=load_prompt(SYSTEM_PROMPT))
        if not content or not content.strip():
            raise ValueError("Received empty response from model.")
    except Exception as e:
        logger.error("Simulation error on backend '%s': %s", backend.name, e)
        return error_result(f"{type(e).__name__}: {e}")
    return interpret_response(content)
