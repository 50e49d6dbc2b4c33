"""
Prompt template loader.
"""

from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Load a prompt template file (without the .txt extension)."""
    path = PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return path.read_text(encoding="utf-8")


def render_prompt(name: str, **kwargs) -> str:
    """Load a template and substitute its variables."""
    template = load_prompt(name)
    return template.format(**kwargs)


# Template names
SYSTEM_PROMPT = "system_prompt"
SIMULATION_PROMPT = "simulation_prompt"
OUTPUT_FORMAT = "output_format"
