"""
CLI entry point for building prompts and running simulations.

Usage:
    python scripts/run_simulation.py --list
    python scripts/run_simulation.py --user books_001 --prompt-only
    python scripts/run_simulation.py --user movie_001 --mock
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is in sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings, setup_logging
from src.ai_layer.prompt_builder import build_user_prompt
from src.data_layer.mock_data_loader import JsonDataProvider
from src.simulation_layer.backends import build_backends
from src.simulation_layer.engine import SimulationEngine
from src.simulation_layer.models import matches_ground_truth


def print_result(display_name, result, user, from_fallback=False):
    suffix = " (cached fallback)" if from_fallback else ""
    print(f"\n=== {display_name}{suffix} ===")
    print(f"Stimulus: {result.stimulus.text}")
    print(f"  Stimulus Factors: {result.stimulus.factors}")
    print(f"Knowledge: {result.knowledge.text}")
    print(f"  Knowledge Factors: {result.knowledge.factors}")
    print(f"Evaluation: {result.evaluation.text}")
    print(f"  Evaluation Style: {result.evaluation.style}")
    print(f"Behavior: {result.behavior}")
    match = matches_ground_truth(result, user)
    if match is not None:
        print(f"Ground truth: {user.ground_truth} ({'match' if match else 'miss'})")


def main():
    parser = argparse.ArgumentParser(description="UserMirrorer behavior simulation")
    parser.add_argument("--data", type=Path, default=None, help="Path to mock_data.json")
    parser.add_argument("--list", action="store_true", help="List available users and exit")
    parser.add_argument("--user", type=str, help="User id to simulate")
    parser.add_argument("--prompt-only", action="store_true", help="Print the prompt and exit")
    parser.add_argument("--prompt-file", type=Path, default=None, help="Use an edited prompt from this file")
    parser.add_argument("--mock", action="store_true", help="Use local mock backends instead of the model server")
    parser.add_argument("--log-level", type=str, default=None)
    args = parser.parse_args()

    setup_logging(level=args.log_level)
    settings = get_settings()
    provider = JsonDataProvider(args.data or settings.paths.mock_data_path)

    if args.list:
        for domain in provider.get_available_domains():
            print(f"[{domain}]")
            for user in provider.get_users_by_domain(domain):
                print(f"  {user.id}: {user.name} ({len(user.exposure_list)} candidates)")
        return 0

    if not args.user:
        parser.error("--user is required unless --list is given")

    user = provider.get_user_by_id(args.user)
    if user is None:
        print(f"Unknown user: {args.user}", file=sys.stderr)
        return 1

    prompt = (
        args.prompt_file.read_text(encoding="utf-8")
        if args.prompt_file
        else build_user_prompt(user)
    )
    if args.prompt_only:
        print(prompt)
        return 0

    backends = build_backends(settings, force_mock=args.mock)
    engine = SimulationEngine(backends)
    engine.select_user(user)
    names = {b.name: b.display_name for b in backends}

    def on_result(name, result):
        print_result(names[name], result, user, engine.slots[name].from_fallback)

    asyncio.run(engine.run_simulation(user, prompt=prompt, on_result=on_result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
