"""
Simulation engine: dispatches one prompt to every backend concurrently and
fills one result slot per backend as each call resolves.

Session rules:
- Selecting another user or starting a new run invalidates the current run.
  Results that resolve for an invalidated run are dropped, never written.
- Each slot is written once per run. The cached-result fallback is part of
  that single write.
- One backend failing never cancels or delays the others.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from src.ai_layer.prompt_builder import build_user_prompt
from src.simulation_layer.backends import Backend, simulate
from src.simulation_layer.models import SimulationResult, SimulationState, User

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, SimulationResult], None]


@dataclass
class SlotState:
    """One backend's result for the current run."""

    result: Optional[SimulationResult] = None
    loading: bool = False
    from_fallback: bool = False


class SimulationEngine:
    """Per-session orchestration of multi-backend simulation runs."""

    def __init__(self, backends: List[Backend]):
        if not backends:
            raise ValueError("At least one backend is required")
        names = [b.name for b in backends]
        if len(set(names)) != len(names):
            raise ValueError(f"Backend names must be unique: {names}")
        self.backends = list(backends)
        self.selected_user: Optional[User] = None
        self.prompt: str = ""
        self.state = SimulationState.IDLE
        self.slots: Dict[str, SlotState] = {}
        self._run_id = 0
        self._reset_slots()

    # ========== Session state ==========

    def _reset_slots(self) -> None:
        self.slots = {b.name: SlotState() for b in self.backends}

    def _invalidate(self) -> int:
        self._run_id += 1
        self._reset_slots()
        return self._run_id

    def is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    def select_user(self, user: Optional[User]) -> str:
        """Switch the selected user. Returns the freshly built prompt ('' if none)."""
        self._invalidate()
        self.selected_user = user
        if user is None:
            self.prompt = ""
            self.state = SimulationState.IDLE
        else:
            self.prompt = self.build_prompt(user)
            self.state = SimulationState.READY
        return self.prompt

    def build_prompt(self, user: Optional[User] = None) -> str:
        user = user or self.selected_user
        if user is None:
            raise ValueError("No user selected")
        return build_user_prompt(user)

    def results(self) -> Dict[str, Optional[SimulationResult]]:
        return {name: slot.result for name, slot in self.slots.items()}

    # ========== Running ==========

    def _apply_fallback(
        self, backend: Backend, user: User, result: SimulationResult
    ) -> tuple:
        """(result, used_fallback). Replaces an error with the user's cached result if allowed."""
        if not result.is_error or not backend.fallback_eligible:
            return result, False
        cached = user.model_outputs.get(backend.name)
        if cached is None:
            return result, False
        logger.warning(
            "Backend '%s' failed for user %s; falling back to cached result",
            backend.name, user.id,
        )
        return cached, True

    async def _run_backend(
        self,
        run_id: int,
        backend: Backend,
        user: User,
        prompt: str,
        on_result: Optional[ResultCallback],
    ) -> SimulationResult:
        live = await simulate(backend, prompt)
        result, used_fallback = self._apply_fallback(backend, user, live)

        if not self.is_current(run_id):
            logger.debug(
                "Discarding stale result from '%s' (run %d, current %d)",
                backend.name, run_id, self._run_id,
            )
            return result

        self.slots[backend.name] = SlotState(result=result, loading=False, from_fallback=used_fallback)
        try:
            if on_result is not None:
                on_result(backend.name, result)
        except Exception:
            # the slot write stands
            logger.exception("on_result callback failed for backend '%s'", backend.name)
        finally:
            if all(not slot.loading for slot in self.slots.values()):
                self.state = SimulationState.COMPLETED
        return result

    async def run_simulation(
        self,
        user: Optional[User] = None,
        prompt: Optional[str] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> Dict[str, SimulationResult]:
        """
        Run the prompt against every backend.

        Args:
            user: user to simulate; defaults to the selected user. A different
                  user becomes the new selection.
            prompt: operator-edited prompt; built from the user when omitted.
            on_result: called as (backend_name, result) when each slot is
                       written, in completion order.

        Returns:
            {backend_name: result} for this run, including results that were
            dropped from the slots because the run went stale.
        """
        if user is None:
            user = self.selected_user
        if user is None:
            raise ValueError("No user selected")
        if self.selected_user is None or user.id != self.selected_user.id:
            self.select_user(user)
        if prompt is None:
            prompt = self.prompt or self.build_prompt(user)
        self.prompt = prompt

        run_id = self._invalidate()
        for slot in self.slots.values():
            slot.loading = True
        self.state = SimulationState.RUNNING
        logger.info("Run %d: simulating user %s on %d backends", run_id, user.id, len(self.backends))

        outcomes = await asyncio.gather(
            *(self._run_backend(run_id, b, user, prompt, on_result) for b in self.backends)
        )
        return {b.name: r for b, r in zip(self.backends, outcomes)}
