"""
Simulation API endpoints.
"""

import asyncio
import json
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from src.ai_layer.prompt_builder import build_user_prompt
from src.ai_layer.response_parser import interpret_response
from src.app_layer.dependencies import get_backends, get_data_provider
from src.app_layer.schemas import (
    BackendResult,
    InterpretRequest,
    PromptRequest,
    PromptResponse,
    SimulationRequest,
    SimulationResponse,
    SimulationResultSchema,
)
from src.data_layer.mock_data_loader import DataProvider
from src.simulation_layer.backends import Backend
from src.simulation_layer.engine import SimulationEngine
from src.simulation_layer.models import User, matches_ground_truth

router = APIRouter()


def _require_user(provider: DataProvider, user_id: str) -> User:
    user = provider.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return user


def _backend_result(engine: SimulationEngine, backend: Backend, user: User, result) -> BackendResult:
    return BackendResult(
        backend=backend.name,
        display_name=backend.display_name,
        result=SimulationResultSchema.from_result(result),
        from_fallback=engine.slots[backend.name].from_fallback,
        matches_ground_truth=matches_ground_truth(result, user),
    )


def _ndjson(item: BackendResult) -> str:
    return json.dumps(item.model_dump(), ensure_ascii=False) + "\n"


@router.post("/prompt", response_model=PromptResponse)
async def build_simulation_prompt(
    request: PromptRequest, provider: DataProvider = Depends(get_data_provider)
):
    """Build the simulation prompt for a user."""
    user = _require_user(provider, request.user_id)
    return PromptResponse(user_id=user.id, prompt=build_user_prompt(user))


@router.post("/interpret", response_model=SimulationResultSchema)
async def interpret_completion(request: InterpretRequest):
    """Parse a raw completion into a structured result."""
    return SimulationResultSchema.from_result(interpret_response(request.text))


@router.post("/run", response_model=SimulationResponse)
async def run_simulation(
    request: SimulationRequest,
    provider: DataProvider = Depends(get_data_provider),
    backends: List[Backend] = Depends(get_backends),
):
    """Run the prompt against every backend and return all results."""
    user = _require_user(provider, request.user_id)
    engine = SimulationEngine(backends)
    engine.select_user(user)
    results = await engine.run_simulation(user, prompt=request.prompt)
    return SimulationResponse(
        user_id=user.id,
        results=[_backend_result(engine, b, user, results[b.name]) for b in backends],
    )


@router.post("/run/stream")
async def run_simulation_stream(
    request: SimulationRequest,
    provider: DataProvider = Depends(get_data_provider),
    backends: List[Backend] = Depends(get_backends),
):
    """Same as /run, but streams one NDJSON line per backend as it resolves."""
    user = _require_user(provider, request.user_id)
    engine = SimulationEngine(backends)
    engine.select_user(user)
    by_name = {b.name: b for b in backends}
    queue: asyncio.Queue = asyncio.Queue()

    def on_result(name, result):
        queue.put_nowait(_backend_result(engine, by_name[name], user, result))

    async def stream():
        task = asyncio.create_task(
            engine.run_simulation(user, prompt=request.prompt, on_result=on_result)
        )
        remaining = len(backends)
        while remaining:
            getter = asyncio.ensure_future(queue.get())
            await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if not getter.done():
                # run finished without queueing every backend
                getter.cancel()
                break
            remaining -= 1
            yield _ndjson(getter.result())
        while not queue.empty():
            yield _ndjson(queue.get_nowait())
        await task

    return StreamingResponse(stream(), media_type="application/x-ndjson")
