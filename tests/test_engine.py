# tests/test_engine.py
from __future__ import annotations

import asyncio
import logging

import pytest

from conftest import FakeClient, completion
from src.ai_layer.llm_client import LLMError
from src.ai_layer.prompts import SYSTEM_PROMPT, load_prompt
from src.simulation_layer.backends import simulate
from src.simulation_layer.engine import SimulationEngine
from src.simulation_layer.models import ERROR_BEHAVIOR, SimulationState


# ---------- simulate() ----------

def test_simulate_interprets_completion(make_backend):
    client = FakeClient(content=completion("C"))
    result = asyncio.run(simulate(make_backend("teacher", client), "prompt text"))
    assert result.behavior == "C"
    assert client.prompts == ["prompt text"]
    assert client.system_prompts == [load_prompt(SYSTEM_PROMPT)]


def test_simulate_turns_transport_error_into_sentinel(make_backend):
    client = FakeClient(error=LLMError("connection refused"))
    result = asyncio.run(simulate(make_backend("teacher", client), "p"))
    assert result.is_error
    assert result.behavior == ERROR_BEHAVIOR
    assert "connection refused" in result.knowledge.text


@pytest.mark.parametrize("content", ["", "   \n"])
def test_simulate_treats_empty_completion_as_error(make_backend, content):
    result = asyncio.run(simulate(make_backend("teacher", FakeClient(content=content)), "p"))
    assert result.is_error
    assert "Received empty response from model." in result.knowledge.text


# ---------- construction / selection ----------

def test_engine_requires_backends():
    with pytest.raises(ValueError):
        SimulationEngine([])


def test_engine_rejects_duplicate_names(make_backend):
    with pytest.raises(ValueError):
        SimulationEngine([make_backend("a", FakeClient()), make_backend("a", FakeClient())])


def test_select_user_builds_prompt_and_resets_slots(make_backend, user):
    engine = SimulationEngine([make_backend("teacher", FakeClient())])
    assert engine.state == SimulationState.IDLE
    prompt = engine.select_user(user)
    assert "- Name: Evelyn Hart" in prompt
    assert engine.prompt == prompt
    assert engine.state == SimulationState.READY
    assert engine.results() == {"teacher": None}

    assert engine.select_user(None) == ""
    assert engine.state == SimulationState.IDLE


def test_run_without_user_raises(make_backend):
    engine = SimulationEngine([make_backend("teacher", FakeClient(content=completion("A")))])
    with pytest.raises(ValueError):
        asyncio.run(engine.run_simulation())


# ---------- runs ----------

def test_run_fills_every_slot(make_backend, user):
    engine = SimulationEngine([
        make_backend("teacher", FakeClient(content=completion("B"))),
        make_backend("student", FakeClient(content=completion("C"))),
    ])
    results = asyncio.run(engine.run_simulation(user))

    assert {name: r.behavior for name, r in results.items()} == {"teacher": "B", "student": "C"}
    assert engine.results()["student"].behavior == "C"
    assert all(not slot.loading for slot in engine.slots.values())
    assert engine.state == SimulationState.COMPLETED


def test_edited_prompt_is_sent_verbatim(make_backend, user):
    client = FakeClient(content=completion("A"))
    engine = SimulationEngine([make_backend("teacher", client)])
    engine.select_user(user)
    asyncio.run(engine.run_simulation(prompt="my edited prompt"))
    assert client.prompts == ["my edited prompt"]
    assert engine.prompt == "my edited prompt"


def test_every_backend_gets_the_same_prompt(make_backend, user):
    clients = [FakeClient(content=completion("A")) for _ in range(3)]
    engine = SimulationEngine([make_backend(f"m{i}", c) for i, c in enumerate(clients)])
    asyncio.run(engine.run_simulation(user))
    prompts = {c.prompts[0] for c in clients}
    assert len(prompts) == 1


def test_results_arrive_in_completion_order(make_backend, user):
    seen = []
    engine = SimulationEngine([
        make_backend("slow", FakeClient(content=completion("A"), delay=0.05)),
        make_backend("fast", FakeClient(content=completion("B"))),
    ])
    asyncio.run(engine.run_simulation(user, on_result=lambda name, result: seen.append(name)))
    assert seen == ["fast", "slow"]


def test_one_failure_does_not_affect_the_others(make_backend, user):
    engine = SimulationEngine([
        make_backend("broken", FakeClient(error=LLMError("boom"))),
        make_backend("fine", FakeClient(content=completion("D"), delay=0.01)),
    ])
    results = asyncio.run(engine.run_simulation(user))
    assert results["broken"].is_error
    assert results["fine"].behavior == "D"
    assert engine.state == SimulationState.COMPLETED


def test_fallback_to_cached_result(make_backend, user, caplog):
    engine = SimulationEngine([make_backend("teacher", FakeClient(error=LLMError("down")), fallback_eligible=True)])
    with caplog.at_level(logging.WARNING, logger="src.simulation_layer.engine"):
        results = asyncio.run(engine.run_simulation(user))

    assert results["teacher"] == user.model_outputs["teacher"]
    assert engine.slots["teacher"].from_fallback
    assert "falling back to cached result" in caplog.text


def test_no_fallback_for_ineligible_backend(make_backend, user):
    # the user has a cached "teacher" result, but this backend may not use it
    engine = SimulationEngine([make_backend("teacher", FakeClient(error=LLMError("down")), fallback_eligible=False)])
    results = asyncio.run(engine.run_simulation(user))
    assert results["teacher"].is_error
    assert not engine.slots["teacher"].from_fallback


def test_no_fallback_without_cached_result(make_backend, user):
    engine = SimulationEngine([make_backend("student", FakeClient(error=LLMError("down")), fallback_eligible=True)])
    results = asyncio.run(engine.run_simulation(user))
    assert results["student"].is_error


def test_successful_result_is_not_replaced_by_cache(make_backend, user):
    engine = SimulationEngine([make_backend("teacher", FakeClient(content=completion("D")), fallback_eligible=True)])
    results = asyncio.run(engine.run_simulation(user))
    assert results["teacher"].behavior == "D"
    assert not engine.slots["teacher"].from_fallback


def test_slots_are_loading_while_running(make_backend, user):
    async def scenario():
        gate = asyncio.Event()
        engine = SimulationEngine([make_backend("teacher", FakeClient(content=completion("B"), gate=gate))])
        task = asyncio.create_task(engine.run_simulation(user))
        await asyncio.sleep(0)
        assert engine.state == SimulationState.RUNNING
        assert engine.slots["teacher"].loading
        gate.set()
        await task
        return engine

    engine = asyncio.run(scenario())
    assert not engine.slots["teacher"].loading
    assert engine.state == SimulationState.COMPLETED


def test_results_for_previous_user_are_discarded(make_backend, user, other_user):
    seen = []

    async def scenario():
        gate = asyncio.Event()
        engine = SimulationEngine([
            make_backend("teacher", FakeClient(content=completion("C"), gate=gate), fallback_eligible=True),
        ])
        task = asyncio.create_task(
            engine.run_simulation(user, on_result=lambda name, result: seen.append(name))
        )
        await asyncio.sleep(0)
        engine.select_user(other_user)
        gate.set()
        returned = await task
        return engine, returned

    engine, returned = asyncio.run(scenario())
    assert returned["teacher"].behavior == "C"
    assert seen == []
    assert engine.results() == {"teacher": None}
    assert engine.selected_user.id == "u2"
    assert engine.state == SimulationState.READY


def test_new_run_discards_previous_run(make_backend, user):
    seen = []

    async def scenario():
        gate = asyncio.Event()
        slow = FakeClient(content=completion("A"), gate=gate)
        engine = SimulationEngine([make_backend("teacher", slow)])
        first = asyncio.create_task(
            engine.run_simulation(user, on_result=lambda name, result: seen.append(("first", result.behavior)))
        )
        await asyncio.sleep(0)

        slow.gate = None
        slow.content = completion("B")
        await engine.run_simulation(user, on_result=lambda name, result: seen.append(("second", result.behavior)))
        gate.set()
        await first
        return engine

    engine = asyncio.run(scenario())
    assert seen == [("second", "B")]
    assert engine.results()["teacher"].behavior == "B"


def test_run_with_another_user_switches_selection(make_backend, user, other_user):
    engine = SimulationEngine([make_backend("teacher", FakeClient(content=completion("A")))])
    engine.select_user(user)
    asyncio.run(engine.run_simulation(other_user))
    assert engine.selected_user.id == "u2"
    assert "- Name: Marcus Lee" in engine.prompt


def test_build_prompt_for_selected_user(make_backend, user):
    engine = SimulationEngine([make_backend("teacher", FakeClient())])
    with pytest.raises(ValueError):
        engine.build_prompt()
    engine.select_user(user)
    assert engine.build_prompt() == engine.prompt


def test_failing_callback_does_not_stall_the_run(make_backend, user, caplog):
    seen = []

    def on_result(name, result):
        seen.append(name)
        if name == "fast":
            raise RuntimeError("render failed")

    engine = SimulationEngine([
        make_backend("fast", FakeClient(content=completion("A"))),
        make_backend("slow", FakeClient(content=completion("B"), delay=0.02)),
    ])
    with caplog.at_level(logging.ERROR, logger="src.simulation_layer.engine"):
        results = asyncio.run(engine.run_simulation(user, on_result=on_result))

    assert seen == ["fast", "slow"]
    assert results["fast"].behavior == "A"
    assert results["slow"].behavior == "B"
    assert engine.results()["fast"].behavior == "A"
    assert all(not slot.loading for slot in engine.slots.values())
    assert engine.state == SimulationState.COMPLETED
    assert "on_result callback failed for backend 'fast'" in caplog.text
