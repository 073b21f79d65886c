from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping

import pytest

from automation_engine import run_workflow
from automation_engine.blocks.common import input_socket, output_socket
from automation_engine.errors import StructuralError
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition
from automation_engine.runtime.executor import WorkflowExecutor, _WorkflowRun, execute_workflow
from automation_engine.runtime.state import BlockState, RunStatus
from workflow_helpers import FakeProtocolClient, counting_registry, make_workflow, services_for, wait_until


MINT = {"mint-url": "https://mint.example", "unit": "sat"}


def _conditional_ab_workflow():
    return make_workflow(
        {"t": "trigger", "c": "conditional", "a": "constant", "b": "constant"},
        [
            ("t", "main-key", "c", "input-data"),
            ("c", "output-true", "a", "input-trigger"),
            ("c", "output-false", "b", "input-trigger"),
        ],
        {
            "t": {"token": "tok"},
            "c": {"field": "status", "operator": "equals", "value": "ok"},
            "a": {"value": "A"},
            "b": {"value": "B"},
        },
    )


class _MergeBehavior(BlockBehavior):
    async def run(self, inputs, config, services):
        return {"output-merged": dict(inputs)}


MERGE = BlockTypeDefinition(
    id="merge",
    name="Merge",
    behavior=_MergeBehavior(),
    inputs=[
        input_socket("input-main", "Main"),
        input_socket("input-extra", "Extra", required=False),
    ],
    outputs=[output_socket("output-merged", "Merged")],
)


class _RendezvousBehavior(BlockBehavior):
    """Completes only once its partner block has started too."""

    def __init__(self, events: Mapping[str, asyncio.Event]) -> None:
        self.events = events

    async def run(self, inputs, config, services):
        self.events[config.block_id].set()
        await self.events[str(config.get("partner"))].wait()
        return {"output-done": config.block_id}


class _ListBehavior(BlockBehavior):
    async def run(self, inputs, config, services) -> Any:
        return ["not", "a", "mapping"]


# ---------------------------------------------------------------------------
# Memoization
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_diamond_runs_shared_ancestors_once(client) -> None:
    registry, counts = counting_registry()
    workflow = make_workflow(
        {"t": "trigger", "s": "split", "x": "constant", "y": "constant"},
        [
            ("t", "main-key", "s", "input-value"),
            ("s", "output-left", "x", "input-trigger"),
            ("s", "output-left", "y", "input-trigger"),
        ],
        {"t": {"token": "tok"}, "x": {"value": "X"}, "y": {"value": "Y"}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.SUCCEEDED
    assert counts == {"t": 1, "s": 1, "x": 1, "y": 1}
    assert len(client.called("wait_for_key_handshake")) == 1
    assert result.sink_outcome("x", "output-value") == "X"
    assert result.sink_outcome("y", "output-value") == "Y"
    assert set(result.sinks) == {"x", "y"}


@pytest.mark.asyncio
async def test_shared_payment_block_is_invoked_once(client) -> None:
    registry, counts = counting_registry()
    workflow = make_workflow(
        {"t": "trigger", "pay": "payment_request", "left": "split", "right": "split"},
        [
            ("t", "main-key", "pay", "input-user_key"),
            ("pay", "output-success", "left", "input-value"),
            ("pay", "output-success", "right", "input-value"),
        ],
        {"t": {"token": "tok"}, "pay": {"amount": 21}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.SUCCEEDED
    assert counts["pay"] == 1
    assert len(client.called("request_single_payment")) == 1
    assert result.blocks["left"].outcome["output-left"]["payment_id"] == "pay-1"


# ---------------------------------------------------------------------------
# Branching
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_conditional_selects_constant_a(registry) -> None:
    client = FakeProtocolClient(handshake_values={"tok": {"status": "ok"}})

    result = await WorkflowExecutor(registry, services_for(client)).run(_conditional_ab_workflow())

    assert result.status == RunStatus.SUCCEEDED
    assert result.sinks["a"].state == BlockState.COMPLETED
    assert result.sink_outcome("a", "output-value") == "A"
    assert result.sinks["b"].state == BlockState.SKIPPED
    assert result.sinks["b"].missing_inputs == ["input-trigger"]
    assert result.blocks["c"].outcome == {
        "output-true": {"data": {"status": "ok"}, "condition_met": True},
    }


@pytest.mark.asyncio
async def test_conditional_selects_constant_b(registry) -> None:
    client = FakeProtocolClient(handshake_values={"tok": {"status": "pending"}})

    result = await WorkflowExecutor(registry, services_for(client)).run(_conditional_ab_workflow())

    assert result.sinks["a"].state == BlockState.SKIPPED
    assert result.sink_outcome("b", "output-value") == "B"


@pytest.mark.asyncio
async def test_skip_propagates_through_dependents(registry) -> None:
    client = FakeProtocolClient(handshake_values={"tok": {"status": "ok"}})
    workflow = make_workflow(
        {"t": "trigger", "c": "conditional", "s1": "split", "s2": "split"},
        [
            ("t", "main-key", "c", "input-data"),
            ("c", "output-false", "s1", "input-value"),
            ("s1", "output-left", "s2", "input-value"),
        ],
        {"t": {"token": "tok"}, "c": {"field": "status", "value": "ok"}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.SUCCEEDED
    assert result.blocks["s1"].state == BlockState.SKIPPED
    assert result.sinks["s2"].state == BlockState.SKIPPED
    assert result.sinks["s2"].missing_inputs == ["input-value"]


@pytest.mark.asyncio
async def test_optional_input_may_stay_empty() -> None:
    registry, counts = counting_registry([MERGE])
    client = FakeProtocolClient(handshake_values={"tok": {"status": "ok"}})
    workflow = make_workflow(
        {"t": "trigger", "c": "conditional", "m": "merge"},
        [
            ("t", "main-key", "c", "input-data"),
            ("c", "output-true", "m", "input-main"),
            ("c", "output-false", "m", "input-extra"),
        ],
        {"t": {"token": "tok"}, "c": {"field": "status", "value": "ok"}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.sinks["m"].state == BlockState.COMPLETED
    assert list(result.sink_outcome("m", "output-merged")) == ["input-main"]
    assert counts["m"] == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_failed_block_does_not_stop_unrelated_sink(registry) -> None:
    client = FakeProtocolClient(handshake_values={"tok": "npub-bob"}, send_error=RuntimeError("mint offline"))
    workflow = make_workflow(
        {
            "t": "trigger",
            "amt": "constant",
            "send": "ticket_send",
            "after": "split",
            "other": "constant",
        },
        [
            ("t", "main-key", "send", "input-key"),
            ("amt", "output-value", "send", "input-amount"),
            ("send", "output-result", "after", "input-value"),
        ],
        {
            "t": {"token": "tok"},
            "amt": {"value": "5", "type": "number"},
            "send": MINT,
            "other": {"value": "still here"},
        },
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.FAILED
    send = result.blocks["send"]
    assert send.state == BlockState.FAILED
    assert send.error_type == "RuntimeError"
    assert "mint offline" in send.error
    assert result.sinks["after"].state == BlockState.SKIPPED
    assert result.sink_outcome("other", "output-value") == "still here"
    assert client.called("mint_token") == [("https://mint.example", "sat", 5)]


@pytest.mark.asyncio
async def test_payment_rejection_takes_failure_branch(registry) -> None:
    client = FakeProtocolClient(handshake_values={"tok": "npub-alice"}, payment_status="rejected")
    workflow = make_workflow(
        {"t": "trigger", "pay": "payment_request", "ok": "split", "ko": "split", "other": "constant"},
        [
            ("t", "main-key", "pay", "input-user_key"),
            ("pay", "output-success", "ok", "input-value"),
            ("pay", "output-failure", "ko", "input-value"),
        ],
        {"t": {"token": "tok"}, "pay": {"amount": 100}, "other": {"value": "1", "type": "number"}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.SUCCEEDED
    assert list(result.blocks["pay"].outcome) == ["output-failure"]
    assert result.sinks["ok"].state == BlockState.SKIPPED
    assert result.sink_outcome("ko", "output-left") == {
        "error": "user rejected",
        "user_key": "npub-alice",
        "amount": 100,
    }
    assert result.sink_outcome("other", "output-value") == 1


@pytest.mark.asyncio
async def test_non_mapping_outcome_fails_block(client) -> None:
    registry, _ = counting_registry([
        BlockTypeDefinition(
            id="bad",
            name="Bad",
            behavior=_ListBehavior(),
            outputs=[output_socket("output-value", "Value")],
        ),
    ])
    workflow = make_workflow({"bad": "bad"})

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert result.status == RunStatus.FAILED
    assert result.sinks["bad"].error_type == "BehaviorError"
    assert "expected a mapping" in result.sinks["bad"].error


# ---------------------------------------------------------------------------
# Cancellation and timeouts
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cancel_event_aborts_waiting_trigger(registry) -> None:
    client = FakeProtocolClient()
    workflow = make_workflow(
        {"t": "trigger", "s": "split"},
        [("t", "main-key", "s", "input-value")],
        {"t": {"token": "never"}},
    )
    cancel = asyncio.Event()

    run = asyncio.ensure_future(
        WorkflowExecutor(registry, services_for(client)).run(workflow, cancel_event=cancel)
    )
    await wait_until(lambda: client.in_flight == 1)
    cancel.set()
    result = await asyncio.wait_for(run, timeout=1.0)

    assert result.status == RunStatus.CANCELLED
    assert result.cancel_reason == "cancelled"
    assert result.blocks["t"].state == BlockState.CANCELLED
    assert result.sinks["s"].state == BlockState.CANCELLED
    assert client.cancelled == ["never"]
    assert client.in_flight == 0


@pytest.mark.asyncio
async def test_cancel_event_set_before_run_executes_nothing(registry, client) -> None:
    workflow = make_workflow(
        {"t": "trigger", "s": "split"},
        [("t", "main-key", "s", "input-value")],
        {"t": {"token": "tok"}},
    )
    cancel = asyncio.Event()
    cancel.set()

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow, cancel_event=cancel)

    assert result.status == RunStatus.CANCELLED
    assert client.calls == []
    assert {block.state for block in result.blocks.values()} == {BlockState.CANCELLED}


@pytest.mark.asyncio
async def test_cancelling_the_caller_drains_block_tasks(registry) -> None:
    client = FakeProtocolClient()
    workflow = make_workflow({"t": "trigger"}, configs={"t": {"token": "never"}})

    run = asyncio.ensure_future(WorkflowExecutor(registry, services_for(client)).run(workflow))
    await wait_until(lambda: client.in_flight == 1)
    run.cancel()

    with pytest.raises(asyncio.CancelledError):
        await run
    assert client.cancelled == ["never"]
    assert client.in_flight == 0


@pytest.mark.asyncio
async def test_run_timeout_cancels_in_flight_blocks(registry) -> None:
    client = FakeProtocolClient()
    workflow = make_workflow({"t": "trigger"}, configs={"t": {"token": "never"}})

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow, timeout=0.05)

    assert result.status == RunStatus.CANCELLED
    assert result.cancel_reason == "timeout"
    assert result.sinks["t"].state == BlockState.CANCELLED
    assert client.in_flight == 0


@pytest.mark.asyncio
async def test_handshake_timeout_cancels_run(registry) -> None:
    client = FakeProtocolClient()
    workflow = make_workflow(
        {"t": "trigger", "s": "split", "other": "constant"},
        [("t", "main-key", "s", "input-value")],
        {"t": {"token": "slow"}, "other": {"value": "x"}},
    )

    result = await WorkflowExecutor(registry, services_for(client, handshake_timeout=0.05)).run(workflow)

    assert result.status == RunStatus.CANCELLED
    assert result.cancel_reason == "handshake_timeout"
    assert result.blocks["t"].state == BlockState.CANCELLED
    assert result.blocks["t"].error_type == "HandshakeTimeoutError"
    assert result.sinks["s"].state == BlockState.CANCELLED
    assert client.in_flight == 0


# ---------------------------------------------------------------------------
# Structural errors
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cycle_is_rejected_before_any_side_effect(registry, client) -> None:
    workflow = make_workflow(
        {"t": "trigger", "pay": "payment_request", "a": "split", "b": "split"},
        [
            ("t", "main-key", "pay", "input-user_key"),
            ("a", "output-left", "b", "input-value"),
            ("b", "output-left", "a", "input-value"),
            ("b", "output-right", "pay", "input-amount"),
        ],
        {"t": {"token": "tok"}},
    )

    with pytest.raises(StructuralError) as excinfo:
        await WorkflowExecutor(registry, services_for(client)).run(workflow)

    assert "cycle" in excinfo.value.codes
    assert set(excinfo.value.connection_ids) >= {"c2", "c3"}
    assert client.calls == []


@pytest.mark.asyncio
async def test_resolution_detects_cycle_without_validation(registry, client) -> None:
    workflow = make_workflow(
        {"a": "split", "b": "split", "sink": "split"},
        [
            ("a", "output-left", "b", "input-value"),
            ("b", "output-left", "a", "input-value"),
            ("b", "output-right", "sink", "input-value"),
        ],
    )
    run = _WorkflowRun(workflow, registry, services_for(client))

    with pytest.raises(StructuralError) as excinfo:
        await asyncio.wait_for(run.execute(cancel_event=None, timeout=None), timeout=1.0)

    assert excinfo.value.codes == ["cycle"]


@pytest.mark.asyncio
async def test_resolution_detects_dangling_source(registry, client) -> None:
    workflow = make_workflow(
        {"sink": "split"},
        [("ghost", "output-left", "sink", "input-value")],
    )
    run = _WorkflowRun(workflow, registry, services_for(client))

    with pytest.raises(StructuralError) as excinfo:
        await run.execute(cancel_event=None, timeout=None)

    assert excinfo.value.codes == ["missing_source_block"]
    assert excinfo.value.connection_ids == ["c1"]


# ---------------------------------------------------------------------------
# Concurrency and entry points
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_independent_sinks_run_concurrently(client) -> None:
    events: Dict[str, asyncio.Event] = {"left": asyncio.Event(), "right": asyncio.Event()}
    rendezvous = BlockTypeDefinition(
        id="rendezvous",
        name="Rendezvous",
        behavior=_RendezvousBehavior(events),
        outputs=[output_socket("output-done", "Done")],
    )
    registry, _ = counting_registry([rendezvous])
    workflow = make_workflow(
        {"left": "rendezvous", "right": "rendezvous"},
        configs={"left": {"partner": "right"}, "right": {"partner": "left"}},
    )

    result = await WorkflowExecutor(registry, services_for(client)).run(workflow, timeout=1.0)

    assert result.status == RunStatus.SUCCEEDED
    assert result.sink_outcome("left", "output-done") == "left"
    assert result.sink_outcome("right", "output-done") == "right"


@pytest.mark.asyncio
async def test_execute_workflow_helper(registry, client) -> None:
    workflow = make_workflow(
        {"t": "trigger", "s": "split"},
        [("t", "main-key", "s", "input-value")],
        {"t": {"token": "tok"}},
    )

    result = await execute_workflow(workflow, registry, services_for(client), run_id="run-fixed")

    assert result.run_id == "run-fixed"
    assert result.sink_outcome("s", "output-right") == "npub-alice"
    summary = result.summary()
    assert summary["status"] == "succeeded"
    assert summary["state_counts"]["completed"] == 2
    assert summary["sinks"]["s"]["outputs"] == ["output-left", "output-right"]


@pytest.mark.asyncio
async def test_run_workflow_accepts_serialized_payload(client) -> None:
    payload = {
        "id": "wf-json",
        "name": "Ticket drop",
        "blocks": [
            {"id": "t", "type": "trigger"},
            {"id": "tickets", "type": "ticket_request"},
            {"id": "amt", "type": "constant"},
        ],
        "connections": [
            {"id": "c1", "fromBlockId": "t", "fromOutputId": "main-key", "toBlockId": "tickets", "toInputId": "input-key"},
            {"id": "c2", "fromBlockId": "amt", "fromOutputId": "output-value", "toBlockId": "tickets", "toInputId": "input-amount"},
        ],
        "blockConfigs": [
            {"id": "cfg-t", "blockId": "t", "parameters": {"token": "tok"}},
            {"id": "cfg-amt", "blockId": "amt", "parameters": {"value": "2", "type": "number"}},
            {"id": "cfg-tickets", "blockId": "tickets", "parameters": MINT},
        ],
    }

    result = await run_workflow(payload, client)

    assert result.workflow_id == "wf-json"
    assert result.sink_outcome("tickets", "output-success") == {"num_tickets": 3}
    assert client.called("request_ticket") == [("npub-alice", "https://mint.example", "sat", 2)]
