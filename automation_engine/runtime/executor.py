"""
Dependency-driven asynchronous executor for workflow graphs.

A run starts from the sink blocks (blocks nothing consumes) and resolves each
block by first resolving the producers of its connected inputs, concurrently.
Every block gets exactly one ``asyncio.Task`` per run, kept in a run-scoped
cache keyed by block id; any number of consumers await that same task, so a
side-effecting behavior (a payment request, say) is never invoked twice.

Branching works through partial outcomes: a producer that did not populate the
output socket a consumer is wired to (untaken branch, failed or skipped
producer) leaves that input absent, and a consumer missing a required
connected input settles as ``skipped`` without running its behavior.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple
from uuid import uuid4

from automation_engine.compiler.graph_index import GraphIndex
from automation_engine.compiler.validate_graph import validate_workflow
from automation_engine.errors import (
    BehaviorError,
    CancellationError,
    GraphIssue,
    HandshakeTimeoutError,
    StructuralError,
)
from automation_engine.registry.block_registry import BlockRegistry, BlockTypeDefinition
from automation_engine.runtime.coercion import effective_config
from automation_engine.runtime.services import RuntimeServices
from automation_engine.runtime.state import (
    BlockRunResult,
    BlockState,
    RunStatus,
    WorkflowRunResult,
)
from automation_engine.schema.models import Block, Connection, Workflow
from shared.config import config as default_config
from shared.logger import get_logger


logger = get_logger(__name__)


class WorkflowExecutor:
    """
    Runs validated workflows against a block registry.

    The executor itself is stateless between runs; each call to :meth:`run`
    builds its own memoization cache.
    """

    def __init__(
        self,
        registry: BlockRegistry,
        services: RuntimeServices,
        *,
        run_timeout: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.services = services
        self.run_timeout = run_timeout if run_timeout is not None else default_config.run_timeout_seconds

    async def run(
        self,
        workflow: Workflow,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
        run_id: Optional[str] = None,
    ) -> WorkflowRunResult:
        """
        Validate ``workflow`` and evaluate every sink.

        Raises StructuralError before any block runs when the graph is invalid,
        or during the run when resolution hits a dangling edge or a cycle.
        Setting ``cancel_event`` or exceeding ``timeout`` settles every
        unfinished block as cancelled.
        """
        validate_workflow(workflow, self.registry)
        effective_timeout = timeout if timeout is not None else self.run_timeout
        workflow_run = _WorkflowRun(workflow, self.registry, self.services, run_id=run_id)
        return await workflow_run.execute(cancel_event=cancel_event, timeout=effective_timeout)


async def execute_workflow(
    workflow: Workflow,
    registry: BlockRegistry,
    services: RuntimeServices,
    **kwargs: Any,
) -> WorkflowRunResult:
    return await WorkflowExecutor(registry, services).run(workflow, **kwargs)


class _WorkflowRun:
    """State of a single run: the task cache, terminal results and abort flag."""

    def __init__(
        self,
        workflow: Workflow,
        registry: BlockRegistry,
        services: RuntimeServices,
        *,
        run_id: Optional[str] = None,
    ) -> None:
        self.workflow = workflow
        self.registry = registry
        self.services = services
        self.run_id = run_id or f"run-{uuid4().hex[:12]}"
        self.index = GraphIndex(workflow)
        self._blocks: Dict[str, Block] = {block.id: block for block in workflow.blocks}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._results: Dict[str, BlockRunResult] = {}
        self._abort = asyncio.Event()
        self.cancel_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    async def execute(
        self,
        *,
        cancel_event: Optional[asyncio.Event],
        timeout: Optional[float],
    ) -> WorkflowRunResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout if timeout is not None else None
        sinks = self.index.sinks()
        logger.info(
            "Run %s started for workflow %s (%d blocks, sinks=%s)",
            self.run_id,
            self.workflow.id,
            len(self._blocks),
            sinks,
        )

        if cancel_event is not None and cancel_event.is_set():
            self.abort("cancelled")

        abort_waiter = asyncio.ensure_future(self._abort.wait())
        watcher = asyncio.ensure_future(self._watch(cancel_event)) if cancel_event is not None else None
        pending: Set[asyncio.Future] = set()
        if not self._abort.is_set():
            pending = {self.schedule(block_id) for block_id in sinks}
        fatal: Optional[BaseException] = None

        try:
            while pending and fatal is None:
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait(
                    pending | {abort_waiter},
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if not done:
                    self.abort("timeout")
                    break
                if abort_waiter in done:
                    break
                for task in done:
                    pending.discard(task)
                    if task.cancelled():
                        self.abort("cancelled")
                        continue
                    if task.exception() is not None:
                        fatal = task.exception()
                        break
        finally:
            helpers = [abort_waiter] if watcher is None else [abort_waiter, watcher]
            for helper in helpers:
                helper.cancel()
            await self._drain()
            await asyncio.gather(*helpers, return_exceptions=True)

        if fatal is not None:
            logger.error("Run %s aborted: %s", self.run_id, fatal)
            raise fatal

        result = self._build_result(sinks, duration_ms=(loop.time() - started) * 1000)
        logger.info(
            "Run %s finished with status %s%s",
            self.run_id,
            result.status.value,
            f" ({result.cancel_reason})" if result.cancel_reason else "",
        )
        return result

    def abort(self, reason: str) -> None:
        if self._abort.is_set():
            return
        self.cancel_reason = reason
        logger.warning("Run %s cancelling: %s", self.run_id, reason)
        self._abort.set()

    async def _watch(self, cancel_event: asyncio.Event) -> None:
        await cancel_event.wait()
        self.abort("cancelled")

    async def _drain(self) -> None:
        """Cancel every unfinished block task and wait for all of them to settle."""
        while True:
            unfinished = [task for task in self._tasks.values() if not task.done()]
            if not unfinished:
                break
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)
        for task in self._tasks.values():
            if not task.cancelled():
                # mark the outcome as retrieved; fatal errors are re-raised by execute()
                task.exception()

    def _build_result(self, sinks: List[str], *, duration_ms: float) -> WorkflowRunResult:
        blocks: Dict[str, BlockRunResult] = {}
        for block_id, block in self._blocks.items():
            result = self._results.get(block_id)
            if result is None:
                state = BlockState.CANCELLED if self.cancel_reason else BlockState.PENDING
                result = BlockRunResult(block_id=block_id, block_type=block.type, state=state)
            elif not result.state.is_terminal and self.cancel_reason:
                result.state = BlockState.CANCELLED
            blocks[block_id] = result

        if self.cancel_reason:
            status = RunStatus.CANCELLED
        elif any(result.is_failed for result in blocks.values()):
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCEEDED

        return WorkflowRunResult(
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            status=status,
            sinks={block_id: blocks[block_id] for block_id in sinks},
            blocks=blocks,
            cancel_reason=self.cancel_reason,
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def schedule(self, block_id: str) -> asyncio.Task:
        # No await between lookup and insert: the first caller creates the task,
        # everyone else gets the same one.
        task = self._tasks.get(block_id)
        if task is None:
            task = asyncio.ensure_future(self._execute(block_id))
            self._tasks[block_id] = task
        return task

    async def resolve(self, block_id: str) -> BlockRunResult:
        # Shielded so a cancelled consumer never cancels a producer it shares.
        return await asyncio.shield(self.schedule(block_id))

    async def _execute(self, block_id: str) -> BlockRunResult:
        block = self._blocks.get(block_id)
        if block is None:
            raise StructuralError(GraphIssue(code="missing_block", message=f"Block '{block_id}' does not exist"))
        definition = self.registry.maybe_get(block.type)
        if definition is None:
            raise StructuralError(GraphIssue(
                code="unknown_block_type",
                message=f"Block '{block_id}' has unregistered type '{block.type}'",
                block_id=block_id,
            ))

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = BlockRunResult(block_id=block_id, block_type=block.type)
        self._results[block_id] = result

        try:
            inputs, missing, upstream_cancelled = await self._collect_inputs(block_id, definition)
            if upstream_cancelled:
                result.state = BlockState.CANCELLED
                return result
            if missing:
                result.state = BlockState.SKIPPED
                result.missing_inputs = missing
                logger.debug("Block %s skipped, missing inputs %s", block_id, missing)
                return result

            result.state = BlockState.RUNNING
            logger.debug("Block %s (%s) running with inputs %s", block_id, block.type, sorted(inputs))
            block_config = effective_config(definition, block_id, self.workflow.config_for(block_id))
            outcome = await definition.behavior.run(inputs, block_config, self.services)
            result.outcome = self._check_outcome(block_id, definition, outcome)
            result.state = BlockState.COMPLETED
            logger.debug("Block %s completed with outputs %s", block_id, sorted(result.outcome))
        except StructuralError:
            raise
        except asyncio.CancelledError:
            result.state = BlockState.CANCELLED
            raise
        except CancellationError as exc:
            result.state = BlockState.CANCELLED
            result.error = str(exc)
            result.error_type = type(exc).__name__
            result.exception = exc
            self.abort("handshake_timeout" if isinstance(exc, HandshakeTimeoutError) else "cancelled")
        except Exception as exc:
            result.state = BlockState.FAILED
            result.error = str(exc)
            result.error_type = type(exc).__name__
            result.exception = exc
            logger.warning("Block %s (%s) failed: %s", block_id, block.type, exc)
        finally:
            result.duration_ms = (loop.time() - started) * 1000
        return result

    async def _collect_inputs(
        self,
        block_id: str,
        definition: BlockTypeDefinition,
    ) -> Tuple[Dict[str, Any], List[str], bool]:
        incoming = self.index.incoming(block_id)
        for conn in incoming:
            self._check_edge(block_id, conn)

        producers = await asyncio.gather(*(self.resolve(conn.from_block_id) for conn in incoming))

        inputs: Dict[str, Any] = {}
        missing: List[str] = []
        upstream_cancelled = False
        for conn, producer in zip(incoming, producers):
            if producer.is_cancelled:
                upstream_cancelled = True
                continue
            if producer.provides(conn.from_output_id):
                inputs[conn.to_input_id] = producer.outcome[conn.from_output_id]
                continue
            socket = definition.input_socket(conn.to_input_id)
            if socket is None or socket.required:
                missing.append(conn.to_input_id)
        return inputs, missing, upstream_cancelled

    def _check_edge(self, block_id: str, conn: Connection) -> None:
        if not self.index.has_block(conn.from_block_id):
            raise StructuralError(GraphIssue(
                code="missing_source_block",
                message=f"Connection '{conn.id}': source block '{conn.from_block_id}' does not exist",
                block_id=block_id,
                connection_ids=[conn.id],
            ))
        if conn.from_block_id == block_id or block_id in self.index.ancestors(conn.from_block_id):
            raise StructuralError(GraphIssue(
                code="cycle",
                message=f"Connection '{conn.id}': block '{block_id}' depends on itself",
                block_id=block_id,
                connection_ids=[conn.id],
            ))

    @staticmethod
    def _check_outcome(block_id: str, definition: BlockTypeDefinition, outcome: Any) -> Dict[str, Any]:
        if outcome is None:
            return {}
        if not isinstance(outcome, Mapping):
            raise BehaviorError(block_id, f"behavior returned {type(outcome).__name__}, expected a mapping")
        unknown = [key for key in outcome if definition.output_socket(key) is None]
        if unknown:
            logger.warning("Block %s produced undeclared outputs %s", block_id, unknown)
        return dict(outcome)


__all__ = ["WorkflowExecutor", "execute_workflow"]
