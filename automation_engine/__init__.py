"""
Public entrypoint for validating and running automation workflows.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from automation_engine.compiler.validate_graph import collect_graph_issues, validate_workflow
from automation_engine.errors import (
    AutomationError,
    BehaviorError,
    CancellationError,
    StructuralError,
)
from automation_engine.registry.block_registry import BlockRegistry, BlockTypeDefinition
from automation_engine.registry.builtins import build_default_registry
from automation_engine.runtime.executor import WorkflowExecutor
from automation_engine.runtime.services import ProtocolClient, RuntimeServices
from automation_engine.runtime.state import BlockState, RunStatus, WorkflowRunResult
from automation_engine.schema.models import Workflow
from automation_engine.schema.serialization import parse_workflow


async def run_workflow(
    payload: Any,
    protocol: ProtocolClient,
    *,
    registry: Optional[BlockRegistry] = None,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> WorkflowRunResult:
    """
    Parse (when needed), validate and run a workflow with the built-in blocks.
    """

    workflow = payload if isinstance(payload, Workflow) else parse_workflow(payload)
    executor = WorkflowExecutor(
        registry or build_default_registry(),
        RuntimeServices.from_config(protocol),
    )
    return await executor.run(workflow, cancel_event=cancel_event, timeout=timeout)


__all__ = [
    "AutomationError",
    "BehaviorError",
    "BlockRegistry",
    "BlockState",
    "BlockTypeDefinition",
    "CancellationError",
    "RunStatus",
    "RuntimeServices",
    "StructuralError",
    "Workflow",
    "WorkflowExecutor",
    "WorkflowRunResult",
    "build_default_registry",
    "collect_graph_issues",
    "parse_workflow",
    "run_workflow",
    "validate_workflow",
]
