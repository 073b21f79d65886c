"""
Per-block execution states and the report produced by a workflow run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BlockState(str, Enum):
    """Status of a block during a run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (BlockState.PENDING, BlockState.RUNNING)


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class BlockRunResult:
    """
    Result of running a single block.

    ``outcome`` holds the partial output map for completed blocks. Skipped
    blocks list the required inputs that never arrived in ``missing_inputs``.
    """
    block_id: str
    block_type: str
    state: BlockState = BlockState.PENDING
    outcome: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    missing_inputs: List[str] = field(default_factory=list)
    duration_ms: float = 0
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def is_completed(self) -> bool:
        return self.state == BlockState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.state == BlockState.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.state == BlockState.SKIPPED

    @property
    def is_cancelled(self) -> bool:
        return self.state == BlockState.CANCELLED

    def provides(self, output_id: str) -> bool:
        return self.state == BlockState.COMPLETED and output_id in self.outcome


@dataclass
class WorkflowRunResult:
    run_id: str
    workflow_id: str
    status: RunStatus
    sinks: Dict[str, BlockRunResult] = field(default_factory=dict)
    blocks: Dict[str, BlockRunResult] = field(default_factory=dict)
    cancel_reason: Optional[str] = None
    duration_ms: float = 0

    def sink_outcome(self, block_id: str, output_id: str) -> Any:
        return self.sinks[block_id].outcome.get(output_id)

    def summary(self) -> Dict[str, Any]:
        """Get summary of execution results."""
        return {
            "run_id": self.run_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "cancel_reason": self.cancel_reason,
            "total_blocks": len(self.blocks),
            "state_counts": {
                state.value: sum(1 for result in self.blocks.values() if result.state == state)
                for state in BlockState
            },
            "sinks": {
                block_id: {
                    "state": result.state.value,
                    "outputs": sorted(result.outcome),
                    "error": result.error,
                }
                for block_id, result in self.sinks.items()
            },
        }


__all__ = ["BlockRunResult", "BlockState", "RunStatus", "WorkflowRunResult"]
