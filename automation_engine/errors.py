"""
Shared exception hierarchy for the automation engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional


class AutomationError(Exception):
    """Base class for all automation engine errors."""


@dataclass(frozen=True)
class GraphIssue:
    """One structural problem found in a workflow graph."""

    code: str
    message: str
    block_id: Optional[str] = None
    connection_ids: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.connection_ids:
            return f"[{self.code}] {self.message} (connections: {', '.join(self.connection_ids)})"
        return f"[{self.code}] {self.message}"


class StructuralError(AutomationError):
    """Raised when the workflow graph is invalid (dangling edge, fan-in, cycle...)."""

    def __init__(self, issues: Iterable[GraphIssue] | GraphIssue | str) -> None:
        if isinstance(issues, str):
            issues = [GraphIssue(code="structure", message=issues)]
        elif isinstance(issues, GraphIssue):
            issues = [issues]
        self.issues: List[GraphIssue] = list(issues)
        super().__init__("\n".join(str(issue) for issue in self.issues))

    @property
    def connection_ids(self) -> List[str]:
        ids: List[str] = []
        for issue in self.issues:
            for connection_id in issue.connection_ids:
                if connection_id not in ids:
                    ids.append(connection_id)
        return ids

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]


class BehaviorError(AutomationError):
    """Raised when a block behavior cannot produce an outcome."""

    def __init__(self, block_id: Optional[str], message: str) -> None:
        self.block_id = block_id
        self.message = message
        prefix = f"Block '{block_id}': " if block_id else ""
        super().__init__(f"{prefix}{message}")


class CancellationError(AutomationError):
    """Raised when a run is cancelled or times out."""


class HandshakeTimeoutError(CancellationError):
    """Raised by the trigger block when its handshake wait elapses."""


class BlockTypeNotFoundError(KeyError):
    """Raised when attempting to access an unknown block type."""


class WorkflowFormatError(AutomationError):
    """Raised when a serialized workflow payload cannot be parsed."""


class WorkflowNotFoundError(AutomationError):
    """Raised when a workflow store has no workflow for the requested id."""


__all__ = [
    "AutomationError",
    "BehaviorError",
    "BlockTypeNotFoundError",
    "CancellationError",
    "GraphIssue",
    "HandshakeTimeoutError",
    "StructuralError",
    "WorkflowFormatError",
    "WorkflowNotFoundError",
]
