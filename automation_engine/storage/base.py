"""
Persistence interface for workflow aggregates.

The engine never loads or saves on its own; callers fetch a workflow from a
store, run it, and save edits back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from automation_engine.schema.models import Workflow


class WorkflowStore(ABC):
    @abstractmethod
    def load(self, workflow_id: str) -> Workflow:
        """Return the workflow or raise WorkflowNotFoundError."""

    @abstractmethod
    def save(self, workflow: Workflow) -> None: ...

    @abstractmethod
    def delete(self, workflow_id: str) -> None: ...

    @abstractmethod
    def list_ids(self) -> List[str]: ...
