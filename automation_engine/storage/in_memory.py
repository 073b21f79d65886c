"""
In-memory workflow store (testing/dev).
"""

from __future__ import annotations

from typing import Dict, List

from automation_engine.errors import WorkflowNotFoundError
from automation_engine.schema.models import Workflow
from automation_engine.storage.base import WorkflowStore


class InMemoryWorkflowStore(WorkflowStore):
    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}

    def load(self, workflow_id: str) -> Workflow:
        try:
            # deep copies keep callers from mutating the stored snapshot
            return self._workflows[workflow_id].model_copy(deep=True)
        except KeyError as exc:
            raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found") from exc

    def save(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    def delete(self, workflow_id: str) -> None:
        self._workflows.pop(workflow_id, None)

    def list_ids(self) -> List[str]:
        return sorted(self._workflows)
