"""
File-based workflow store: one JSON document per workflow.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from automation_engine.errors import WorkflowNotFoundError
from automation_engine.schema.models import Workflow
from automation_engine.schema.serialization import dump_workflow, parse_workflow
from automation_engine.storage.base import WorkflowStore


_PREFIX = "workflow_"


class JsonFileWorkflowStore(WorkflowStore):
    def __init__(self, base_dir: str | Path):
        self._base = Path(base_dir)
        self._base.mkdir(parents=True, exist_ok=True)

    def _path(self, workflow_id: str) -> Path:
        if not workflow_id or "/" in workflow_id or "\\" in workflow_id or workflow_id.startswith("."):
            raise ValueError(f"Invalid workflow id '{workflow_id}'")
        return self._base / f"{_PREFIX}{workflow_id}.json"

    def load(self, workflow_id: str) -> Workflow:
        p = self._path(workflow_id)
        if not p.exists():
            raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found in {self._base}")
        return parse_workflow(p.read_text(encoding="utf-8"))

    def save(self, workflow: Workflow) -> None:
        p = self._path(workflow.id)
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(dump_workflow(workflow), encoding="utf-8")
        tmp.replace(p)

    def delete(self, workflow_id: str) -> None:
        self._path(workflow_id).unlink(missing_ok=True)

    def list_ids(self) -> List[str]:
        return sorted(
            p.stem[len(_PREFIX):]
            for p in self._base.glob(f"{_PREFIX}*.json")
        )
