"""
Parse and dump workflow documents.

Block ids, socket ids and connection endpoints are kept verbatim: the engine is
keyed by them throughout.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError

from automation_engine.errors import WorkflowFormatError
from automation_engine.schema.models import Workflow


def parse_workflow(payload: Any) -> Workflow:
    """
    Accepts either a JSON string or a mapping compatible with the Workflow
    model and returns a validated Workflow instance.
    """

    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise WorkflowFormatError(f"Invalid workflow JSON payload: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise WorkflowFormatError(
            f"Unsupported payload type {type(payload).__name__}; expected str or Mapping"
        )

    if not isinstance(data, Mapping):
        raise WorkflowFormatError("Workflow payload must decode to an object")

    try:
        return Workflow.model_validate(data)
    except ValidationError as exc:
        raise WorkflowFormatError(f"Workflow validation failed: {exc}") from exc


def workflow_to_dict(workflow: Workflow) -> dict:
    return workflow.model_dump(mode="json", by_alias=True)


def dump_workflow(workflow: Workflow, *, indent: int | None = 2) -> str:
    return json.dumps(workflow_to_dict(workflow), indent=indent)


def create_workflow(workflow_id: str, name: str) -> Workflow:
    """Create an empty, inactive workflow."""
    return Workflow(id=workflow_id, name=name)


__all__ = ["create_workflow", "dump_workflow", "parse_workflow", "workflow_to_dict"]
