from automation_engine.storage.base import WorkflowStore
from automation_engine.storage.in_memory import InMemoryWorkflowStore
from automation_engine.storage.json_files import JsonFileWorkflowStore

__all__ = ["InMemoryWorkflowStore", "JsonFileWorkflowStore", "WorkflowStore"]
