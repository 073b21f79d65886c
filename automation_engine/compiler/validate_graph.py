"""
Structural validation of a workflow against the block registry.

Every issue is collected before anything is raised so the editor can highlight
all offending connections at once.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Dict, List, Tuple

from automation_engine.compiler.graph_index import GraphIndex
from automation_engine.errors import GraphIssue, StructuralError
from automation_engine.registry.block_registry import BlockRegistry
from automation_engine.runtime.coercion import config_errors
from automation_engine.schema.models import Connection, Workflow


def validate_workflow(workflow: Workflow, registry: BlockRegistry) -> None:
    issues = collect_graph_issues(workflow, registry)
    if issues:
        raise StructuralError(issues)


def collect_graph_issues(workflow: Workflow, registry: BlockRegistry) -> List[GraphIssue]:
    issues: List[GraphIssue] = []
    _check_blocks(workflow, registry, issues)
    _check_connections(workflow, registry, issues)
    _check_single_producer(workflow, issues)
    _check_acyclic(workflow, issues)
    _check_configs(workflow, registry, issues)
    return issues


def _check_blocks(workflow: Workflow, registry: BlockRegistry, issues: List[GraphIssue]) -> None:
    counts = Counter(block.id for block in workflow.blocks)
    for block_id, count in counts.items():
        if count > 1:
            issues.append(
                GraphIssue(
                    code="duplicate_block",
                    message=f"Block id '{block_id}' is used by {count} blocks",
                    block_id=block_id,
                )
            )
    for block in workflow.blocks:
        if registry.maybe_get(block.type) is None:
            issues.append(
                GraphIssue(
                    code="unknown_block_type",
                    message=f"Block '{block.id}' has unregistered type '{block.type}'",
                    block_id=block.id,
                )
            )


def _check_connections(workflow: Workflow, registry: BlockRegistry, issues: List[GraphIssue]) -> None:
    for conn in workflow.connections:
        source = workflow.get_block(conn.from_block_id)
        target = workflow.get_block(conn.to_block_id)

        if source is None:
            issues.append(_connection_issue(conn, "missing_source_block", f"source block '{conn.from_block_id}' does not exist"))
        else:
            definition = registry.maybe_get(source.type)
            if definition is not None and definition.output_socket(conn.from_output_id) is None:
                if definition.input_socket(conn.from_output_id) is not None:
                    issues.append(_connection_issue(
                        conn,
                        "wrong_socket_direction",
                        f"'{conn.from_output_id}' on block '{source.id}' is an input, not an output",
                    ))
                else:
                    issues.append(_connection_issue(
                        conn,
                        "unknown_output_socket",
                        f"block '{source.id}' ({source.type}) has no output '{conn.from_output_id}'",
                    ))

        if target is None:
            issues.append(_connection_issue(conn, "missing_target_block", f"target block '{conn.to_block_id}' does not exist"))
        else:
            definition = registry.maybe_get(target.type)
            if definition is not None and definition.input_socket(conn.to_input_id) is None:
                if definition.output_socket(conn.to_input_id) is not None:
                    issues.append(_connection_issue(
                        conn,
                        "wrong_socket_direction",
                        f"'{conn.to_input_id}' on block '{target.id}' is an output, not an input",
                    ))
                else:
                    issues.append(_connection_issue(
                        conn,
                        "unknown_input_socket",
                        f"block '{target.id}' ({target.type}) has no input '{conn.to_input_id}'",
                    ))


def _check_single_producer(workflow: Workflow, issues: List[GraphIssue]) -> None:
    producers: Dict[Tuple[str, str], List[str]] = defaultdict(list)
    for conn in workflow.connections:
        producers[(conn.to_block_id, conn.to_input_id)].append(conn.id)
    for (block_id, input_id), connection_ids in producers.items():
        if len(connection_ids) > 1:
            issues.append(
                GraphIssue(
                    code="multiple_producers",
                    message=f"Input '{input_id}' of block '{block_id}' has {len(connection_ids)} producers",
                    block_id=block_id,
                    connection_ids=connection_ids,
                )
            )


def _check_acyclic(workflow: Workflow, issues: List[GraphIssue]) -> None:
    index = GraphIndex(workflow)
    if index.topological_order() is not None:
        return
    cycle = index.cycle_connections()
    involved = sorted({conn.from_block_id for conn in cycle})
    issues.append(
        GraphIssue(
            code="cycle",
            message=f"Workflow has cycles involving blocks: {', '.join(involved)}",
            connection_ids=[conn.id for conn in cycle],
        )
    )


def _check_configs(workflow: Workflow, registry: BlockRegistry, issues: List[GraphIssue]) -> None:
    per_block = Counter(cfg.block_id for cfg in workflow.block_configs)
    for block_id, count in per_block.items():
        if workflow.get_block(block_id) is None:
            issues.append(GraphIssue(
                code="orphan_config",
                message=f"Config references missing block '{block_id}'",
                block_id=block_id,
            ))
        elif count > 1:
            issues.append(GraphIssue(
                code="duplicate_config",
                message=f"Block '{block_id}' has {count} configs",
                block_id=block_id,
            ))

    for block in workflow.blocks:
        definition = registry.maybe_get(block.type)
        if definition is None:
            continue
        for error in config_errors(definition, workflow.config_for(block.id)):
            issues.append(GraphIssue(
                code="invalid_config",
                message=f"Block '{block.id}': {error}",
                block_id=block.id,
            ))


def _connection_issue(conn: Connection, code: str, detail: str) -> GraphIssue:
    return GraphIssue(
        code=code,
        message=f"Connection '{conn.id}': {detail}",
        connection_ids=[conn.id],
    )


__all__ = ["collect_graph_issues", "validate_workflow"]
