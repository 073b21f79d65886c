"""
Adjacency indexes over a workflow graph.

Builds incoming/outgoing connection maps once so that validation and the
executor do not rescan the connection list for every block.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from automation_engine.schema.models import Connection, Workflow


class GraphIndex:
    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow
        self.block_ids: List[str] = [block.id for block in workflow.blocks]
        self._known: Set[str] = set(self.block_ids)
        self._incoming: Dict[str, List[Connection]] = {block_id: [] for block_id in self.block_ids}
        self._outgoing: Dict[str, List[Connection]] = {block_id: [] for block_id in self.block_ids}
        for conn in workflow.connections:
            self._incoming.setdefault(conn.to_block_id, []).append(conn)
            self._outgoing.setdefault(conn.from_block_id, []).append(conn)
        self._ancestors: Dict[str, Set[str]] = {}

    def has_block(self, block_id: str) -> bool:
        return block_id in self._known

    def incoming(self, block_id: str) -> List[Connection]:
        return list(self._incoming.get(block_id, ()))

    def outgoing(self, block_id: str) -> List[Connection]:
        return list(self._outgoing.get(block_id, ()))

    def sinks(self) -> List[str]:
        """Blocks whose outputs nothing consumes."""
        return [block_id for block_id in self.block_ids if not self._outgoing.get(block_id)]

    def ancestors(self, block_id: str) -> Set[str]:
        """
        Every block that ``block_id`` transitively depends on.

        Safe on cyclic graphs: a block on a cycle appears among its own ancestors.
        """
        cached = self._ancestors.get(block_id)
        if cached is not None:
            return cached

        seen: Set[str] = set()
        stack = [conn.from_block_id for conn in self._incoming.get(block_id, ())]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(conn.from_block_id for conn in self._incoming.get(current, ()))

        self._ancestors[block_id] = seen
        return seen

    def topological_order(self) -> Optional[List[str]]:
        """
        Kahn's algorithm over known blocks. Returns None when a cycle remains.
        Connections to unknown blocks are ignored here; validation reports them.
        """
        in_degree: Dict[str, int] = {block_id: 0 for block_id in self.block_ids}
        for conn in self.workflow.connections:
            if conn.from_block_id in self._known and conn.to_block_id in in_degree:
                in_degree[conn.to_block_id] += 1

        queue = sorted(block_id for block_id, degree in in_degree.items() if degree == 0)
        order: List[str] = []
        while queue:
            block_id = queue.pop(0)
            order.append(block_id)
            for conn in self._outgoing.get(block_id, ()):
                if conn.to_block_id not in in_degree:
                    continue
                in_degree[conn.to_block_id] -= 1
                if in_degree[conn.to_block_id] == 0:
                    queue.append(conn.to_block_id)
                    queue.sort()

        if len(order) != len(in_degree):
            return None
        return order

    def cycle_connections(self) -> List[Connection]:
        """Connections whose endpoints both sit on some cycle through the source."""
        on_cycle: List[Connection] = []
        for conn in self.workflow.connections:
            if conn.from_block_id not in self._known or conn.to_block_id not in self._known:
                continue
            if conn.from_block_id == conn.to_block_id or conn.to_block_id in self.ancestors(conn.from_block_id):
                on_cycle.append(conn)
        return on_cycle


__all__ = ["GraphIndex"]
