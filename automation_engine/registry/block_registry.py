"""
In-memory block-type registry.

The executor looks block types up here to find the sockets a block exposes and
the behavior that runs it. The registry is an explicit dependency: build one
with :func:`automation_engine.registry.builtins.build_default_registry` and pass
it around instead of relying on module state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, MutableMapping, Optional
from uuid import uuid4

from automation_engine.errors import BlockTypeNotFoundError
from automation_engine.schema.models import (
    Block,
    BlockConfig,
    BlockParameter,
    ConnectionPoint,
    SocketDirection,
)

if TYPE_CHECKING:
    from automation_engine.runtime.services import RuntimeServices


Outcome = Dict[str, Any]


class BlockBehavior(ABC):
    """
    Runtime behavior of a block type.

    ``run`` receives the values that arrived on the block's input sockets and
    returns a partial map from output socket id to value. Leaving a key out
    means that branch was not taken; raising means the block failed.
    """

    @abstractmethod
    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: "RuntimeServices",
    ) -> Outcome:
        raise NotImplementedError


@dataclass(frozen=True)
class BlockTypeDefinition:
    id: str
    name: str
    behavior: BlockBehavior
    parameters: List[BlockParameter] = field(default_factory=list)
    inputs: List[ConnectionPoint] = field(default_factory=list)
    outputs: List[ConnectionPoint] = field(default_factory=list)
    width: float = 120
    height: float = 80

    def __post_init__(self) -> None:
        for socket in self.inputs:
            if socket.direction != SocketDirection.input:
                raise ValueError(f"{self.id}: socket '{socket.id}' is declared as an input but points outward")
        for socket in self.outputs:
            if socket.direction != SocketDirection.output:
                raise ValueError(f"{self.id}: socket '{socket.id}' is declared as an output but points inward")

    def input_socket(self, socket_id: str) -> Optional[ConnectionPoint]:
        return next((socket for socket in self.inputs if socket.id == socket_id), None)

    def output_socket(self, socket_id: str) -> Optional[ConnectionPoint]:
        return next((socket for socket in self.outputs if socket.id == socket_id), None)

    def parameter(self, parameter_id: str) -> Optional[BlockParameter]:
        return next((param for param in self.parameters if param.id == parameter_id), None)

    def new_block(self, block_id: Optional[str] = None, *, x: float = 200, y: float = 200) -> Block:
        """Instantiate a graph node of this type with the type's default size."""
        return Block(
            id=block_id or f"block-{uuid4().hex[:12]}",
            type=self.id,
            title=self.name,
            x=x,
            y=y,
            width=self.width,
            height=self.height,
        )


class BlockRegistry:
    """
    Stores block-type definitions keyed by identifier.
    """

    def __init__(self, initial: MutableMapping[str, BlockTypeDefinition] | None = None) -> None:
        self._blocks: Dict[str, BlockTypeDefinition] = dict(initial or {})

    def register(self, definition: BlockTypeDefinition) -> None:
        self._blocks[definition.id] = definition

    def get(self, block_type: str) -> BlockTypeDefinition:
        try:
            return self._blocks[block_type]
        except KeyError as exc:
            raise BlockTypeNotFoundError(f"Block type '{block_type}' is not registered") from exc

    def maybe_get(self, block_type: str) -> Optional[BlockTypeDefinition]:
        return self._blocks.get(block_type)

    def all(self) -> List[BlockTypeDefinition]:
        return list(self._blocks.values())

    def __contains__(self, block_type: object) -> bool:
        return block_type in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)


__all__ = ["BlockBehavior", "BlockRegistry", "BlockTypeDefinition", "Outcome"]
