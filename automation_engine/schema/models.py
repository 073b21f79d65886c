"""
Pydantic models describing block-type metadata and workflow graphs.

Field aliases mirror the camelCase names used by the persisted workflow
documents so that stored graphs round-trip with their ids untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


Scalar = Union[bool, int, float, str, None]


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Block-type metadata
# -----------------------------
class ParameterType(str, Enum):
    text = "text"
    number = "number"
    url = "url"
    select = "select"
    boolean = "boolean"


class BlockParameter(StrictModel):
    id: str = Field(min_length=1)
    name: str
    type: ParameterType = ParameterType.text
    required: bool = False
    default: Scalar = None
    options: List[str] = Field(default_factory=list)
    placeholder: Optional[str] = None

    @model_validator(mode="after")
    def _check_options(self) -> "BlockParameter":
        if self.type == ParameterType.select and not self.options:
            raise ValueError(f"select parameter '{self.id}' requires options")
        return self


class DataFieldType(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    object = "object"
    array = "array"


class DataField(StrictModel):
    """Documents one field of the value flowing through a socket."""

    name: str
    type: DataFieldType
    description: Optional[str] = None


class SocketDirection(str, Enum):
    input = "input"
    output = "output"


class ConnectionPoint(StrictModel):
    """
    A socket declared by a block type.

    ``required`` only matters for inputs: a connected required input whose
    producer did not deliver a value causes the block to be skipped.
    """

    id: str = Field(min_length=1)
    direction: SocketDirection
    label: Optional[str] = None
    data_fields: List[DataField] = Field(default_factory=list, alias="dataFields")
    required: bool = True


# -----------------------------
# Workflow graph
# -----------------------------
class Block(StrictModel):
    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    title: str = ""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class Connection(StrictModel):
    id: str = Field(min_length=1)
    from_block_id: str = Field(alias="fromBlockId")
    from_output_id: str = Field(alias="fromOutputId")
    to_block_id: str = Field(alias="toBlockId")
    to_input_id: str = Field(alias="toInputId")


class BlockConfig(StrictModel):
    id: str = Field(min_length=1)
    block_id: str = Field(alias="blockId")
    parameters: Dict[str, Scalar] = Field(default_factory=dict)

    def get(self, name: str, default: Scalar = None) -> Scalar:
        value = self.parameters.get(name)
        if value is None or value == "":
            return default
        return value


class Workflow(StrictModel):
    id: str = Field(min_length=1)
    name: str = "Workflow"
    blocks: List[Block] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    block_configs: List[BlockConfig] = Field(default_factory=list, alias="blockConfigs")
    is_active: bool = Field(False, alias="isActive")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    # Lookups -------------------------------------------------------------
    def get_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def config_for(self, block_id: str) -> Optional[BlockConfig]:
        for block_config in self.block_configs:
            if block_config.block_id == block_id:
                return block_config
        return None

    def incoming(self, block_id: str) -> List[Connection]:
        return [conn for conn in self.connections if conn.to_block_id == block_id]

    def outgoing(self, block_id: str) -> List[Connection]:
        return [conn for conn in self.connections if conn.from_block_id == block_id]

    # Mutations -----------------------------------------------------------
    def add_block(self, block: Block) -> Block:
        if self.get_block(block.id) is not None:
            raise ValueError(f"Block '{block.id}' already exists in workflow '{self.id}'")
        self.blocks = [*self.blocks, block]
        self.touch()
        return block

    def remove_block(self, block_id: str) -> None:
        """Remove a block together with every connection and config referencing it."""
        self.blocks = [block for block in self.blocks if block.id != block_id]
        self.connections = [
            conn
            for conn in self.connections
            if conn.from_block_id != block_id and conn.to_block_id != block_id
        ]
        self.block_configs = [cfg for cfg in self.block_configs if cfg.block_id != block_id]
        self.touch()

    def connect(
        self,
        from_block_id: str,
        from_output_id: str,
        to_block_id: str,
        to_input_id: str,
        *,
        connection_id: Optional[str] = None,
    ) -> Connection:
        connection = Connection(
            id=connection_id or f"conn-{uuid4().hex[:12]}",
            from_block_id=from_block_id,
            from_output_id=from_output_id,
            to_block_id=to_block_id,
            to_input_id=to_input_id,
        )
        self.connections = [*self.connections, connection]
        self.touch()
        return connection

    def disconnect(self, connection_id: str) -> None:
        self.connections = [conn for conn in self.connections if conn.id != connection_id]
        self.touch()

    def set_block_config(self, block_id: str, parameters: Dict[str, Scalar]) -> BlockConfig:
        existing = self.config_for(block_id)
        if existing is not None:
            existing.parameters = {**existing.parameters, **parameters}
            self.touch()
            return existing
        block_config = BlockConfig(
            id=f"config-{block_id}",
            block_id=block_id,
            parameters=dict(parameters),
        )
        self.block_configs = [*self.block_configs, block_config]
        self.touch()
        return block_config

    def touch(self) -> None:
        self.updated_at = _utcnow()


__all__ = [
    "Block",
    "BlockConfig",
    "BlockParameter",
    "Connection",
    "ConnectionPoint",
    "DataField",
    "DataFieldType",
    "ParameterType",
    "Scalar",
    "SocketDirection",
    "StrictModel",
    "Workflow",
]
