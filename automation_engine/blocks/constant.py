from __future__ import annotations

from typing import Any, Mapping

from automation_engine.blocks.common import field, input_socket, output_socket
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.coercion import CONSTANT_TYPES, coerce_constant
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType


INPUT_TRIGGER = "input-trigger"
OUTPUT_VALUE = "output-value"


class ConstantBehavior(BlockBehavior):
    """
    Emits the configured literal. The optional ``input-trigger`` socket only
    gates the block: wired to an untaken branch, the constant is skipped.
    """

    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        value_type = str(config.get("type", "string"))
        return {OUTPUT_VALUE: coerce_constant(config.parameters.get("value"), value_type)}


CONSTANT = BlockTypeDefinition(
    id="constant",
    name="Constant",
    behavior=ConstantBehavior(),
    parameters=[
        BlockParameter(
            id="value",
            name="Value",
            type=ParameterType.text,
            required=True,
            placeholder="Enter constant value",
        ),
        BlockParameter(
            id="type",
            name="Type",
            type=ParameterType.select,
            required=True,
            default="string",
            options=list(CONSTANT_TYPES),
        ),
    ],
    inputs=[
        input_socket(INPUT_TRIGGER, "Trigger", field("trigger", "object", "Any value; only gates the constant")),
    ],
    outputs=[
        output_socket(OUTPUT_VALUE, "Value", field("value", "string", "Constant value")),
    ],
    width=120,
    height=60,
)
