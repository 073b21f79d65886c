from __future__ import annotations

from typing import Any, Mapping

from automation_engine.blocks.common import field, input_socket, output_socket
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig


INPUT_VALUE = "input-value"
OUTPUT_LEFT = "output-left"
OUTPUT_RIGHT = "output-right"


class SplitBehavior(BlockBehavior):
    """Passes its input through to both outputs."""

    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        value = inputs.get(INPUT_VALUE)
        return {OUTPUT_LEFT: value, OUTPUT_RIGHT: value}


SPLIT = BlockTypeDefinition(
    id="split",
    name="Split",
    behavior=SplitBehavior(),
    inputs=[
        input_socket(INPUT_VALUE, "Value", field("value", "object", "Passthrough data")),
    ],
    outputs=[
        output_socket(OUTPUT_LEFT, "L", field("passthru", "object", "Passthrough data")),
        output_socket(OUTPUT_RIGHT, "R", field("passthru", "object", "Passthrough data")),
    ],
)
