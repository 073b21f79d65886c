from __future__ import annotations

from typing import Any, Mapping

from automation_engine.blocks.common import as_amount, field, input_field, input_socket, output_socket
from automation_engine.errors import BehaviorError
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType
from shared.logger import get_logger


logger = get_logger(__name__)

INPUT_KEY = "input-key"
INPUT_AMOUNT = "input-amount"
OUTPUT_SUCCESS = "output-success"
OUTPUT_FAILURE = "output-failure"


class TicketRequestBehavior(BlockBehavior):
    """Requests ``amount`` tickets of the configured mint/unit for a key."""

    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        key = input_field(inputs.get(INPUT_KEY), "key")
        try:
            if not key:
                raise BehaviorError(config.block_id, "no key to request tickets for")
            amount = as_amount(input_field(inputs.get(INPUT_AMOUNT), "amount"), block_id=config.block_id)
            response = await services.protocol.request_ticket(
                str(key),
                str(config.get("mint-url")),
                str(config.get("unit")),
                amount,
            )
        except Exception as exc:
            logger.warning("Ticket request on block %s failed: %s", config.block_id, exc)
            return {OUTPUT_FAILURE: {"error": str(exc) or type(exc).__name__}}

        if not response.success:
            return {OUTPUT_FAILURE: {"error": response.error or "Failed to request ticket"}}
        return {OUTPUT_SUCCESS: {"num_tickets": response.num_tickets or amount}}


TICKET_REQUEST = BlockTypeDefinition(
    id="ticket_request",
    name="Ticket Request",
    behavior=TicketRequestBehavior(),
    parameters=[
        BlockParameter(id="mint-url", name="Mint URL", type=ParameterType.url, required=True, placeholder="Enter mint url"),
        BlockParameter(id="unit", name="Unit", type=ParameterType.text, required=True, placeholder="Enter unit"),
    ],
    inputs=[
        input_socket(INPUT_KEY, "Key", field("key", "string", "Request key")),
        input_socket(INPUT_AMOUNT, "Amount", field("amount", "number", "Amount in sats")),
    ],
    outputs=[
        output_socket(OUTPUT_SUCCESS, "Success", field("num_tickets", "number", "Number of tickets requested")),
        output_socket(OUTPUT_FAILURE, "Failure", field("error", "string", "Error message")),
    ],
    width=155,
    height=80,
)
