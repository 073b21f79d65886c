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
OUTPUT_RESULT = "output-result"


class TicketSendBehavior(BlockBehavior):
    """
    Mints a token from the configured mint and sends it to ``key``.

    There is no failure socket: a protocol error fails the block.
    """

    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        key = input_field(inputs.get(INPUT_KEY), "key")
        if not key:
            raise BehaviorError(config.block_id, "no key to send tickets to")
        amount = as_amount(input_field(inputs.get(INPUT_AMOUNT), "amount"), block_id=config.block_id)

        token = await services.protocol.mint_token(
            str(config.get("mint-url")),
            str(config.get("unit")),
            amount,
        )
        response = await services.protocol.send_token(str(key), token)
        logger.info("Sent %s tickets to %s (transaction %s)", amount, key, response.transaction_id)
        return {
            OUTPUT_RESULT: {
                "transaction_id": response.transaction_id,
                "key": key,
                "amount": amount,
                "status": response.status,
            }
        }


TICKET_SEND = BlockTypeDefinition(
    id="ticket_send",
    name="Ticket Send",
    behavior=TicketSendBehavior(),
    parameters=[
        BlockParameter(id="mint-url", name="Mint URL", type=ParameterType.url, required=True, placeholder="Enter mint url"),
        BlockParameter(id="unit", name="Unit", type=ParameterType.text, required=True, placeholder="Enter unit"),
    ],
    inputs=[
        input_socket(INPUT_KEY, "Key", field("key", "string", "Send key")),
        input_socket(INPUT_AMOUNT, "Amount", field("amount", "number", "Amount in sats")),
    ],
    outputs=[
        output_socket(
            OUTPUT_RESULT,
            "Result",
            field("transaction_id", "string", "Transaction ID"),
            field("key", "string", "Send key"),
            field("amount", "number", "Sent amount"),
            field("status", "string", "Send status"),
        ),
    ],
    width=155,
    height=80,
)
