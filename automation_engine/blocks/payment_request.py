"""
Payment request block.

Creates an invoice and asks the counterpart identified by ``user_key`` to pay
it. An approved payment goes out on ``output-success``; a rejection or any
error raised by the protocol client goes out on ``output-failure``.
"""

from __future__ import annotations

from typing import Any, Mapping

from automation_engine.blocks.common import as_amount, field, input_field, input_socket, output_socket
from automation_engine.errors import BehaviorError
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType
from shared.logger import get_logger


logger = get_logger(__name__)

INPUT_USER_KEY = "input-user_key"
INPUT_AMOUNT = "input-amount"
OUTPUT_SUCCESS = "output-success"
OUTPUT_FAILURE = "output-failure"


class PaymentRequestBehavior(BlockBehavior):
    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        # Configured values take precedence over wired inputs.
        user_key = config.get("user_key") or input_field(inputs.get(INPUT_USER_KEY), "user_key")
        raw_amount = config.get("amount")
        if raw_amount is None:
            raw_amount = input_field(inputs.get(INPUT_AMOUNT), "amount")

        try:
            if not user_key:
                raise BehaviorError(config.block_id, "no user key to request payment from")
            amount = as_amount(raw_amount, block_id=config.block_id)
            invoice = await services.protocol.create_invoice(amount, services.payment_description)
            response = await services.protocol.request_single_payment(
                str(user_key),
                amount,
                invoice,
                services.payment_description,
            )
        except Exception as exc:
            logger.warning("Payment request on block %s failed: %s", config.block_id, exc)
            return {
                OUTPUT_FAILURE: {
                    "error": str(exc) or type(exc).__name__,
                    "user_key": user_key,
                    "amount": raw_amount,
                }
            }

        if not response.is_approved:
            return {
                OUTPUT_FAILURE: {
                    "error": response.reason or f"Payment request {response.status}",
                    "user_key": user_key,
                    "amount": amount,
                }
            }

        logger.info("Payment request %s approved for %s sats", response.payment_id, amount)
        return {
            OUTPUT_SUCCESS: {
                "payment_id": response.payment_id or invoice.payment_hash,
                "amount": amount,
                "user_key": user_key,
                "status": response.status,
            }
        }


PAYMENT_REQUEST = BlockTypeDefinition(
    id="payment_request",
    name="Payment Request",
    behavior=PaymentRequestBehavior(),
    parameters=[
        BlockParameter(
            id="user_key",
            name="User Key",
            type=ParameterType.text,
            placeholder="Enter user public key",
        ),
        BlockParameter(
            id="amount",
            name="Amount",
            type=ParameterType.number,
            placeholder="Enter amount in sats",
        ),
    ],
    inputs=[
        input_socket(INPUT_USER_KEY, "User Key", field("user_key", "string", "User public key")),
        input_socket(INPUT_AMOUNT, "Amount", field("amount", "number", "Amount in sats")),
    ],
    outputs=[
        output_socket(
            OUTPUT_SUCCESS,
            "Success",
            field("payment_id", "string", "Payment request ID"),
            field("amount", "number", "Requested amount"),
            field("user_key", "string", "User public key"),
            field("status", "string", "Payment status"),
        ),
        output_socket(
            OUTPUT_FAILURE,
            "Failure",
            field("error", "string", "Error message"),
            field("user_key", "string", "User public key"),
            field("amount", "number", "Requested amount"),
        ),
    ],
    width=155,
    height=80,
)
