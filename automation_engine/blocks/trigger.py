"""
Key handshake trigger: waits for a counterpart to complete a handshake keyed by
the configured token and emits the key they presented.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from automation_engine.blocks.common import field, output_socket
from automation_engine.errors import BehaviorError, HandshakeTimeoutError
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType
from shared.logger import get_logger


logger = get_logger(__name__)

OUTPUT_MAIN_KEY = "main-key"


class KeyHandshakeTrigger(BlockBehavior):
    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        token = config.get("token")
        if not token:
            raise BehaviorError(config.block_id, "a handshake token is required")

        timeout = services.handshake_timeout
        wait = services.protocol.wait_for_key_handshake(str(token), timeout)
        try:
            if timeout is None:
                user_key = await wait
            else:
                user_key = await asyncio.wait_for(wait, timeout)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise HandshakeTimeoutError(
                f"No key handshake for token '{token}' within {timeout}s"
            ) from exc

        logger.info("Key handshake received for block %s", config.block_id)
        return {OUTPUT_MAIN_KEY: user_key}


TRIGGER = BlockTypeDefinition(
    id="trigger",
    name="Key Handshake",
    behavior=KeyHandshakeTrigger(),
    parameters=[
        BlockParameter(
            id="token",
            name="Token",
            type=ParameterType.text,
            required=True,
            placeholder="your-token-here",
        ),
    ],
    outputs=[
        output_socket(OUTPUT_MAIN_KEY, "User Key", field("main_key", "string", "User Key")),
    ],
    width=110,
    height=80,
)
