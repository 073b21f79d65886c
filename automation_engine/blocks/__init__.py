"""
Built-in block types.
"""

from automation_engine.blocks.conditional import CONDITIONAL
from automation_engine.blocks.constant import CONSTANT
from automation_engine.blocks.payment_request import PAYMENT_REQUEST
from automation_engine.blocks.split import SPLIT
from automation_engine.blocks.ticket_request import TICKET_REQUEST
from automation_engine.blocks.ticket_send import TICKET_SEND
from automation_engine.blocks.trigger import TRIGGER


BUILTIN_BLOCK_TYPES = [
    TRIGGER,
    PAYMENT_REQUEST,
    TICKET_REQUEST,
    TICKET_SEND,
    CONSTANT,
    SPLIT,
    CONDITIONAL,
]


__all__ = [
    "BUILTIN_BLOCK_TYPES",
    "CONDITIONAL",
    "CONSTANT",
    "PAYMENT_REQUEST",
    "SPLIT",
    "TICKET_REQUEST",
    "TICKET_SEND",
    "TRIGGER",
]
