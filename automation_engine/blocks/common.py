"""
Helpers shared by the built-in block behaviors.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from automation_engine.errors import BehaviorError
from automation_engine.runtime.coercion import CoercionError, coerce_number
from automation_engine.schema.models import ConnectionPoint, DataField, DataFieldType, SocketDirection


def input_field(value: Any, name: str) -> Any:
    """
    Read ``name`` from an incoming value.

    Producers either send a bare value or an object carrying the field, so a
    mapping holding ``name`` is unwrapped and anything else is returned as is.
    """
    if isinstance(value, Mapping) and name in value:
        return value[name]
    return value


def as_amount(value: Any, *, block_id: Optional[str] = None) -> int:
    """Coerce an amount in sats to a positive integer."""
    if value is None or value == "":
        raise BehaviorError(block_id, "amount is required")
    try:
        number = coerce_number(value, name="amount")
    except CoercionError as exc:
        raise BehaviorError(block_id, str(exc)) from exc
    if isinstance(number, float):
        if not number.is_integer():
            raise BehaviorError(block_id, f"amount {number} is not a whole number of sats")
        number = int(number)
    if number <= 0:
        raise BehaviorError(block_id, f"amount must be positive, got {number}")
    return number


def field(name: str, type_: str, description: str) -> DataField:
    return DataField(name=name, type=DataFieldType(type_), description=description)


def input_socket(socket_id: str, label: str, *fields: DataField, required: bool = True) -> ConnectionPoint:
    return ConnectionPoint(
        id=socket_id,
        direction=SocketDirection.input,
        label=label,
        data_fields=list(fields),
        required=required,
    )


def output_socket(socket_id: str, label: str, *fields: DataField) -> ConnectionPoint:
    return ConnectionPoint(
        id=socket_id,
        direction=SocketDirection.output,
        label=label,
        data_fields=list(fields),
    )
