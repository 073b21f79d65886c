"""
Conditional ("If") block.

Looks up a dot-separated field path in the incoming object, compares it with
the configured value and emits the original data on exactly one of the
``output-true`` / ``output-false`` sockets.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from automation_engine.blocks.common import field, input_socket, output_socket
from automation_engine.errors import BehaviorError
from automation_engine.registry.block_registry import BlockBehavior, BlockTypeDefinition, Outcome
from automation_engine.runtime.coercion import normalize_choice
from automation_engine.runtime.services import RuntimeServices
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType
from shared.logger import get_logger


logger = get_logger(__name__)

INPUT_DATA = "input-data"
OUTPUT_TRUE = "output-true"
OUTPUT_FALSE = "output-false"

OPERATORS = [
    "equals",
    "not equals",
    "greater than",
    "less than",
    "contains",
    "not contains",
    "exists",
    "not exists",
]


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


def lookup_path(data: Any, path: str) -> Any:
    """
    Walk ``path`` (dot separated) through nested mappings and sequences.

    Returns MISSING instead of raising when any segment is absent.
    """
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.isdigit():
            position = int(key)
            if position >= len(current):
                return MISSING
            current = current[position]
        else:
            return MISSING
    return current


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None or value is MISSING:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def values_equal(actual: Any, expected: Any) -> bool:
    """Compare a field value with the textual value typed into the block settings."""
    if actual is MISSING:
        return expected is None
    if expected is None:
        return actual is None
    if not isinstance(expected, str) or isinstance(actual, str):
        return actual == expected
    if isinstance(actual, bool):
        return expected.strip().lower() == ("true" if actual else "false")
    if isinstance(actual, (int, float)):
        number = _to_float(expected)
        return number is not None and float(actual) == number
    if actual is None:
        return expected.strip().lower() in {"null", "none"}
    try:
        return json.loads(expected) == actual
    except json.JSONDecodeError:
        return False


def evaluate(operator: str, actual: Any, expected: Any) -> bool:
    op = normalize_choice(operator)

    if op == "equals":
        return values_equal(actual, expected)
    if op == "not equals":
        return not values_equal(actual, expected)

    if op in ("greater than", "less than"):
        left, right = _to_float(actual), _to_float(expected)
        if left is None or right is None:
            return False
        return left > right if op == "greater than" else left < right

    if op in ("contains", "not contains"):
        if isinstance(actual, str) and isinstance(expected, str):
            found = expected in actual
        elif isinstance(actual, (list, tuple)):
            found = any(values_equal(item, expected) for item in actual)
        else:
            return op == "not contains"
        return found if op == "contains" else not found

    if op == "exists":
        return actual is not MISSING and actual is not None
    if op == "not exists":
        return actual is MISSING or actual is None

    raise ValueError(f"Unknown operator: {operator}")


class ConditionalBehavior(BlockBehavior):
    async def run(
        self,
        inputs: Mapping[str, Any],
        config: BlockConfig,
        services: RuntimeServices,
    ) -> Outcome:
        data = inputs.get(INPUT_DATA)
        field_path = config.get("field")
        if not field_path:
            raise BehaviorError(config.block_id, "no field to match is configured")
        operator = str(config.get("operator", "equals"))
        expected = config.get("value")

        try:
            condition_met = evaluate(operator, lookup_path(data, str(field_path)), expected)
        except ValueError as exc:
            raise BehaviorError(config.block_id, str(exc)) from exc

        logger.debug(
            "Condition %s %s %r on block %s -> %s",
            field_path,
            operator,
            expected,
            config.block_id,
            condition_met,
        )
        output_id = OUTPUT_TRUE if condition_met else OUTPUT_FALSE
        return {output_id: {"data": data, "condition_met": condition_met}}


CONDITIONAL = BlockTypeDefinition(
    id="conditional",
    name="If",
    behavior=ConditionalBehavior(),
    parameters=[
        BlockParameter(
            id="field",
            name="Field to Match",
            type=ParameterType.text,
            required=True,
            placeholder="e.g., body.status, headers.content-type",
        ),
        BlockParameter(
            id="operator",
            name="Operator",
            type=ParameterType.select,
            required=True,
            default="equals",
            options=OPERATORS,
        ),
        BlockParameter(
            id="value",
            name="Value to Compare",
            type=ParameterType.text,
            required=False,
            placeholder='e.g., 200, "success", true',
        ),
    ],
    inputs=[
        input_socket(INPUT_DATA, "Data", field("data", "object", "Input data to evaluate")),
    ],
    outputs=[
        output_socket(
            OUTPUT_TRUE,
            "True",
            field("data", "object", "Data when condition is true"),
            field("condition_met", "boolean", "Whether condition was met"),
        ),
        output_socket(
            OUTPUT_FALSE,
            "False",
            field("data", "object", "Data when condition is false"),
            field("condition_met", "boolean", "Whether condition was met"),
        ),
    ],
    width=120,
    height=80,
)
