from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from automation_engine.errors import AutomationError
from automation_engine.registry.block_registry import BlockTypeDefinition
from automation_engine.schema.models import BlockConfig, BlockParameter, ParameterType


class CoercionError(AutomationError, ValueError):
    """Raised when a configured value cannot be converted to its declared type."""


CONSTANT_TYPES = ("string", "number", "boolean", "object")


def coerce_parameter(value: Any, parameter: BlockParameter) -> Any:
    """
    Convert a raw configured value to the parameter's declared type.

    Empty strings and None are treated as "unset" and returned as None.
    """

    if value is None or value == "":
        return None

    if parameter.type in (ParameterType.text, ParameterType.url):
        return _to_string(value)

    if parameter.type == ParameterType.select:
        text = _to_string(value)
        wanted = normalize_choice(text)
        for option in parameter.options:
            if normalize_choice(option) == wanted:
                return option
        raise _parameter_error(
            parameter.id, f"'{text}' is not one of {', '.join(parameter.options)}"
        )

    if parameter.type == ParameterType.number:
        return coerce_number(value, name=parameter.id)

    if parameter.type == ParameterType.boolean:
        return coerce_boolean(value, name=parameter.id)

    return value


def coerce_constant(value: Any, value_type: str) -> Any:
    """Coerce a constant block literal to string/number/boolean/object."""

    if value_type == "string":
        return "" if value is None else _to_string(value)
    if value_type == "number":
        return coerce_number(value, name="value")
    if value_type == "boolean":
        return coerce_boolean(value, name="value")
    if value_type == "object":
        if isinstance(value, (dict, list)):
            return value
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise _parameter_error("value", f"invalid JSON literal: {exc.msg}") from exc
        raise _parameter_error("value", "must be a JSON object literal")
    raise _parameter_error("type", f"unsupported constant type '{value_type}'")


def coerce_number(value: Any, *, name: Optional[str] = None) -> int | float:
    if isinstance(value, bool):
        raise _parameter_error(name, "must be a number, not a boolean")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        value_str = value.strip()
        if value_str == "":
            raise _parameter_error(name, "must be a valid number")
        try:
            return int(value_str, 10)
        except ValueError:
            pass
        try:
            return float(value_str)
        except ValueError:
            raise _parameter_error(name, f"'{value}' is not a valid number")
    raise _parameter_error(name, "must be a number")


def coerce_boolean(value: Any, *, name: Optional[str] = None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
        raise _parameter_error(name, f"'{value}' is not a valid boolean literal")
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise _parameter_error(name, "must be a boolean")


def effective_config(
    definition: BlockTypeDefinition,
    block_id: str,
    block_config: Optional[BlockConfig],
) -> BlockConfig:
    """
    Build the config handed to a behavior: declared defaults applied and values
    coerced. Parameters the schema does not declare pass through untouched.
    """

    raw: Dict[str, Any] = dict(block_config.parameters) if block_config else {}
    parameters: Dict[str, Any] = dict(raw)
    for parameter in definition.parameters:
        value = coerce_parameter(raw.get(parameter.id), parameter)
        if value is None and parameter.default is not None:
            value = coerce_parameter(parameter.default, parameter)
        parameters[parameter.id] = value

    return BlockConfig(
        id=block_config.id if block_config else f"config-{block_id}",
        block_id=block_id,
        parameters=parameters,
    )


def config_errors(definition: BlockTypeDefinition, block_config: Optional[BlockConfig]) -> List[str]:
    """List the schema violations of a block config without raising."""

    raw: Dict[str, Any] = dict(block_config.parameters) if block_config else {}
    errors: List[str] = []
    for parameter in definition.parameters:
        try:
            value = coerce_parameter(raw.get(parameter.id), parameter)
        except CoercionError as exc:
            errors.append(str(exc))
            continue
        if value is None and parameter.required and parameter.default is None:
            errors.append(f"Parameter '{parameter.id}' is required but was not provided")
    return errors


def normalize_choice(value: str) -> str:
    """'not-equals', 'NOT_EQUALS' and 'not equals' all name the same option."""
    return " ".join(value.strip().lower().replace("-", " ").replace("_", " ").split())


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _parameter_error(name: Optional[str], detail: str) -> CoercionError:
    if name:
        return CoercionError(f"Parameter '{name}' {detail}")
    return CoercionError(detail)


__all__ = [
    "CONSTANT_TYPES",
    "CoercionError",
    "coerce_boolean",
    "coerce_constant",
    "coerce_number",
    "coerce_parameter",
    "config_errors",
    "effective_config",
    "normalize_choice",
]
