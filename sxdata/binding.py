"""
Parameter type inference for positional binding.

Drivers bind each positional value with a type tag:

    None, str    -> STRING
    bool, int    -> INTEGER
    float        -> DOUBLE

Every other value kind is rejected before the driver is called. There is no
implicit casting of unknown types.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, List, Tuple

from .errors import BackendError, ErrorCode, ErrorKind, MisuseError


class BindType(str, Enum):
    STRING = "s"
    INTEGER = "i"
    DOUBLE = "d"


def ensure_param_sequence(params: Any) -> Sequence[Any]:
    """Reject parameter containers that are not positional sequences."""
    if params is None:
        return ()
    if isinstance(params, (str, bytes, bytearray, Mapping)) or not isinstance(params, Sequence):
        raise MisuseError(
            f"params must be a positional sequence, got {type(params).__name__}"
        )
    return params


def bind_type(value: Any) -> BindType:
    """Return the bind type for a single parameter value."""
    # NULL has no type of its own but binds fine as a string.
    if value is None or isinstance(value, str):
        return BindType.STRING
    # bool is checked with int: booleans bind as 0/1.
    if isinstance(value, int):
        return BindType.INTEGER
    if isinstance(value, float):
        return BindType.DOUBLE
    raise BackendError(
        f"unsupported param type: {type(value).__name__}",
        ErrorCode.UNSUPPORTED_PARAM_TYPE,
        kind=ErrorKind.BIND,
    )


def infer_bind_types(params: Any) -> List[BindType]:
    """Infer the bind type of every parameter, in placeholder order."""
    return [bind_type(value) for value in ensure_param_sequence(params)]


def coerce_params(params: Any) -> Tuple[Any, ...]:
    """
    Convert parameters to the values the driver should bind.

    Types are inferred for the whole list first, so an unsupported value
    anywhere in the list fails before anything is sent to the driver.
    """
    values = ensure_param_sequence(params)
    types = infer_bind_types(values)
    coerced = []
    for value, kind in zip(values, types):
        if kind is BindType.INTEGER:
            coerced.append(int(value))
        elif kind is BindType.DOUBLE:
            coerced.append(float(value))
        else:
            coerced.append(value)
    return tuple(coerced)
