"""
String encoding of parameter values.

Every tracked value travels through the sync as a string so snapshots of
the linked and host documents can be compared and serialized uniformly.
encode_parameter() reads a live host parameter into that form and
decode_value() turns it back into the native value for Parameter.Set().
"""

import math
import re
from typing import Any, Union

from .types import NOT_FOUND, StorageKind

# Host integer parameters are 32-bit.
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# Whole reals at or above this magnitude keep exponent notation.
WHOLE_REAL_LIMIT = 1e15

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def element_id_value(element_id: Any) -> int:
    """Numeric value of a host ElementId.

    Newer hosts expose the 64-bit `Value`; older ones only `IntegerValue`.
    """
    if element_id is None:
        return -1
    if hasattr(element_id, "Value"):
        return int(element_id.Value)
    return int(element_id.IntegerValue)


def storage_kind_of(param: Any, db: Any) -> StorageKind:
    """Map the host's runtime StorageType tag onto StorageKind."""
    storage_type = param.StorageType
    if storage_type == db.StorageType.String:
        return StorageKind.TEXT
    if storage_type == db.StorageType.Integer:
        return StorageKind.INTEGER
    if storage_type == db.StorageType.Double:
        return StorageKind.REAL
    if storage_type == db.StorageType.ElementId:
        return StorageKind.ELEMENT_ID
    return StorageKind.UNSUPPORTED


def format_real(value: float) -> str:
    """Locale-invariant round-trippable form of a float.

    Whole values are written like integers ("3", not "3.0") so a real and
    an integer holding the same number encode identically.
    """
    value = float(value)
    if value.is_integer() and abs(value) < WHOLE_REAL_LIMIT:
        return str(int(value))
    return repr(value)


def encode_parameter(param: Any, db: Any) -> str:
    """Encode a live parameter as a string, or NOT_FOUND if absent/unset."""
    if param is None or not param.HasValue:
        return NOT_FOUND

    kind = storage_kind_of(param, db)
    if kind is StorageKind.TEXT:
        return param.AsString() or ""
    if kind is StorageKind.INTEGER:
        return str(int(param.AsInteger()))
    if kind is StorageKind.REAL:
        return format_real(param.AsDouble())
    if kind is StorageKind.ELEMENT_ID:
        return str(element_id_value(param.AsElementId()))
    return ""


def parse_integer(text: str) -> int:
    """Strict 32-bit integer parse. Decimals, separators and overflow fail."""
    if not _INTEGER_RE.match(text):
        raise ValueError(f"Not an integer: {text!r}")
    value = int(text.strip())
    if value < INT32_MIN or value > INT32_MAX:
        raise ValueError(f"Integer out of range: {text!r}")
    return value


def parse_real(text: str) -> float:
    if "_" in text:
        raise ValueError(f"Not a number: {text!r}")
    value = float(text.strip())
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Not a number: {text!r}")
    return value


def decode_value(kind: StorageKind, text: str) -> Union[str, int, float]:
    """Decode an encoded value for writing into a parameter of `kind`.

    Numbers must be in the form encode_parameter() produces, so a written
    value reads back equal to `text`. Raises ValueError when the text does
    not parse for the kind or is not in that form, and TypeError for kinds
    that are never written back.
    """
    if text == NOT_FOUND:
        raise ValueError("Cannot decode a missing value")
    if kind is StorageKind.TEXT:
        return text
    if kind is StorageKind.INTEGER:
        value = parse_integer(text)
        if str(value) != text:
            raise ValueError(f"Not a canonical integer: {text!r}")
        return value
    if kind is StorageKind.REAL:
        real = parse_real(text)
        if format_real(real) != text:
            raise ValueError(f"Not a canonical number: {text!r}")
        return real
    raise TypeError(f"Write-back is not supported for {kind.value} parameters")
