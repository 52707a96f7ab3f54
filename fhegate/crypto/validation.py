from typing import Any

from fhegate.crypto.kinds import CiphertextKind
from fhegate.exceptions import ValidationError
from fhegate.utilities.encoding import is_valid_address


def validate_bool(value: Any) -> bool:
    # 0 and 1 are accepted as booleans; nothing else is coerced.
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(
        f"Value must be a boolean for bool, got {value!r}",
        kind=CiphertextKind.BOOL,
        value=value,
    )


def validate_unsigned_integer(value: Any, kind: CiphertextKind) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"Value must be an integer for {kind}, got {type(value).__name__}",
            kind=kind,
            value=value,
        )
    if not 0 <= value <= kind.max_value:
        raise ValidationError(
            f"Value out of range for {kind}: must be between 0 and {kind.max_value}",
            kind=kind,
            value=value,
        )
    return value


def validate_address(value: Any) -> str:
    if not is_valid_address(value):
        raise ValidationError(
            "Invalid Ethereum address format",
            kind=CiphertextKind.ADDRESS,
            value=value,
        )
    return value


def validate(value: Any, kind: CiphertextKind) -> Any:
    """Range/format check of ``value`` for ``kind``; returns the value to hand to the engine."""
    if kind is CiphertextKind.BOOL:
        return validate_bool(value)
    if kind is CiphertextKind.ADDRESS:
        return validate_address(value)
    return validate_unsigned_integer(value, kind)


def is_valid(value: Any, kind: CiphertextKind) -> bool:
    try:
        validate(value, kind)
    except ValidationError:
        return False
    return True
