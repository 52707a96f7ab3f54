import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fhegate.config.constants import MAX_SAFE_INTEGER

_CANONICAL_DECIMAL = re.compile(r"^-?(0|[1-9][0-9]*)$")
_SIGNED_DECIMAL = re.compile(r"^[+-]?[0-9]+$")
_PREFIXED_INTEGER = re.compile(r"^0[xX][0-9a-fA-F]+$|^0[oO][0-7]+$|^0[bB][01]+$")


@dataclass(frozen=True)
class DecryptResult:
    """
    Every interpretation of a decrypted scalar that the raw string supports.

    ``bool_value`` is a heuristic: the gateway does not carry the ciphertext kind through
    decryption, so a uint8 that decrypts to 1 reads as ``True`` exactly like an ebool does.
    """

    value: str
    number_value: Optional[int] = None
    bigint_value: Optional[int] = None
    bool_value: Optional[bool] = None

    def __str__(self) -> str:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        payload = {"value": self.value}
        if self.number_value is not None:
            payload["numberValue"] = self.number_value
        if self.bigint_value is not None:
            payload["bigintValue"] = self.bigint_value
        if self.bool_value is not None:
            payload["boolValue"] = self.bool_value
        return payload


def _parse_number(raw: str) -> Optional[int]:
    # Only canonical base-10 integers that a double can hold exactly.
    if not _CANONICAL_DECIMAL.match(raw) or raw == "-0":
        return None
    number = int(raw)
    if abs(number) > MAX_SAFE_INTEGER:
        return None
    return number


def _parse_big_integer(raw: str) -> Optional[int]:
    text = raw.strip()
    if _SIGNED_DECIMAL.match(text):
        return int(text, 10)
    if _PREFIXED_INTEGER.match(text):
        return int(text, 0)
    return None


def parse_decrypted_value(raw: Any) -> DecryptResult:
    value = str(raw)
    number_value = _parse_number(value)
    bool_value = None
    if number_value in (0, 1):
        bool_value = number_value == 1
    return DecryptResult(
        value=value,
        number_value=number_value,
        bigint_value=_parse_big_integer(value),
        bool_value=bool_value,
    )
