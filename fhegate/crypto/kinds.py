from enum import Enum
from typing import Optional, Union


class CiphertextKind(Enum):
    """Plaintext kinds understood by the encryption engine and the gateway contracts."""

    BOOL = ("bool", 0, 0x00)
    UINT8 = ("uint8", 8, 0x01)
    UINT16 = ("uint16", 16, 0x02)
    UINT32 = ("uint32", 32, 0x03)
    UINT64 = ("uint64", 64, 0x04)
    UINT128 = ("uint128", 128, 0x05)
    UINT256 = ("uint256", 256, 0x06)
    ADDRESS = ("address", 160, 0x07)

    def __init__(self, label: str, bits: int, type_indicator: int):
        self.label = label
        self.bits = bits
        self.type_indicator = type_indicator

    def __str__(self) -> str:
        return self.label

    @property
    def ciphertext_type(self) -> str:
        """Solidity-side encrypted type name, e.g. ``euint8``."""
        return f"e{self.label}"

    @property
    def is_unsigned_integer(self) -> bool:
        return self.label.startswith("uint")

    @property
    def max_value(self) -> int:
        if self is CiphertextKind.BOOL:
            return 1
        return 2 ** self.bits - 1

    @classmethod
    def from_name(cls, name: Union[str, "CiphertextKind"]) -> "CiphertextKind":
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            label = name.lower()
            if label.startswith("e") and label != "e":
                label = label[1:]
            for kind in cls:
                if kind.label == label:
                    return kind
        from fhegate.exceptions import UnsupportedKind
        raise UnsupportedKind(f"Unsupported encryption type: {name}", kind=name)

    @classmethod
    def from_type_indicator(cls, indicator: Optional[int]) -> Optional["CiphertextKind"]:
        for kind in cls:
            if kind.type_indicator == indicator:
                return kind
        return None


UNSIGNED_INTEGER_KINDS = tuple(kind for kind in CiphertextKind if kind.is_unsigned_integer)
