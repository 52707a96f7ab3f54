"""
Hex, address and handle helpers shared by the dispatcher and the decryption client.

All predicates are pure and never raise; the ``to_*`` converters raise
:class:`~fhegate.exceptions.ProtocolError` on malformed input so that bad
handles never reach the network.
"""

import re
from typing import Optional, Union

from eth_utils import to_checksum_address

from fhegate.exceptions import ProtocolError
from fhegate.types import Handle, HandleLike

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
HEX_PATTERN = re.compile(r"^0x[a-fA-F0-9]+$")
HANDLE_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")
DECIMAL_PATTERN = re.compile(r"^[0-9]+$")

HANDLE_SIZE = 32  # bytes
MAX_HANDLE = 2 ** (HANDLE_SIZE * 8) - 1


def is_valid_address(address) -> bool:
    return isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


def is_valid_hex(value) -> bool:
    return isinstance(value, str) and bool(HEX_PATTERN.match(value))


def is_valid_handle(handle) -> bool:
    return isinstance(handle, str) and bool(HANDLE_PATTERN.match(handle))


def number_to_hex(value: int) -> str:
    return hex(value)


def hex_to_int(value: str) -> int:
    if not is_valid_hex(value):
        raise ProtocolError(f"Invalid hex string: {value!r}")
    return int(value, 16)


def pad_hex(value: str, size: int) -> str:
    """Left-pads a hex string with zeros to ``size`` bytes."""
    clean = value[2:] if value.startswith("0x") else value
    return "0x" + clean.rjust(size * 2, "0")


def shorten_address(address: str, chars: int = 4) -> str:
    """0x1234...5678 for display; anything that is not an address is returned untouched."""
    if not is_valid_address(address):
        return address
    return f"{address[:chars + 2]}...{address[-chars:]}"


def to_address(address, name: str = "address") -> str:
    if not is_valid_address(address):
        raise ProtocolError(f"Invalid {name}: {address!r} is not a 20-byte hex address")
    return to_checksum_address(address)


def to_handle(handle: HandleLike) -> Handle:
    """
    Canonical integer form of a ciphertext handle.

    Accepts an int, a decimal string (as rendered by contract events) or a 0x-prefixed hex
    string / bytes of at most 32 bytes.
    """
    if isinstance(handle, bool):
        raise ProtocolError(f"Invalid handle: {handle!r}")
    if isinstance(handle, int):
        value = handle
    elif isinstance(handle, (bytes, bytearray)):
        if not handle or len(handle) > HANDLE_SIZE:
            raise ProtocolError(f"Invalid handle: expected 1 to {HANDLE_SIZE} bytes, got {len(handle)}")
        value = int.from_bytes(handle, "big")
    elif isinstance(handle, str) and is_valid_hex(handle):
        if len(handle) - 2 > HANDLE_SIZE * 2:
            raise ProtocolError(f"Invalid handle: {handle} exceeds {HANDLE_SIZE} bytes")
        value = int(handle, 16)
    elif isinstance(handle, str) and DECIMAL_PATTERN.match(handle):
        value = int(handle)
    else:
        raise ProtocolError(f"Invalid handle: {handle!r}")
    if not 0 <= value <= MAX_HANDLE:
        raise ProtocolError(f"Invalid handle: {value} is out of uint256 range")
    return Handle(value)


def handle_to_hex(handle: HandleLike) -> str:
    return pad_hex(hex(to_handle(handle)), HANDLE_SIZE)


def get_encryption_kind(ciphertext: Union[str, bytes]) -> Optional["CiphertextKind"]:  # noqa: F821
    """Reads the kind indicator carried in the first byte of a ciphertext; None if unknown."""
    from fhegate.crypto.kinds import CiphertextKind

    if isinstance(ciphertext, (bytes, bytearray)):
        indicator = ciphertext[0] if ciphertext else None
    else:
        if not is_valid_hex(ciphertext) or len(ciphertext) < 4:
            raise ProtocolError("Invalid encrypted data format")
        indicator = int(ciphertext[2:4], 16)
    return CiphertextKind.from_type_indicator(indicator)
