import pytest

from fhegate.crypto.kinds import CiphertextKind
from fhegate.exceptions import ProtocolError
from fhegate.utilities.encoding import (
    MAX_HANDLE,
    get_encryption_kind,
    handle_to_hex,
    hex_to_int,
    is_valid_address,
    is_valid_handle,
    is_valid_hex,
    number_to_hex,
    pad_hex,
    shorten_address,
    to_address,
    to_handle,
)


def test_predicates(get_random_checksum_address):
    address = get_random_checksum_address()
    assert is_valid_address(address)
    assert is_valid_address(address.lower())
    assert not is_valid_address(address[2:])
    assert not is_valid_address(None)

    assert is_valid_hex("0x0")
    assert is_valid_hex("0xDEADbeef")
    assert not is_valid_hex("0x")
    assert not is_valid_hex("deadbeef")
    assert not is_valid_hex(b"0x01")

    assert is_valid_handle("0x" + "ab" * 32)
    assert not is_valid_handle("0x" + "ab" * 31)
    assert not is_valid_handle(1)


def test_hex_conversions():
    assert number_to_hex(255) == "0xff"
    assert hex_to_int("0xff") == 255
    assert pad_hex("0xff", 4) == "0x000000ff"
    assert pad_hex("ff", 2) == "0x00ff"
    with pytest.raises(ProtocolError, match="Invalid hex string"):
        hex_to_int("ff")


def test_shorten_address(get_random_checksum_address):
    address = get_random_checksum_address()
    assert shorten_address(address) == f"{address[:6]}...{address[-4:]}"
    assert shorten_address(address, chars=6) == f"{address[:8]}...{address[-6:]}"
    assert shorten_address("not an address") == "not an address"


def test_to_address(get_random_checksum_address):
    address = get_random_checksum_address()
    assert to_address(address.lower()) == address
    with pytest.raises(ProtocolError, match="Invalid user address"):
        to_address("0x1234", name="user address")


@pytest.mark.parametrize(
    "handle,expected",
    (
        (1234, 1234),
        ("1234", 1234),
        ("0x04d2", 1234),
        (b"\x04\xd2", 1234),
        ("0x" + "ff" * 32, MAX_HANDLE),
        (0, 0),
    ),
)
def test_to_handle(handle, expected):
    assert to_handle(handle) == expected


@pytest.mark.parametrize(
    "handle",
    (True, -1, MAX_HANDLE + 1, "", "0x", "12ab", "-5", "0x" + "ff" * 33, b"", b"\x01" * 33, 1.0, None),
)
def test_invalid_handles(handle):
    with pytest.raises(ProtocolError, match="Invalid handle"):
        to_handle(handle)


def test_handle_to_hex():
    assert handle_to_hex(1) == "0x" + "00" * 31 + "01"
    assert is_valid_handle(handle_to_hex("0xabc"))


@pytest.mark.parametrize("kind", CiphertextKind, ids=str)
def test_encryption_kind_from_ciphertext(kind):
    ciphertext = bytes([kind.type_indicator]) + b"\xaa\xbb"
    assert get_encryption_kind(ciphertext) is kind
    assert get_encryption_kind("0x" + ciphertext.hex()) is kind


def test_unknown_encryption_kind():
    assert get_encryption_kind("0x08aabb") is None
    assert get_encryption_kind(b"") is None
    with pytest.raises(ProtocolError, match="Invalid encrypted data format"):
        get_encryption_kind("0x0")
    with pytest.raises(ProtocolError, match="Invalid encrypted data format"):
        get_encryption_kind("07aabb")
