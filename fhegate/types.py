from typing import NewType, Union

from hexbytes import HexBytes

# Ciphertext handles are uint256 on the gateway contract.
Handle = NewType("Handle", int)
HandleLike = Union[int, str, bytes]

Signature = HexBytes
