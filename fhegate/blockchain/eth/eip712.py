from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, List

from eth_account.account import Account
from eth_account.messages import SignableMessage, encode_typed_data

from fhegate.config.constants import GATEWAY_EIP712_NAME, GATEWAY_EIP712_VERSION
from fhegate.exceptions import ProtocolError
from fhegate.types import HandleLike
from fhegate.utilities.encoding import to_address, to_handle

DECRYPT_PRIMARY_TYPE = "Decrypt"

EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# Field order is part of the type hash; do not reorder.
DECRYPT_FIELDS = [
    {"name": "handle", "type": "uint256"},
    {"name": "contractAddress", "type": "address"},
    {"name": "userAddress", "type": "address"},
]


@dataclass(frozen=True)
class TypedAuthorizationMessage:
    """
    EIP-712 authorization for decrypting one handle, for one account, against one contract.

    The domain binds the signature to a gateway, protocol version and network, so a
    signature produced here cannot be replayed against another gateway or chain.
    The message is a pure value: identical inputs always produce an identical message.
    """

    domain: Dict[str, Any]
    message: Dict[str, Any]

    @property
    def primary_type(self) -> str:
        return DECRYPT_PRIMARY_TYPE

    @property
    def schema(self) -> List[Dict[str, str]]:
        return deepcopy(DECRYPT_FIELDS)

    @property
    def types(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            "EIP712Domain": deepcopy(EIP712_DOMAIN_FIELDS),
            DECRYPT_PRIMARY_TYPE: self.schema,
        }

    @property
    def handle(self) -> int:
        return self.message["handle"]

    @property
    def user_address(self) -> str:
        return self.message["userAddress"]

    def to_dict(self) -> Dict[str, Any]:
        """Full EIP-712 JSON as handed to wallets (``eth_signTypedData_v4``)."""
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": dict(self.domain),
            "message": dict(self.message),
        }

    def signable(self) -> SignableMessage:
        return encode_typed_data(full_message=self.to_dict())

    def recover(self, signature) -> str:
        """Address of the account that produced ``signature`` over this message."""
        try:
            return Account.recover_message(signable_message=self.signable(), signature=signature)
        except Exception as e:
            raise ProtocolError(f"Invalid EIP712 signature: {str(e) or e.__class__.__name__}")

    def verify(self, signature, expected_address: str) -> bool:
        return self.recover(signature) == to_address(expected_address, "expected address")


def build_decrypt_authorization(
    network_id: int,
    gateway_address: str,
    handle: HandleLike,
    contract_address: str,
    user_address: str,
) -> TypedAuthorizationMessage:
    domain = {
        "name": GATEWAY_EIP712_NAME,
        "version": GATEWAY_EIP712_VERSION,
        "chainId": int(network_id),
        "verifyingContract": to_address(gateway_address, "gateway address"),
    }
    message = {
        "handle": int(to_handle(handle)),
        "contractAddress": to_address(contract_address, "contract address"),
        "userAddress": to_address(user_address, "user address"),
    }
    return TypedAuthorizationMessage(domain=domain, message=message)
