from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from cytoolz.dicttoolz import dissoc
from eth_account.account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from hexbytes.main import BytesLike, HexBytes

from fhegate.blockchain.eth.decorators import validate_checksum_address
from fhegate.blockchain.eth.signers.base import Signer


class InMemorySigner(Signer):
    """Local signer implementation for in-memory-only keys"""

    def __init__(self, private_key: Optional[BytesLike] = None):
        super().__init__()
        if private_key:
            account = Account.from_key(private_key)
        else:
            account = Account.create()
        self.__signers = {account.address: account}

    @classmethod
    def from_signer_uri(cls, uri: str) -> "Signer":
        """Return an in-memory signer from URI string i.e. memory://"""
        decoded_uri = urlparse(uri)
        if decoded_uri.scheme != cls.uri_scheme() or decoded_uri.netloc:
            raise cls.InvalidSignerURI(uri)
        return cls()

    @classmethod
    def uri_scheme(cls) -> str:
        return "memory"

    @property
    def accounts(self) -> List[str]:
        return list(self.__signers.keys())

    @validate_checksum_address
    def _get_signer(self, account: str) -> LocalAccount:
        """Lookup a known account by its checksum address or raise an error"""
        try:
            return self.__signers[account]
        except KeyError:
            raise self.UnknownAccount(account=account)

    @validate_checksum_address
    def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> HexBytes:
        signer = self._get_signer(account=account)
        signable_message = encode_typed_data(full_message=typed_data)
        signature = signer.sign_message(signable_message=signable_message).signature
        return HexBytes(signature)

    def sign_transaction(self, transaction_dict: dict) -> HexBytes:
        sender = transaction_dict["from"]
        signer = self._get_signer(account=sender)
        transaction_dict = dissoc(transaction_dict, "from")
        if not transaction_dict.get("to"):
            transaction_dict = dissoc(transaction_dict, "to")
        raw_transaction = signer.sign_transaction(
            transaction_dict=transaction_dict
        ).rawTransaction
        return HexBytes(raw_transaction)
