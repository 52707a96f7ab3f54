from abc import ABC, abstractmethod
from typing import Any, Dict, List, Union
from urllib.parse import urlparse

from twisted.internet.defer import Deferred

from fhegate.types import Signature
from fhegate.utilities.logging import Logger

SignatureResult = Union[Signature, Deferred]


class Signer(ABC):
    """
    Signing capability injected by the caller.

    The client never holds keys itself; wallets, hardware devices and remote signers
    implement this interface. Signing may be interactive, so implementations may
    return a Deferred instead of the signature.
    """

    _SIGNERS = NotImplemented  # set dynamically in __init__.py

    log = Logger(__qualname__)

    class SignerError(Exception):
        """Base exception class for signer errors"""

    class InvalidSignerURI(SignerError):
        """Raised when an invalid signer URI is detected"""

    class UnknownAccount(SignerError):
        def __init__(self, account: str):
            self.message = f'Unknown account {account}.'
            super().__init__(self.message)

    class SigningRejected(SignerError):
        """Raised when the account holder declines to sign"""

    @classmethod
    @abstractmethod
    def uri_scheme(cls) -> str:
        return NotImplemented

    @classmethod
    def from_signer_uri(cls, uri: str) -> 'Signer':
        parsed = urlparse(uri)
        scheme = parsed.scheme if parsed.scheme else parsed.path
        try:
            signer_class = cls._SIGNERS[scheme]
        except KeyError:
            message = f'{uri} is not a valid signer URI.  Available schemes: {", ".join(cls._SIGNERS)}'
            raise cls.InvalidSignerURI(message)
        signer = signer_class.from_signer_uri(uri=uri)
        return signer

    @property
    @abstractmethod
    def accounts(self) -> List[str]:
        return NotImplemented

    @property
    def address(self) -> str:
        """The account this signer signs for by default."""
        return self.accounts[0]

    @abstractmethod
    def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> SignatureResult:
        return NotImplemented

    @abstractmethod
    def sign_transaction(self, transaction_dict: dict) -> SignatureResult:
        return NotImplemented
