from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Union

from eth_utils import encode_hex
from twisted.internet.defer import Deferred, maybeDeferred
from twisted.python.failure import Failure

from fhegate.crypto.engine import EncryptionEngine
from fhegate.crypto.kinds import CiphertextKind
from fhegate.crypto.validation import validate
from fhegate.exceptions import EngineError, ProtocolError
from fhegate.utilities.encoding import is_valid_hex, to_address, to_handle
from fhegate.utilities.logging import Logger


@dataclass(frozen=True)
class EncryptedValue:
    """Hex-encoded ciphertext tagged with the kind it was encrypted as."""

    data: str
    kind: CiphertextKind
    handle: Optional[str] = None

    def __post_init__(self):
        if not is_valid_hex(self.data):
            raise ProtocolError(f"Invalid ciphertext encoding: {self.data!r}")
        if not isinstance(self.kind, CiphertextKind):
            raise ProtocolError(f"Ciphertext must be tagged with a kind, got {self.kind!r}")

    @property
    def ciphertext_type(self) -> str:
        return self.kind.ciphertext_type

    def __bytes__(self) -> bytes:
        return bytes.fromhex(self.data[2:])

    def with_handle(self, handle: Union[int, str]) -> "EncryptedValue":
        """Returns a copy bound to the handle assigned by the ledger."""
        to_handle(handle)
        return replace(self, handle=str(handle))

    def to_dict(self) -> Dict[str, Any]:
        payload = {"data": self.data, "type": self.ciphertext_type}
        if self.handle is not None:
            payload["handle"] = self.handle
        return payload


@dataclass(frozen=True)
class EncryptOptions:
    """Optional access-control context attached to an encryption request."""

    user_address: Optional[str] = None
    contract_address: Optional[str] = None

    def __post_init__(self):
        if self.user_address is not None:
            object.__setattr__(self, "user_address", to_address(self.user_address, "user address"))
        if self.contract_address is not None:
            object.__setattr__(self, "contract_address", to_address(self.contract_address, "contract address"))


class EncryptionDispatcher:
    """
    Routes a (value, kind) pair to the engine's matching encrypt operation.

    Validation happens synchronously before the engine is touched, so an out-of-range
    value raises immediately and leaves no side effects. Engine failures are reported
    through the returned Deferred as :class:`EngineError`.
    """

    def __init__(self, engine: EncryptionEngine):
        self.engine = engine
        self.log = Logger(self.__class__.__name__)

    def encrypt(
        self,
        value: Any,
        kind: Union[CiphertextKind, str],
        options: Optional[EncryptOptions] = None,
    ) -> Deferred:
        kind = CiphertextKind.from_name(kind)
        plaintext = validate(value, kind)
        operation = self.engine.operation_for(kind)
        if options:
            self.log.debug(
                f"Encrypting {kind} for user {options.user_address} on contract {options.contract_address}"
            )

        d = maybeDeferred(operation, plaintext)
        d.addCallbacks(
            callback=self._wrap_ciphertext,
            callbackArgs=(kind,),
            errback=self._engine_failure,
            errbackArgs=(kind,),
        )
        return d

    def _wrap_ciphertext(self, ciphertext: bytes, kind: CiphertextKind) -> EncryptedValue:
        if not isinstance(ciphertext, (bytes, bytearray)) or not ciphertext:
            raise EngineError(f"Engine returned no ciphertext for {kind}")
        return EncryptedValue(data=encode_hex(bytes(ciphertext)), kind=kind)

    def _engine_failure(self, failure: Failure, kind: CiphertextKind) -> Failure:
        if failure.check(EngineError):
            return failure
        self.log.warn(f"Encryption engine failed for {kind}: {failure.getErrorMessage()}")
        raise EngineError(f"Encryption engine failed for {kind}: {failure.getErrorMessage()}") from failure.value
