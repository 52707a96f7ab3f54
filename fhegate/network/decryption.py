from dataclasses import dataclass
from typing import Optional, Set

from hexbytes import HexBytes
from twisted.internet.defer import CancelledError, Deferred, inlineCallbacks, maybeDeferred
from twisted.python.failure import Failure

from fhegate.blockchain.eth.eip712 import TypedAuthorizationMessage, build_decrypt_authorization
from fhegate.blockchain.eth.signers.base import Signer
from fhegate.blockchain.eth.trackers.decryption import DecryptionResponseTracker
from fhegate.config.constants import DEFAULT_DECRYPTION_TIMEOUT
from fhegate.config.networks import ProviderConfig
from fhegate.exceptions import (
    DecryptionTimeout,
    DuplicateDecryptionRequest,
    FHEGateError,
    LedgerError,
    PermissionDenied,
)
from fhegate.network.results import parse_decrypted_value
from fhegate.types import Handle, HandleLike
from fhegate.utilities.encoding import to_address, to_handle
from fhegate.utilities.logging import Logger


@dataclass(frozen=True)
class DecryptRequest:
    handle: HandleLike
    contract_address: str
    signer: Signer
    account: Optional[str] = None  # defaults to the signer's first account

    @property
    def user_address(self) -> str:
        return self.account or self.signer.address


class DecryptionClient:
    """
    Client side of the gateway decryption protocol.

    Public decryption is a permission-gated read. User decryption signs an EIP-712
    authorization, records it on the gateway and waits for the KMS nodes' confirmation
    event, correlated by handle through a :class:`DecryptionResponseTracker`.
    """

    DEFAULT_DECRYPTION_TIMEOUT = DEFAULT_DECRYPTION_TIMEOUT

    def __init__(
        self,
        config: ProviderConfig,
        agent,
        tracker: Optional[DecryptionResponseTracker] = None,
        clock=None,
        timeout: Optional[float] = None,
    ):
        self.config = config
        self.agent = agent
        self.tracker = tracker or DecryptionResponseTracker(agent=agent, clock=clock)
        self.timeout = self.DEFAULT_DECRYPTION_TIMEOUT if timeout is None else timeout
        self.log = Logger(self.__class__.__name__)
        self._in_flight: Set[Handle] = set()

    #
    # Public decryption
    #

    def public_decrypt(self, handle: HandleLike) -> Deferred:
        handle = to_handle(handle)
        d = maybeDeferred(self.agent.is_public_decrypt_allowed, handle)
        d.addCallback(self._read_if_permitted, handle)
        d.addCallback(parse_decrypted_value)
        d.addErrback(self._ledger_failure, "public decryption", handle)
        return d

    def _read_if_permitted(self, allowed: bool, handle: Handle):
        if not allowed:
            self.log.info(f"Public decryption not allowed for handle {handle}")
            raise PermissionDenied(handle)
        return self.agent.get_decrypted_value(handle)

    #
    # User decryption
    #

    def build_authorization(self, request: DecryptRequest) -> TypedAuthorizationMessage:
        return build_decrypt_authorization(
            network_id=self.config.network_id,
            gateway_address=self.config.gateway_address,
            handle=request.handle,
            contract_address=request.contract_address,
            user_address=request.user_address,
        )

    def sign_authorization(self, signer: Signer, authorization: TypedAuthorizationMessage) -> Deferred:
        d = maybeDeferred(signer.sign_typed_data, authorization.user_address, authorization.to_dict())
        d.addCallback(HexBytes)
        return d

    def request_user_decrypt(self, request: DecryptRequest) -> Deferred:
        """Signs and records a decryption request without waiting; fires with the signature."""
        authorization = self.build_authorization(request)
        d = self.sign_authorization(request.signer, authorization)
        d.addCallback(self._submit_and_return_signature, authorization, request.signer)
        return d

    def _submit_and_return_signature(self, signature, authorization, signer) -> Deferred:
        d = self._submit(authorization, signature, signer)
        d.addCallback(lambda _: signature)
        return d

    def _submit(self, authorization: TypedAuthorizationMessage, signature: HexBytes, signer: Signer) -> Deferred:
        d = maybeDeferred(
            self.agent.request_decryption,
            handle=authorization.handle,
            contract_address=authorization.message["contractAddress"],
            user_address=authorization.user_address,
            signature=signature,
            signer=signer,
        )
        d.addErrback(self._ledger_failure, "decryption request", authorization.handle)
        return d

    def is_pending(self, handle: HandleLike) -> bool:
        """True from the moment decrypt() accepts a handle until its outcome is known, wallet prompt included."""
        handle = to_handle(handle)
        return handle in self._in_flight or self.tracker.is_pending(handle)

    def _timeout(self, timeout: Optional[float]) -> float:
        timeout = self.timeout if timeout is None else timeout
        if timeout <= 0:
            raise ValueError(f"Decryption timeout must be positive, got {timeout}")
        return timeout

    def wait_for_result(self, handle: HandleLike, timeout: Optional[float] = None) -> Deferred:
        """Waits for the confirmation of a request that was already submitted."""
        handle = to_handle(handle)
        if handle in self._in_flight:
            raise DuplicateDecryptionRequest(handle)
        d = self.tracker.register(handle, timeout=self._timeout(timeout))
        d.addCallback(parse_decrypted_value)
        return d

    def decrypt(self, request: DecryptRequest, timeout: Optional[float] = None) -> Deferred:
        authorization = self.build_authorization(request)
        timeout = self._timeout(timeout)
        handle = authorization.handle
        if self.is_pending(handle):
            raise DuplicateDecryptionRequest(handle)

        self._in_flight.add(handle)
        d = self._decrypt(request.signer, authorization, timeout)
        d.addBoth(self._settled, handle)
        return d

    def _settled(self, result, handle: Handle):
        self._in_flight.discard(handle)
        return result

    @inlineCallbacks
    def _decrypt(self, signer: Signer, authorization: TypedAuthorizationMessage, timeout: float):
        handle = authorization.handle
        signature = yield self.sign_authorization(signer, authorization)

        # Register before submitting so a fast confirmation cannot slip past us.
        waiter = self.tracker.register(handle, timeout=timeout)
        try:
            yield self._submit(authorization, signature, signer)
        except Exception:
            waiter.cancel()
            waiter.addErrback(self._discard_abandoned_waiter)
            raise

        self.log.info(f"Decryption of handle {handle} requested by {authorization.user_address}")
        value = yield waiter
        return parse_decrypted_value(value)

    #
    # Introspection
    #

    def get_gateway_info(self) -> Deferred:
        d = maybeDeferred(self.agent.get_gateway_info)
        d.addErrback(self._ledger_failure, "gateway introspection", None)
        return d

    #
    # Failure handling
    #

    def _ledger_failure(self, failure: Failure, operation: str, handle: Optional[Handle]) -> Failure:
        if failure.check(FHEGateError, Signer.SignerError):
            return failure
        self.log.warn(f"Ledger failure during {operation} (handle {handle}): {failure.getErrorMessage()}")
        raise LedgerError(f"{operation} failed: {failure.getErrorMessage()}") from failure.value

    @staticmethod
    def _discard_abandoned_waiter(failure: Failure) -> None:
        failure.trap(CancelledError, DecryptionTimeout)
