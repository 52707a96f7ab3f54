from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from twisted.internet.defer import Deferred, DeferredList, FirstError, inlineCallbacks
from twisted.python.failure import Failure

from fhegate.blockchain.eth.signers.base import Signer
from fhegate.crypto.encryption import EncryptionDispatcher, EncryptOptions
from fhegate.crypto.kinds import CiphertextKind
from fhegate.crypto.validation import validate
from fhegate.network.decryption import DecryptionClient, DecryptRequest
from fhegate.types import HandleLike
from fhegate.utilities.encoding import to_address, to_handle
from fhegate.utilities.logging import Logger

EncryptItem = Union[Tuple[Any, Union[CiphertextKind, str]], Mapping[str, Any]]


def _as_encrypt_item(item: EncryptItem) -> Tuple[Any, CiphertextKind]:
    if isinstance(item, Mapping):
        value = item["value"]
        kind = item.get("kind", item.get("type"))
    else:
        value, kind = item
    return value, CiphertextKind.from_name(kind)


class BatchCoordinator:
    """
    Runs groups of encryptions or decryptions as a single all-or-nothing call.

    If any item fails the whole batch fails with that item's error and no partial results
    are returned; callers that need per-item outcomes submit items individually.
    Encryptions run concurrently (they are stateless); decryptions run one after another
    in request order so that correlation stays deterministic.
    """

    def __init__(self, dispatcher: EncryptionDispatcher, decryption_client: Optional[DecryptionClient] = None):
        self.dispatcher = dispatcher
        self.decryption_client = decryption_client
        self.log = Logger(self.__class__.__name__)

    def encrypt_batch(self, items: Iterable[EncryptItem], options: Optional[EncryptOptions] = None) -> Deferred:
        # Validate everything up front so a bad item never costs an engine call.
        batch = [_as_encrypt_item(item) for item in items]
        for value, kind in batch:
            validate(value, kind)

        deferreds = [self.dispatcher.encrypt(value, kind, options) for value, kind in batch]
        d = DeferredList(deferreds, fireOnOneErrback=True, consumeErrors=True)
        d.addCallbacks(self._collect, self._first_failure)
        return d

    @staticmethod
    def _collect(results: Sequence[Tuple[bool, Any]]) -> List[Any]:
        return [result for _success, result in results]

    def _first_failure(self, failure: Failure) -> Failure:
        failure.trap(FirstError)
        sub_failure = failure.value.subFailure
        self.log.warn(f"Batch failed at item {failure.value.index}: {sub_failure.getErrorMessage()}")
        return sub_failure

    def decrypt_batch(
        self,
        handles: Iterable[HandleLike],
        signer: Signer,
        contract_address: str,
        timeout: Optional[float] = None,
    ) -> Deferred:
        handles = [to_handle(handle) for handle in handles]
        contract_address = to_address(contract_address, "contract address")
        requests = [
            DecryptRequest(handle=handle, contract_address=contract_address, signer=signer)
            for handle in handles
        ]
        return self._decrypt_in_order(requests, timeout)

    @inlineCallbacks
    def _decrypt_in_order(self, requests: List[DecryptRequest], timeout: Optional[float]):
        results = list()
        for index, request in enumerate(requests):
            try:
                result = yield self.decryption_client.decrypt(request, timeout=timeout)
            except Exception as e:
                self.log.warn(f"Batch decryption failed at item {index} (handle {request.handle}): {e}")
                raise
            results.append(result)
        return results
