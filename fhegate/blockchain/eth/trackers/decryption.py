from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from twisted.internet import reactor
from twisted.internet.defer import Deferred
from twisted.internet.interfaces import IDelayedCall

from fhegate.exceptions import DecryptionTimeout, DuplicateDecryptionRequest, ProtocolError
from fhegate.types import Handle, HandleLike
from fhegate.utilities.encoding import to_handle
from fhegate.utilities.logging import Logger


@dataclass
class PendingDecryption:
    handle: Handle
    created_at: float
    deadline: float
    deferred: Deferred
    timeout_call: Optional[IDelayedCall] = None

    @property
    def timeout(self) -> float:
        return self.deadline - self.created_at


class DecryptionResponseTracker:
    """
    Correlates DecryptionResponse events with outstanding user decryptions.

    Each outstanding request is a :class:`PendingDecryption` keyed by handle, holding the
    Deferred its caller waits on. A single event subscription is shared by all entries:
    it is installed when the first entry is registered and torn down as soon as the
    registry is empty again, whether the last entry resolved, timed out or was cancelled.
    All mutation happens on the reactor thread, so no locking is needed.

    A confirmation whose handle has no pending entry (for instance one that arrives after
    its request timed out) is dropped.
    """

    CLOCK = reactor

    def __init__(self, agent, clock=None):
        self.agent = agent
        self.clock = clock or self.CLOCK
        self.log = Logger(self.__class__.__name__)
        self._pending: Dict[Handle, PendingDecryption] = dict()
        self._subscription = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> Mapping[Handle, PendingDecryption]:
        return MappingProxyType(self._pending)

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def is_pending(self, handle: HandleLike) -> bool:
        return to_handle(handle) in self._pending

    def register(self, handle: HandleLike, timeout: float) -> Deferred:
        """Returns a Deferred firing with the raw decrypted scalar of ``handle``."""
        handle = to_handle(handle)
        if timeout is None or timeout <= 0:
            raise ValueError(f"Decryption timeout must be positive, got {timeout}")
        if handle in self._pending:
            raise DuplicateDecryptionRequest(handle)

        now = self.clock.seconds()
        entry = PendingDecryption(
            handle=handle,
            created_at=now,
            deadline=now + timeout,
            deferred=Deferred(canceller=lambda _: self._cancelled(handle)),
        )
        self._pending[handle] = entry
        entry.timeout_call = self.clock.callLater(timeout, self._expire, handle)

        try:
            self._subscribe()
        except Exception:
            self._pop(handle)
            raise

        self.log.debug(f"Awaiting decryption response for handle {handle} (deadline {entry.deadline})")
        return entry.deferred

    def purge(self, handle: HandleLike) -> bool:
        """Cancels the pending entry for ``handle``; its waiter fails with CancelledError."""
        entry = self._pending.get(to_handle(handle))
        if entry is None:
            return False
        entry.deferred.cancel()
        return True

    def purge_all(self) -> int:
        handles = list(self._pending)
        for handle in handles:
            self.purge(handle)
        return len(handles)

    #
    # Registry internals
    #

    def _pop(self, handle: Handle) -> Optional[PendingDecryption]:
        entry = self._pending.pop(handle, None)
        if entry is not None and entry.timeout_call is not None and entry.timeout_call.active():
            entry.timeout_call.cancel()
        return entry

    def _subscribe(self) -> None:
        if self._subscription is None:
            self._subscription = self.agent.subscribe_decryption_responses(self._on_response, clock=self.clock)
            self.log.debug("Subscribed to decryption responses")

    def _release_subscription_if_idle(self) -> None:
        if self._pending or self._subscription is None:
            return
        subscription, self._subscription = self._subscription, None
        self.agent.unsubscribe(subscription)
        self.log.debug("Unsubscribed from decryption responses")

    def _on_response(self, handle, value) -> None:
        try:
            handle = to_handle(handle)
        except ProtocolError as e:
            self.log.warn(f"Ignoring malformed decryption response: {e}")
            return

        entry = self._pop(handle)
        if entry is None:
            self.log.debug(f"Dropping decryption response for handle {handle}; nothing is waiting for it")
            return

        self.log.info(f"Received decryption response for handle {handle}")
        try:
            entry.deferred.callback(value)
        finally:
            self._release_subscription_if_idle()

    def _expire(self, handle: Handle) -> None:
        entry = self._pop(handle)
        if entry is None:
            return
        self.log.warn(f"Decryption of handle {handle} timed out after {entry.timeout} seconds")
        try:
            entry.deferred.errback(DecryptionTimeout(handle=handle, timeout=entry.timeout))
        finally:
            self._release_subscription_if_idle()

    def _cancelled(self, handle: Handle) -> None:
        if self._pop(handle) is not None:
            self.log.info(f"Decryption request for handle {handle} cancelled")
            self._release_subscription_if_idle()
