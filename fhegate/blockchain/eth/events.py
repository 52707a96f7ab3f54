from typing import Callable, List, Optional, Tuple

from twisted.internet.defer import Deferred
from twisted.python.failure import Failure
from web3.contract.contract import Contract

from fhegate.blockchain.eth.models import DecryptionResponse
from fhegate.config.constants import DEFAULT_EVENT_POLL_INTERVAL
from fhegate.utilities.concurrency import run_blocking
from fhegate.utilities.task import PollingTask

ResponseCallback = Callable[[int, int], None]


class DecryptionResponsePoller(PollingTask):
    """
    Polls the gateway for DecryptionResponse logs and hands each one to a callback.

    Scanning starts at the head block when the poller is started, so a response mined
    after the subscription began is never missed, and every block is scanned exactly once.
    RPC calls run in the reactor's thread pool; the callback always runs on the reactor.
    """

    INTERVAL = DEFAULT_EVENT_POLL_INTERVAL
    EVENT_NAME = "DecryptionResponse"

    def __init__(
        self,
        contract: Contract,
        callback: ResponseCallback,
        interval: Optional[float] = None,
        clock=None,
        threaded: bool = True,
    ):
        super().__init__(interval=interval, clock=clock)
        self.contract = contract
        self.callback = callback
        self.threaded = threaded
        self.next_block: Optional[int] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.contract.address} from block {self.next_block}>"

    @property
    def web3(self):
        return self.contract.w3

    def start(self, now: bool = False) -> None:
        if not self.running and self.next_block is None:
            d = self._anchor()
            d.addErrback(self._anchor_failed)
        super().start(now=now)

    def poll(self) -> Deferred:
        if self.next_block is None:
            return self._anchor()
        d = run_blocking(self._scan, self.next_block, threaded=self.threaded)
        d.addCallback(self._deliver)
        return d

    def _anchor(self) -> Deferred:
        d = run_blocking(lambda: self.web3.eth.block_number, threaded=self.threaded)
        d.addCallback(self._set_start_block)
        return d

    def _set_start_block(self, block_number: int) -> None:
        if self.next_block is None:
            self.next_block = block_number
            self.log.debug(f"Scanning for {self.EVENT_NAME} from block {block_number}")

    def _anchor_failed(self, failure: Failure) -> None:
        # the first polling round anchors instead
        self.log.warn(f"Could not read the head block: {failure.getErrorMessage()}")

    def _scan(self, from_block: int) -> Tuple[int, List[dict]]:
        latest_block = self.web3.eth.block_number
        if latest_block < from_block:
            return latest_block, []
        event = getattr(self.contract.events, self.EVENT_NAME)
        return latest_block, event.get_logs(fromBlock=from_block, toBlock=latest_block)

    def _deliver(self, scan: Tuple[int, List[dict]]) -> None:
        latest_block, entries = scan
        if latest_block < self.next_block:
            return
        self.next_block = latest_block + 1
        if not self.running:
            return
        for entry in entries:
            response = DecryptionResponse(
                handle=entry["args"]["handle"],
                value=entry["args"]["value"],
                block_number=entry["blockNumber"],
                transaction_hash=entry["transactionHash"].hex(),
            )
            self.log.debug(f"{self.EVENT_NAME} for handle {response.handle} at block {response.block_number}")
            self.callback(response.handle, response.value)
