from abc import ABC, abstractmethod
from typing import Optional

from twisted.internet import reactor
from twisted.internet.defer import Deferred
from twisted.internet.task import LoopingCall
from twisted.python.failure import Failure

from fhegate.utilities.logging import Logger


class PollingTask(ABC):
    """
    A LoopingCall that outlives its own failures.

    ``poll`` may return a Deferred, in which case the next round waits for it. A failed
    round is logged and the loop is started again one interval later, so an unreachable
    node only delays polling.
    """

    INTERVAL: float = NotImplemented

    def __init__(self, interval: Optional[float] = None, clock=None):
        self.interval = self.INTERVAL if interval is None else interval
        self.log = Logger(self.__class__.__name__)
        self._loop = LoopingCall(self.poll)
        self._loop.clock = clock or reactor

    @property
    def clock(self):
        return self._loop.clock

    @property
    def running(self) -> bool:
        return self._loop.running

    def start(self, now: bool = False) -> None:
        if self.running:
            return
        d = self._loop.start(interval=self.interval, now=now)
        d.addErrback(self._restart_after_failure)

    def stop(self) -> None:
        if self.running:
            self._loop.stop()

    @abstractmethod
    def poll(self) -> Optional[Deferred]:
        raise NotImplementedError

    def _restart_after_failure(self, failure: Failure) -> None:
        self.log.warn(f"Polling round failed, retrying in {self.interval}s: {failure.getErrorMessage()}")
        self.log.debug(failure.getTraceback())
        self.start(now=False)
