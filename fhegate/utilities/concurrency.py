from typing import Callable

from twisted.internet import threads
from twisted.internet.defer import Deferred, maybeDeferred


def run_blocking(func: Callable, *args, threaded: bool = True, **kwargs) -> Deferred:
    """
    Runs a blocking call (JSON-RPC, receipt waits) in the reactor's thread pool.

    With ``threaded=False`` the call runs inline and its outcome comes back as an
    already-fired Deferred; agents built over in-process test doubles use this.
    """
    if threaded:
        return threads.deferToThread(func, *args, **kwargs)
    return maybeDeferred(func, *args, **kwargs)
