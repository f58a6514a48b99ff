"""
The Wait Monitor blocks after an apply until the applied objects are
observably ready, or until a deadline passes
"""

# Standard
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, NamedTuple, Optional
import threading
import time

# First Party
import alog

# Local
from . import config
from .exceptions import TransportError, WaitTimeout
from .fetcher import LiveStateFetcher
from .identity import Identity
from .readiness import is_ready
from .report import Readiness

log = alog.use_channel("WAIT")


class WaitResult(NamedTuple):
    """Result of waiting for a single identity"""

    identity: Identity
    readiness: Readiness
    reason: str = ""


def deadline_in(seconds: float, clock: Callable[[], float] = time.monotonic) -> float:
    """The absolute deadline the given number of seconds from now"""
    return clock() + seconds


class WaitMonitor:
    """Polls objects through the fetcher until their readiness predicate holds"""

    def __init__(
        self,
        fetcher: LiveStateFetcher,
        poll_interval: Optional[float] = None,
        max_threads: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            fetcher:  LiveStateFetcher
                The fetcher used to read each object
            poll_interval:  Optional[float]
                Seconds between polls of one object
                (config.wait_poll_interval_seconds)
            max_threads:  Optional[int]
                Bound on the number of objects polled concurrently by wait_all
            clock:  Callable[[], float]
                Monotonic clock the deadlines are measured against
        """
        self.fetcher = fetcher
        self.poll_interval = (
            config.wait_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.max_threads = max_threads
        self.clock = clock

    def wait_ready(
        self,
        obj_id: Identity,
        deadline: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> WaitResult:
        """Wait for a single object

        Args:
            obj_id:  Identity
                The object to wait for
            deadline:  float
                Absolute time on the monitor's clock to give up at
            cancel_event:  Optional[threading.Event]
                Stops waiting once set

        Returns:
            result:  WaitResult
                READY, TIMED_OUT (with the last observed reason) or CANCELLED
        """
        cancel_event = cancel_event or threading.Event()
        reason = ""
        polls = 0
        while True:
            if cancel_event.is_set():
                return WaitResult(obj_id, Readiness.CANCELLED, "Cancelled")

            polls += 1
            try:
                live = self.fetcher.fetch(obj_id)
            except TransportError as err:
                log.debug2("Error polling [%s]: %s", obj_id, err)
                reason = str(err)
            else:
                if is_ready(live):
                    log.debug("[%s] ready after %d poll(s)", obj_id, polls)
                    return WaitResult(obj_id, Readiness.READY)
                reason = "Not found" if live is None else "Not ready"

            remaining = deadline - self.clock()
            if remaining <= 0:
                timeout = WaitTimeout(reason)
                log.debug("[%s] not ready before deadline: %s", obj_id, timeout)
                return WaitResult(obj_id, Readiness.TIMED_OUT, str(timeout))
            if cancel_event.wait(min(self.poll_interval, remaining)):
                return WaitResult(obj_id, Readiness.CANCELLED, "Cancelled")

    def wait_all(
        self,
        identities: Iterable[Identity],
        deadline: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[Identity, WaitResult]:
        """Wait for many objects concurrently against one shared deadline

        Returns:
            results:  Dict[Identity, WaitResult]
                One result per identity, in the order given
        """
        identities = list(identities)
        if not identities:
            return {}
        results = {}
        with alog.ContextTimer(log.debug, "Waited for %d objects: ", len(identities)):
            with ThreadPoolExecutor(
                max_workers=self.max_threads or len(identities)
            ) as pool:
                futures = {
                    obj_id: pool.submit(self.wait_ready, obj_id, deadline, cancel_event)
                    for obj_id in identities
                }
                for obj_id, future in futures.items():
                    try:
                        results[obj_id] = future.result()
                    except Exception as err:  # pylint: disable=broad-except
                        log.warning(
                            "Unexpected error waiting for [%s]: %s",
                            obj_id,
                            err,
                            exc_info=True,
                        )
                        results[obj_id] = WaitResult(obj_id, Readiness.ERROR, str(err))
        return results
