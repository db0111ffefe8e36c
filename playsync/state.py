import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Optional
from .engine import EventProcessor
from .models import LiveUpdate, SessionSnapshot, SessionState, StatusResponse
from .notifier import Notifier, Subscription

logger = logging.getLogger(__name__)

class StatePoisonedError(RuntimeError):
    """A previous mutation failed midway; the session state can no longer be trusted."""

class ReadWriteLock:
    """
    Many concurrent readers or a single writer. An exception escaping a
    write section poisons the lock: all later acquisitions raise
    StatePoisonedError.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0
        self.poisoned = False

    def _check(self):
        if self.poisoned:
            raise StatePoisonedError("Session state lock is poisoned")

    @contextmanager
    def read(self):
        with self._cond:
            # Waiting writers go first so steady reads cannot starve apply()
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._check()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._check()
            self._writer = True
        try:
            yield
        except BaseException:
            self.poisoned = True
            raise
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()

class SessionStore:
    def __init__(self, processor: Optional[EventProcessor] = None,
                 notifier: Optional[Notifier] = None,
                 clock: Callable[[], float] = time.time):
        self.state = SessionState()
        self.processor = processor if processor is not None else EventProcessor()
        self.notifier = notifier if notifier is not None else Notifier()
        self.clock = clock
        self.accepted_events = 0
        self.rejected_events = 0
        self._lock = ReadWriteLock()

    def apply(self, event) -> bool:
        with self._lock.write():
            changed = self.processor.apply(self.state, event, self.clock())
            if changed:
                self.accepted_events += 1
            else:
                self.rejected_events += 1

        if changed:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Sending update: {self.snapshot()}")
            self.notifier.notify()
        return changed

    def snapshot(self) -> SessionSnapshot:
        with self._lock.read():
            return SessionSnapshot(
                id=self.state.id,
                filename=self.state.filename,
                time=self.state.time,
                average_start=self.processor.estimator.average(self.state, self.clock()),
            )

    def status(self) -> StatusResponse:
        snap = self.snapshot()
        return StatusResponse(id=snap.id, filename=snap.filename, start_time=snap.average_start)

    def live_update(self) -> LiveUpdate:
        with self._lock.read():
            return LiveUpdate(filename=self.state.filename, time=self.state.time)

    def window_size(self) -> int:
        with self._lock.read():
            return len(self.state.start_times)

    def subscribe(self) -> Subscription:
        return self.notifier.subscribe()

    def unsubscribe(self, sub: Subscription):
        self.notifier.unsubscribe(sub)
