import logging
from typing import Optional
from .config import settings
from .estimator import StartTimeEstimator
from .models import MediaStartEvent, MediaStopEvent, SessionState, SyncEvent

logger = logging.getLogger(__name__)

MISMATCH_POLICIES = ("log", "reset")

def accept_epoch(current: int, incoming: int, threshold: int = 100) -> bool:
    """
    Returns True if `incoming` starts (or continues) the current epoch.
    An id far below the current one is taken as a reset/wraparound on the
    client side rather than a stale duplicate.
    """
    return incoming >= current or current - incoming > threshold

class EventProcessor:
    def __init__(self, estimator: Optional[StartTimeEstimator] = None):
        self.estimator = estimator if estimator is not None else StartTimeEstimator()

    def apply(self, state: SessionState, event, now: float) -> bool:
        """
        Applies one event to `state`. Must be called with exclusive access.
        Returns True if the state changed and subscribers should be woken.
        """
        if isinstance(event, SyncEvent):
            return self._apply_sync(state, event, now)
        if isinstance(event, MediaStartEvent):
            return self._apply_media_start(state, event)
        if isinstance(event, MediaStopEvent):
            return self._apply_media_stop(state, event)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    def _apply_media_start(self, state: SessionState, event: MediaStartEvent) -> bool:
        if not accept_epoch(state.id, event.id, settings.EPOCH_WRAP_THRESHOLD):
            logger.info(f"Ignoring media_start with stale id {event.id} (current {state.id})")
            return False

        logger.info(f"Media started: {event.filename} (id {event.id})")
        state.id = event.id
        state.filename = event.filename
        self.estimator.clear(state)
        return True

    def _apply_media_stop(self, state: SessionState, event: MediaStopEvent) -> bool:
        if not accept_epoch(state.id, event.id, settings.EPOCH_WRAP_THRESHOLD):
            logger.info(f"Ignoring media_stop with stale id {event.id} (current {state.id})")
            return False

        logger.info(f"Media stopped (id {event.id})")
        state.id = event.id
        state.filename = None
        return True

    def _apply_sync(self, state: SessionState, event: SyncEvent, now: float) -> bool:
        if event.id != state.id:
            return self._handle_mismatch(state, event)

        # Latency is added forward: the report was sampled before we received it
        avg_latency = sum(event.latencies) / len(event.latencies)
        state.time = event.time + avg_latency
        self.estimator.push(state, now - state.time)
        return True

    def _handle_mismatch(self, state: SessionState, event: SyncEvent) -> bool:
        policy = settings.SYNC_MISMATCH_POLICY
        if policy not in MISMATCH_POLICIES:
            raise ValueError(f"Unknown SYNC_MISMATCH_POLICY: {policy!r}")

        logger.info(f"Sync event with wrong id: {event.id} (should be {state.id})")
        if policy == "log":
            return False

        # Force every client to resynchronize from the next media_start
        if state.filename is None and not state.start_times:
            return False
        state.filename = None
        self.estimator.clear(state)
        return True
