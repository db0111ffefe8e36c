from .config import settings
from .models import SessionState


class StartTimeEstimator:
    """
    Rolling window of estimated wall-clock instants at which the current
    session began. Each accepted sync contributes one estimate; the average
    smooths out jitter in the client reports.
    """

    def push(self, state: SessionState, estimated_start: float):
        """Append an estimate, evicting the oldest ones past the window size."""
        state.start_times.append(estimated_start)

        # Trim from beginning; the window always keeps at least the newest estimate
        capacity = max(1, settings.START_TIME_WINDOW_SIZE)
        if len(state.start_times) > capacity:
            del state.start_times[:-capacity]

    def clear(self, state: SessionState):
        state.start_times.clear()

    def average(self, state: SessionState, now: float) -> float:
        # No timing data yet: the session "starts" now
        if not state.start_times:
            return now
        return sum(state.start_times) / len(state.start_times)
