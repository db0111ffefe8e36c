import asyncio
import threading
import time
import unittest
from playsync.config import settings
from playsync.engine import EventProcessor
from playsync.estimator import StartTimeEstimator
from playsync.models import MediaStartEvent, MediaStopEvent, SyncEvent
from playsync.notifier import Notifier
from playsync.state import ReadWriteLock, SessionStore, StatePoisonedError

class FakeClock:
    def __init__(self, now: float):
        self.now = now
    def __call__(self) -> float:
        return self.now

class ExplodingProcessor(EventProcessor):
    def apply(self, state, event, now):
        state.filename = "half-written"
        raise RuntimeError("boom")

class TestSessionStore(unittest.TestCase):
    def setUp(self):
        settings.START_TIME_WINDOW_SIZE = 20
        settings.EPOCH_WRAP_THRESHOLD = 100
        settings.SYNC_MISMATCH_POLICY = "log"
        self.clock = FakeClock(1000.0)
        self.store = SessionStore(clock=self.clock)
        self.sub = self.store.subscribe()

    def test_initial_snapshot(self):
        snap = self.store.snapshot()
        self.assertEqual(snap.id, 0)
        self.assertIsNone(snap.filename)
        self.assertEqual(snap.time, 0.0)
        self.assertEqual(snap.average_start, 1000.0)

    def test_accepted_event_notifies_once(self):
        self.assertTrue(self.store.apply(MediaStartEvent(id=1, filename="a.mp4")))
        self.assertTrue(self.sub.pending)
        self.assertEqual(self.store.accepted_events, 1)

    def test_rejected_event_does_not_notify(self):
        self.store.apply(MediaStartEvent(id=50, filename="a.mp4"))
        late = self.store.subscribe()

        self.assertFalse(self.store.apply(MediaStopEvent(id=45)))
        self.assertFalse(late.pending)
        self.assertEqual(self.store.rejected_events, 1)

    def test_status_reports_average_start(self):
        self.store.apply(MediaStartEvent(id=1, filename="a.mp4"))
        self.store.apply(SyncEvent(id=1, time=10.0, latencies=[0, 0, 0]))
        self.clock.now = 1002.0
        self.store.apply(SyncEvent(id=1, time=14.0, latencies=[0, 0, 0]))

        status = self.store.status()
        self.assertEqual(status.id, 1)
        self.assertEqual(status.filename, "a.mp4")
        # Estimates were 990 and 988
        self.assertEqual(status.start_time, 989.0)

        update = self.store.live_update()
        self.assertEqual(update.model_dump(), {"filename": "a.mp4", "time": 14.0})
        self.assertEqual(self.store.window_size(), 2)

    def test_injected_collaborators_kept(self):
        notifier = Notifier()
        processor = EventProcessor(estimator=StartTimeEstimator())
        store = SessionStore(processor=processor, notifier=notifier, clock=self.clock)
        self.assertIs(store.notifier, notifier)
        self.assertIs(store.processor, processor)

        # Subscribing after construction still receives wakes
        sub = notifier.subscribe()
        store.apply(MediaStartEvent(id=1, filename="a.mp4"))
        self.assertTrue(sub.pending)

    def test_failed_mutation_poisons_store(self):
        store = SessionStore(processor=ExplodingProcessor(), clock=self.clock)
        with self.assertRaises(RuntimeError):
            store.apply(MediaStopEvent(id=1))
        with self.assertRaises(StatePoisonedError):
            store.snapshot()
        with self.assertRaises(StatePoisonedError):
            store.apply(MediaStopEvent(id=2))

class TestSessionStoreWakes(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        settings.START_TIME_WINDOW_SIZE = 20
        settings.EPOCH_WRAP_THRESHOLD = 100
        settings.SYNC_MISMATCH_POLICY = "log"
        self.store = SessionStore(clock=FakeClock(1000.0))

    async def test_rapid_mutations_give_one_wake_with_final_state(self):
        sub = self.store.subscribe()
        self.store.apply(MediaStartEvent(id=1, filename="a.mp4"))
        self.store.apply(SyncEvent(id=1, time=5.0, latencies=[0, 0, 0]))
        self.store.apply(SyncEvent(id=1, time=6.0, latencies=[0, 0, 0]))
        self.store.apply(MediaStartEvent(id=2, filename="b.mp4"))
        self.store.apply(SyncEvent(id=2, time=1.5, latencies=[0.5, 0.5, 0.5]))

        await asyncio.wait_for(sub.wait(), timeout=1)
        self.assertFalse(sub.pending)
        self.assertEqual(self.store.live_update().model_dump(), {"filename": "b.mp4", "time": 2.0})
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(sub.wait(), timeout=0.05)

class TestReadWriteLock(unittest.TestCase):
    def test_readers_share(self):
        lock = ReadWriteLock()
        with lock.read():
            with lock.read():
                pass

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        order = []
        reading = threading.Event()
        release = threading.Event()

        def reader():
            with lock.read():
                reading.set()
                release.wait(timeout=5)
                order.append("read")

        def writer():
            with lock.write():
                order.append("write")

        t_read = threading.Thread(target=reader)
        t_read.start()
        reading.wait(timeout=5)
        t_write = threading.Thread(target=writer)
        t_write.start()
        t_write.join(timeout=0.1)
        self.assertEqual(order, [])

        release.set()
        t_read.join(timeout=5)
        t_write.join(timeout=5)
        self.assertEqual(order, ["read", "write"])
    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []
        reading = threading.Event()
        release = threading.Event()

        def first_reader():
            with lock.read():
                reading.set()
                release.wait(timeout=5)
                order.append("first read")

        def writer():
            with lock.write():
                order.append("write")

        def late_reader():
            with lock.read():
                order.append("late read")

        t_first = threading.Thread(target=first_reader)
        t_first.start()
        reading.wait(timeout=5)
        t_write = threading.Thread(target=writer)
        t_write.start()
        # Give the writer time to start waiting
        for _ in range(100):
            if lock._waiting_writers:
                break
            time.sleep(0.01)
        t_late = threading.Thread(target=late_reader)
        t_late.start()
        t_late.join(timeout=0.1)
        self.assertEqual(order, [])

        release.set()
        for t in (t_first, t_write, t_late):
            t.join(timeout=5)
        self.assertEqual(order, ["first read", "write", "late read"])

if __name__ == '__main__':
    unittest.main()
