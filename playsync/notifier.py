import asyncio
import logging
from typing import Set

logger = logging.getLogger(__name__)

class Subscription:
    """
    One subscriber's wake-up slot. Any number of signals before the next
    wait() collapse into a single wake; no payload is carried, so the
    subscriber re-reads the live session state after waking.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def signal(self):
        self._event.set()

    @property
    def pending(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()
        self._event.clear()

    def __aiter__(self):
        return self

    async def __anext__(self):
        await self.wait()

class Notifier:
    def __init__(self):
        self._subscribers: Set[Subscription] = set()

    def subscribe(self) -> Subscription:
        sub = Subscription()
        self._subscribers.add(sub)
        logger.debug(f"Subscriber added ({len(self._subscribers)} total)")
        return sub

    def unsubscribe(self, sub: Subscription):
        self._subscribers.discard(sub)
        logger.debug(f"Subscriber removed ({len(self._subscribers)} total)")

    def notify(self) -> int:
        """Wakes every subscriber. Never blocks; with no subscribers the signal is dropped."""
        for sub in list(self._subscribers):
            sub.signal()
        return len(self._subscribers)

    def __len__(self) -> int:
        return len(self._subscribers)
