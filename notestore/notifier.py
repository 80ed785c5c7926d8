import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Iterable, List, Set

from .schemas import ChangeEvent

logger = logging.getLogger(__name__)

# Delivers one event to one observer. Must not block; raising marks the
# delivery as failed for that observer only.
Sink = Callable[[ChangeEvent], None]


@dataclass
class Observer:
    connection_id: Hashable
    sink: Sink
    collections: Set[str] = field(default_factory=set)


class ObserverRegistry:
    """Live observers keyed by connection identity.

    Safe to mutate from any thread while ``publish`` runs: publishing works
    on a snapshot taken under the lock and calls sinks outside it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: Dict[Hashable, Observer] = {}

    def connect(self, connection_id: Hashable, sink: Sink, collections: Iterable[str] = ()) -> None:
        with self._lock:
            self._observers[connection_id] = Observer(connection_id, sink, set(collections))
        logger.debug("Observer %s connected", connection_id)

    def disconnect(self, connection_id: Hashable) -> None:
        with self._lock:
            self._observers.pop(connection_id, None)
        logger.debug("Observer %s disconnected", connection_id)

    def subscribe(self, connection_id: Hashable, collection: str) -> bool:
        with self._lock:
            observer = self._observers.get(connection_id)
            if observer is None:
                return False
            observer.collections.add(collection)
            return True

    def unsubscribe(self, connection_id: Hashable, collection: str) -> bool:
        with self._lock:
            observer = self._observers.get(connection_id)
            if observer is None:
                return False
            observer.collections.discard(collection)
            return True

    def subscriptions(self, connection_id: Hashable) -> Set[str]:
        with self._lock:
            observer = self._observers.get(connection_id)
            return set(observer.collections) if observer else set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def clear(self) -> None:
        with self._lock:
            self._observers.clear()

    def publish(self, event: ChangeEvent) -> int:
        """Hand ``event`` to every observer subscribed to its collection.

        Returns the number of sinks that took the event without raising.
        """
        with self._lock:
            targets: List[Observer] = [
                o for o in self._observers.values() if event.collection in o.collections
            ]
        delivered = 0
        for observer in targets:
            try:
                observer.sink(event)
            except Exception:
                logger.warning(
                    "Dropping %s event for observer %s",
                    event.change_type.value, observer.connection_id, exc_info=True,
                )
                continue
            delivered += 1
        return delivered


def queue_sink(loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[ChangeEvent]") -> Sink:
    """Sink feeding an asyncio queue owned by ``loop`` from any thread.

    A full queue means the observer is backlogged; the event is dropped for
    it rather than waiting.
    """
    def _offer(event: ChangeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Observer queue full, dropping %s event for %s", event.change_type.value, event.path)

    def sink(event: ChangeEvent) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            _offer(event)
        else:
            # Raises RuntimeError once the loop is closed
            loop.call_soon_threadsafe(_offer, event)

    return sink
