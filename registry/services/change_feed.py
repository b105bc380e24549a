"""In-process fan-out of item change events to live subscribers."""
import json
import logging
import queue
import threading
from typing import Any, Dict, List, Optional

logger = logging.getLogger('gift_registry.service.ChangeFeed')


class ChangeFeed:
    """Publish/subscribe hub for registry change notifications.

    Every subscriber owns a bounded :class:`queue.Queue`.  Publishing pushes
    a JSON payload ``{"event": ..., "data": ...}`` onto each queue; a queue
    that is full is considered dead and dropped.  Subscribers are expected to
    re-fetch the item list on every event rather than merge the payload.
    """

    def __init__(self, max_queue: int = 64) -> None:
        self._max_queue = max_queue
        self._subscribers: List[queue.Queue] = []
        self._lock = threading.Lock()

    def subscribe(self) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self._max_queue)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Push an event to all subscribers.

        Returns:
            The number of subscribers the event was delivered to.
        """
        payload = json.dumps({'event': event_type, 'data': data or {}})
        delivered = 0
        with self._lock:
            dead = []
            for q in self._subscribers:
                try:
                    q.put_nowait(payload)
                    delivered += 1
                except queue.Full:
                    dead.append(q)
            if dead:
                logger.info("Dropping %d stalled subscriber(s)", len(dead))
                self._subscribers = [q for q in self._subscribers if q not in dead]
        return delivered
