import asyncio
from collections import defaultdict
from typing import Dict, Set


class NotificationBroker:
    """Fans out notification inserts to the open streams of one user."""

    def __init__(self) -> None:
        self._queues: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[user_id].add(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self._queues.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._queues[user_id]

    def publish(self, user_id: str, payload: dict) -> int:
        queues = self._queues.get(user_id, ())
        for queue in queues:
            queue.put_nowait(payload)
        return len(queues)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._queues.get(user_id, ()))


broker = NotificationBroker()
