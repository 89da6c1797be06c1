"""
Progress Broadcaster - per-job fan-out of progress events to push-channel subscribers

Registry: job_id -> {connection -> subscriber outbox}

┌──────────────┐  publish()   ┌──────────────────┐  sender task  ┌────────────┐
│ StageExecutor│ ───────────► │ outbox (bounded) │ ────────────► │ connection │
└──────────────┘  put_nowait  └──────────────────┘  send_json    └────────────┘

- publish() is synchronous and never awaits a socket.
- Delivery is best-effort: a full outbox drops the event, a failed write
  removes that connection only.
- No backlog: events for a job with no subscribers are dropped.
- A job entry disappears when its last connection unsubscribes.

Connections are duck-typed: anything hashable with `async send_json(data)`
(FastAPI WebSocket, test doubles).
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Union
from dataclasses import dataclass
import asyncio

from bizforge.core.config import settings
from bizforge.core.logging_config import logger
from bizforge.schemas.orchestration import GenerationProgress


class PushConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass
class _Subscriber:
    connection: Any
    outbox: asyncio.Queue
    sender: Optional[asyncio.Task] = None


class ProgressBroadcaster:
    """
    Process-wide subscriber registry. Created once per server process and
    injected into the executor and the WebSocket endpoint.
    """

    def __init__(self, queue_size: Optional[int] = None):
        self._queue_size = queue_size or settings.WS_SUBSCRIBER_QUEUE_SIZE
        self._jobs: Dict[str, Dict[Any, _Subscriber]] = {}
        self._closed = False
        self._stats = {"published": 0, "delivered": 0, "dropped": 0, "failed_writes": 0}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def subscribe(self, job_id: str, connection: PushConnection) -> bool:
        """
        Register a connection for a job. Idempotent per connection.

        Must be called from a running event loop.

        Returns:
            True if the connection was newly registered
        """
        subscribers = self._jobs.setdefault(job_id, {})
        if connection in subscribers:
            return False

        subscriber = _Subscriber(connection=connection, outbox=asyncio.Queue(maxsize=self._queue_size))
        subscriber.sender = asyncio.create_task(self._pump(job_id, subscriber))
        subscribers[connection] = subscriber

        logger.debug(f"[Broadcaster] Subscribed to {job_id} ({len(subscribers)} connections)")
        return True

    def unsubscribe(self, job_id: str, connection: PushConnection) -> bool:
        """Remove a connection. Returns False if it was not registered."""
        subscriber = self._detach(job_id, connection)
        if subscriber is None:
            return False

        if subscriber.sender and not subscriber.sender.done():
            subscriber.sender.cancel()
        logger.debug(f"[Broadcaster] Unsubscribed from {job_id}")
        return True

    def subscriber_count(self, job_id: Optional[str] = None) -> int:
        if job_id is not None:
            return len(self._jobs.get(job_id, {}))
        return sum(len(subscribers) for subscribers in self._jobs.values())

    def active_jobs(self) -> List[str]:
        return list(self._jobs.keys())

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "jobs": len(self._jobs), "connections": self.subscriber_count()}

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def publish(self, job_id: str, event: Union[GenerationProgress, Mapping[str, Any]]) -> int:
        """
        Queue an event for every connection subscribed to job_id.

        Args:
            event: a GenerationProgress (wrapped in the generation_progress
                envelope) or a ready-made message dict

        Returns:
            Number of connections the event was queued for
        """
        if self._closed:
            return 0

        self._stats["published"] += 1
        subscribers = self._jobs.get(job_id)
        if not subscribers:
            return 0

        message = event.to_message(job_id) if isinstance(event, GenerationProgress) else dict(event)

        queued = 0
        for subscriber in list(subscribers.values()):
            try:
                subscriber.outbox.put_nowait(message)
                queued += 1
            except asyncio.QueueFull:
                self._stats["dropped"] += 1
                logger.warning(f"[Broadcaster] Outbox full for a {job_id} subscriber, event dropped")
        return queued

    async def drain(self, job_id: Optional[str] = None) -> None:
        """Wait until queued events have been written (or their connections dropped)"""
        if job_id is not None:
            subscribers = list(self._jobs.get(job_id, {}).values())
        else:
            subscribers = [s for job in self._jobs.values() for s in job.values()]
        if subscribers:
            await asyncio.gather(*(s.outbox.join() for s in subscribers))

    async def close(self) -> None:
        """Cancel every sender task and clear the registry (server shutdown)"""
        self._closed = True
        senders = []
        for job_id in list(self._jobs.keys()):
            for connection in list(self._jobs.get(job_id, {}).keys()):
                subscriber = self._detach(job_id, connection)
                if subscriber and subscriber.sender and not subscriber.sender.done():
                    subscriber.sender.cancel()
                    senders.append(subscriber.sender)
        if senders:
            await asyncio.gather(*senders, return_exceptions=True)
        logger.info(f"[Broadcaster] Closed ({len(senders)} sender tasks cancelled)")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _pump(self, job_id: str, subscriber: _Subscriber) -> None:
        """Sender task: writes one subscriber's outbox in order"""
        while True:
            message = await subscriber.outbox.get()
            failed: Optional[Exception] = None
            try:
                await subscriber.connection.send_json(message)
            except Exception as e:
                failed = e
            finally:
                subscriber.outbox.task_done()

            if failed is not None:
                self._stats["failed_writes"] += 1
                logger.warning(
                    f"[Broadcaster] Write to {job_id} subscriber failed, removing connection: "
                    f"{type(failed).__name__}: {failed}"
                )
                self._detach(job_id, subscriber.connection)
                return

            self._stats["delivered"] += 1

    def _detach(self, job_id: str, connection: Any) -> Optional[_Subscriber]:
        """Remove a connection from the registry and release its pending events"""
        subscribers = self._jobs.get(job_id)
        if not subscribers or connection not in subscribers:
            return None

        subscriber = subscribers.pop(connection)
        if not subscribers:
            del self._jobs[job_id]

        while True:
            try:
                subscriber.outbox.get_nowait()
            except asyncio.QueueEmpty:
                break
            subscriber.outbox.task_done()
        return subscriber
