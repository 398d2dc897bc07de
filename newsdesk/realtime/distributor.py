"""
In-process pub-sub for live article updates.

Each subscriber owns a bounded queue drained by its own task, so a subscriber
sees articles in publish order and a slow or failing callback never holds up
the others. A subscriber that falls ``max_pending`` batches behind is dropped.
"""
import asyncio
import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from newsdesk.utils.constants import ProcessingConstants
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Article

FeedCallback = Callable[[List[Article]], Union[None, Awaitable[None]]]
OverflowCallback = Callable[[], None]


@dataclass
class Subscription:
    id: str
    callback: FeedCallback
    queue: asyncio.Queue
    on_overflow: Optional[OverflowCallback] = None
    task: Optional[asyncio.Task] = None


class Distributor:
    """Owns the real-time channel fed by the store's change listeners"""

    def __init__(self, max_pending: int = ProcessingConstants.SUBSCRIBER_QUEUE_SIZE):
        self.max_pending = max_pending
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: FeedCallback, on_overflow: Optional[OverflowCallback] = None) -> str:
        """Register a sync or async callback; must be called with a running loop.

        ``on_overflow`` runs once if the subscriber is dropped for falling behind.
        """
        subscription = Subscription(
            id=uuid.uuid4().hex,
            callback=callback,
            queue=asyncio.Queue(maxsize=self.max_pending),
            on_overflow=on_overflow,
        )
        subscription.task = asyncio.get_running_loop().create_task(self._drain(subscription))
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"Subscriber {subscription.id} connected ({self.subscriber_count} total)")
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> bool:
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False
        if subscription.task is not None:
            subscription.task.cancel()
        logger.debug(f"Subscriber {subscription_id} disconnected")
        return True

    def publish(self, articles: Iterable[Article]) -> int:
        """Queue ``articles`` for every subscriber; returns how many were notified"""
        batch = list(articles)
        if not batch:
            return 0

        notified = 0
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.queue.put_nowait(batch)
            except asyncio.QueueFull:
                self._drop(subscription)
                continue
            notified += 1
        return notified

    async def join(self) -> None:
        """Wait until every queued batch has been delivered"""
        for subscription in list(self._subscriptions.values()):
            await subscription.queue.join()

    async def close(self) -> None:
        tasks = [s.task for s in self._subscriptions.values() if s.task is not None]
        for subscription_id in list(self._subscriptions):
            self.unsubscribe(subscription_id)
        await asyncio.gather(*tasks, return_exceptions=True)

    def _drop(self, subscription: Subscription) -> None:
        logger.warning(
            f"Subscriber {subscription.id} has {self.max_pending} undelivered batches, disconnecting it"
        )
        self.unsubscribe(subscription.id)
        if subscription.on_overflow is None:
            return
        try:
            subscription.on_overflow()
        except Exception as e:
            logger.exception(f"Overflow handler for subscriber {subscription.id} failed: {e}")

    async def _drain(self, subscription: Subscription) -> None:
        while True:
            batch = await subscription.queue.get()
            try:
                result: Any = subscription.callback(batch)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Subscriber {subscription.id} callback failed: {e}")
            finally:
                subscription.queue.task_done()
