"""
In-process live update channel: subscribe to a topic, get pushed every event
published on it.

Topics are room ids (one event per inserted message) and per-user topics
(`user_topic`) used to announce rooms a user was added to. Each subscription
is an explicit handle; closing it is the only way to stop delivery, and
closing twice is a no-op.
"""
import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Set, Union

logger = logging.getLogger(__name__)

MESSAGE_INSERTED = "INSERT"
ROOM_ADDED = "ROOM_ADDED"

Callback = Callable[["LiveEvent"], Union[None, Awaitable[None]]]


def user_topic(user_id: uuid.UUID) -> tuple:
    return ("user", user_id)


@dataclass(frozen=True)
class LiveEvent:
    topic: Hashable
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)


class Subscription:
    """Handle returned by LiveUpdateChannel.subscribe."""

    def __init__(self, channel: "LiveUpdateChannel", topic: Hashable, callback: Callback) -> None:
        self.channel = channel
        self.topic = topic
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class LiveUpdateChannel:
    def __init__(self) -> None:
        self._subscriptions: Dict[Hashable, List[Subscription]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, topic: Hashable, callback: Callback) -> Subscription:
        subscription = Subscription(self, topic, callback)
        self._subscriptions.setdefault(topic, []).append(subscription)
        logger.debug("Subscribed to %s", topic)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.topic)
        if not subs:
            return
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            del self._subscriptions[subscription.topic]
        logger.debug("Unsubscribed from %s", subscription.topic)

    def subscriber_count(self, topic: Optional[Hashable] = None) -> int:
        if topic is not None:
            return len(self._subscriptions.get(topic, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def publish_nowait(self, topic: Hashable, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Deliver from sync code (e.g. right after a commit). Plain callbacks run
        inline; coroutine callbacks are scheduled on the running loop, or
        skipped when there is none. Returns the number of deliveries made or queued.
        """
        live_event = LiveEvent(topic, event, payload or {})
        delivered = 0
        for subscription in list(self._subscriptions.get(topic, ())):
            if subscription.closed:
                continue
            try:
                result = subscription.callback(live_event)
            except Exception:
                logger.exception("Live update callback failed for %s", topic)
                continue
            if inspect.isawaitable(result):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    # No running loop (e.g. plain sync code); drop the coroutine
                    if inspect.iscoroutine(result):
                        result.close()
                    continue
                task = loop.create_task(self._guard(result, topic))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            delivered += 1
        return delivered

    async def publish(self, topic: Hashable, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver and wait for every callback to finish."""
        live_event = LiveEvent(topic, event, payload or {})
        delivered = 0
        for subscription in list(self._subscriptions.get(topic, ())):
            if subscription.closed:
                continue
            try:
                result = subscription.callback(live_event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Live update callback failed for %s", topic)
                continue
            delivered += 1
        return delivered

    async def drain(self) -> None:
        """Wait for callbacks queued by publish_nowait, including ones they queue."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    @staticmethod
    async def _guard(awaitable: Awaitable[None], topic: Hashable) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Live update callback failed for %s", topic)


live_channel = LiveUpdateChannel()
