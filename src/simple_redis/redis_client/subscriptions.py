"""Subscription Router: many local listeners per Redis channel."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis

from simple_redis.models import OperationName
from simple_redis.observability import bind_prefix, get_logger

from .counters import OperationCounter
from .exceptions import StoreConnectionError, StoreError, SubscriptionUnavailableError
from .prefix import PrefixCodec
from .protocols import KeyValueStore, PubSubChannel

logger = get_logger(__name__)

# Called with the message payload; may be a coroutine function
Listener = Callable[[str], Any]


class SubscriptionRouter:
    """Fans inbound messages out to the listeners of each channel.

    Only the first listener of a channel issues a network SUBSCRIBE; later
    listeners are appended locally. Channels are stored by physical
    (prefixed) name.

    Listener failures abort delivery of that message to the listeners
    registered after the failing one. The reader logs the failure with its
    traceback and carries on with the next message.
    """

    def __init__(
        self,
        codec: PrefixCodec,
        counter: OperationCounter,
        poll_timeout: float = 1.0,
    ):
        self._codec = codec
        self._counter = counter
        self._poll_timeout = poll_timeout
        self._subscriptions: dict[str, list[Listener]] = {}
        self._pubsub: PubSubChannel | None = None
        self._reader: asyncio.Task[None] | None = None

    @property
    def available(self) -> bool:
        return self._pubsub is not None

    @property
    def channels(self) -> list[str]:
        """Physical names of channels with at least one listener."""
        return list(self._subscriptions)

    def listeners(self, channel: str) -> list[Listener]:
        """Listeners registered for a logical channel, in firing order."""
        return list(self._subscriptions.get(self._codec.encode(channel), []))

    def attach(self, connection: KeyValueStore) -> None:
        """Bind the router to a dedicated subscription connection."""
        self._pubsub = connection.pubsub()

    async def subscribe(self, channel: str, listener: Listener) -> None:
        """Register ``listener`` on ``channel``.

        Raises:
            SubscriptionUnavailableError: No subscription connection
            StoreError: Redis rejected the SUBSCRIBE
        """
        pubsub = self._require_pubsub()
        physical = self._codec.encode(channel)

        if physical in self._subscriptions:
            self._subscriptions[physical].append(listener)
            return

        self._subscriptions[physical] = [listener]
        with bind_prefix(self._codec.prefix):
            try:
                await pubsub.subscribe(physical)
            except redis.RedisError as e:
                self._drop_listener(physical, listener)
                logger.error("Subscribe failed", channel=physical, error=str(e))
                raise StoreError("subscribe", str(e)) from e

            self._counter.increment(OperationName.SUBSCRIBE)
            self._ensure_reader()
            logger.info("Subscribed to channel", channel=physical)

    async def unsubscribe(self, channel: str) -> None:
        """Drop every listener of ``channel`` and UNSUBSCRIBE.

        The network call is issued even when nothing is registered locally.
        """
        pubsub = self._require_pubsub()
        physical = self._codec.encode(channel)

        with bind_prefix(self._codec.prefix):
            try:
                await pubsub.unsubscribe(physical)
            except redis.RedisError as e:
                logger.error("Unsubscribe failed", channel=physical, error=str(e))
                raise StoreError("unsubscribe", str(e)) from e

            dropped = self._subscriptions.pop(physical, [])
            self._counter.increment(OperationName.UNSUBSCRIBE)
            logger.info(
                "Unsubscribed from channel", channel=physical, listeners_dropped=len(dropped)
            )

    async def dispatch(self, channel: str, payload: str) -> int:
        """Deliver one message to the listeners of a physical channel.

        Returns:
            Number of listeners invoked
        """
        listeners = list(self._subscriptions.get(channel, []))
        for listener in listeners:
            result = listener(payload)
            if inspect.isawaitable(result):
                await result
        return len(listeners)

    async def close(self) -> None:
        """Stop the reader and release the subscription connection."""
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None

        pubsub = self._pubsub
        self._pubsub = None
        self._subscriptions.clear()

        if pubsub is not None:
            try:
                await pubsub.aclose()
            except (redis.RedisError, OSError) as e:
                raise StoreConnectionError(f"Failed to close subscription channel: {e}") from e

    def _require_pubsub(self) -> PubSubChannel:
        if self._pubsub is None:
            raise SubscriptionUnavailableError(
                "Pub/sub is not enabled. Connect with enable_pubsub=True."
            )
        return self._pubsub

    def _drop_listener(self, physical: str, listener: Listener) -> None:
        """Remove one registration, and the channel once it has none left."""
        listeners = self._subscriptions.get(physical)
        if listeners is None:
            return
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            del self._subscriptions[physical]

    def _ensure_reader(self) -> None:
        if self._reader is None or self._reader.done():
            self._reader = asyncio.create_task(self._read_messages())

    async def _read_messages(self) -> None:
        """Poll the subscription connection until cancelled."""
        logger.debug("Subscription reader started")

        while self._pubsub is not None:
            with bind_prefix(self._codec.prefix):
                try:
                    message = await self._pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=self._poll_timeout,
                    )
                except Exception:
                    logger.exception("PubSub read failed")
                    await asyncio.sleep(self._poll_timeout)
                    continue

                if message is None or message.get("type") != "message":
                    await asyncio.sleep(0.01)
                    continue

                channel = message["channel"]
                try:
                    await self.dispatch(channel, message["data"])
                except Exception:
                    logger.exception("Subscription listener failed", channel=channel)
