"""
Chat polling and search debouncing.

The server has no push channel, so an open conversation is refreshed on
a fixed interval. Both helpers run on the caller's event loop and own at
most one pending task at a time.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .api import AFSPClient, APIError, NetworkError

logger = logging.getLogger(__name__)


POLL_INTERVAL_SECONDS = 3.0
SEARCH_DEBOUNCE_SECONDS = 0.3

MessagesCallback = Callable[[str, list[dict[str, Any]]], None]


class MessagePoller:
    """
    Refetch one channel's messages every interval while it is open.

    Opening another channel cancels the previous timer. Fetch failures are
    logged and the next tick tries again; a poll never raises into the
    caller.
    """

    def __init__(
        self,
        client: AFSPClient,
        on_messages: MessagesCallback,
        interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.client = client
        self.on_messages = on_messages
        self.interval = interval
        self.channel_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def open(self, channel_id: str) -> None:
        """Start polling channel_id, replacing any channel being polled."""
        self.stop()
        self.channel_id = channel_id
        self._task = asyncio.create_task(self._run(channel_id))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.channel_id = None

    async def poll_once(self, channel_id: str) -> Optional[list[dict[str, Any]]]:
        try:
            body = await self.client.list_messages(channel_id)
        except (APIError, NetworkError) as e:
            logger.warning(
                "Message poll failed",
                extra={"channel_id": channel_id, "error": str(e)}
            )
            return None

        messages = body.get("messages", [])
        try:
            self.on_messages(channel_id, messages)
        except Exception:
            # A failing handler must not end the polling task
            logger.exception("Message handler failed", extra={"channel_id": channel_id})
        return messages

    async def _run(self, channel_id: str) -> None:
        while True:
            await self.poll_once(channel_id)
            await asyncio.sleep(self.interval)


class Debouncer:
    """
    Delay a call until input has been quiet for `delay` seconds.

    Each call() cancels the pending one, so typing "lift" issues one search
    for "lift" instead of four.
    """

    def __init__(self, delay: float = SEARCH_DEBOUNCE_SECONDS):
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None

    def call(self, func: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        self.cancel()
        self._pending = asyncio.create_task(self._delayed(func, *args))
        return self._pending

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _delayed(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        await asyncio.sleep(self.delay)
        return await func(*args)
