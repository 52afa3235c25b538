import asyncio
import json
import logging
from typing import Optional

import aio_pika

from .config import EXCHANGE_NAME, RABBIT_URL
from .return_details import ReturnDetailsController

logger = logging.getLogger(__name__)

RETURN_EVENTS = "return.*"
QUEUE_NAME = "museo_return_events"


async def publish_event(routing_key: str, payload: dict, rabbit_url: Optional[str] = RABBIT_URL) -> bool:
    """
    Optional RabbitMQ publish. If no broker URL is configured, it will skip.
    """
    if not rabbit_url:
        logger.info("RABBIT_URL not set, skipping publish of %s", routing_key)
        return False

    conn = await aio_pika.connect_robust(rabbit_url)
    try:
        ch = await conn.channel()
        ex = await ch.declare_exchange(EXCHANGE_NAME, aio_pika.ExchangeType.TOPIC)
        msg = aio_pika.Message(body=json.dumps(payload, default=str).encode())
        await ex.publish(msg, routing_key=routing_key)
    finally:
        await conn.close()
    return True


class ReturnEventsListener:
    """
    Invalidates open return details views when the server announces a change.
    Each matching view re-fetches; nothing is patched from the event body.

    A client session owns one listener: it registers the views it opens and
    calls start() once. The payout worker has no views and does not run one.
    """

    def __init__(self):
        self._views: dict[str, list[ReturnDetailsController]] = {}
        self._task: Optional[asyncio.Task] = None

    def start(self, rabbit_url: Optional[str] = RABBIT_URL) -> Optional[asyncio.Task]:
        """Consume return events in the background. Skipped when no broker is configured."""
        if not rabbit_url:
            logger.info("RABBIT_URL not set, return events listener not started")
            return None
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(rabbit_url))
        return self._task

    async def stop(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Return events listener stopped")

    def register(self, view: ReturnDetailsController):
        self._views.setdefault(view.return_id, []).append(view)

    def unregister(self, view: ReturnDetailsController):
        views = self._views.get(view.return_id, [])
        if view in views:
            views.remove(view)
        if not views:
            self._views.pop(view.return_id, None)

    async def handle(self, routing_key: str, payload: dict) -> int:
        return_id = payload.get("return_id") or payload.get("returnId")
        views = list(self._views.get(str(return_id), [])) if return_id else []
        if not views:
            logger.debug("No open view for %s (%s)", return_id, routing_key)
            return 0

        logger.info("%s for return %s, refreshing %d view(s)", routing_key, return_id, len(views))
        await asyncio.gather(*(v.refresh() for v in views))
        return len(views)

    async def run(self, rabbit_url: Optional[str] = RABBIT_URL):
        if not rabbit_url:
            raise RuntimeError("RABBIT_URL is not set")

        conn = await aio_pika.connect_robust(rabbit_url)
        async with conn:
            ch = await conn.channel()
            ex = await ch.declare_exchange(EXCHANGE_NAME, aio_pika.ExchangeType.TOPIC)
            queue = await ch.declare_queue(QUEUE_NAME, durable=True)
            await queue.bind(ex, routing_key=RETURN_EVENTS)

            logger.info("Listening for return events (routing key: %r)", RETURN_EVENTS)

            async with queue.iterator() as q:
                async for msg in q:
                    async with msg.process():
                        try:
                            data = json.loads(msg.body)
                        except ValueError:
                            logger.warning("Dropping malformed event on %s", msg.routing_key)
                            continue
                        await self.handle(msg.routing_key, data)
