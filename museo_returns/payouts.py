"""
Daily payout run.

The payout processing itself happens on the Museo API server; this job only
triggers it, logs what came back and announces the summary.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

import httpx

from .config import HTTP_TIMEOUT, MUSEO_API_BASE
from .events import publish_event
from .returns_client import handle_json
from .schemas import PayoutRunResult

logger = logging.getLogger(__name__)

BANNER = "=" * 43


class PayoutService(Protocol):
    async def process_ready_payouts(self) -> PayoutRunResult: ...


class HttpPayoutService:
    """Triggers POST /payouts/admin/process with an admin session."""

    def __init__(
        self,
        base_url: str = MUSEO_API_BASE,
        cookies: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cookies = cookies
        self.transport = transport

    async def process_ready_payouts(self) -> PayoutRunResult:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            cookies=self.cookies,
            timeout=HTTP_TIMEOUT,
            transport=self.transport,
        ) as client:
            r = await client.post("/payouts/admin/process")
        body = handle_json(r)
        return PayoutRunResult.model_validate(body.get("data") or {})


async def run_daily_payouts(service: PayoutService, publish: bool = True) -> Optional[PayoutRunResult]:
    """
    One scheduled run. Failures are logged, never raised: the next run is the
    retry.
    """
    logger.info(BANNER)
    logger.info("Starting Daily Payout Processing")
    logger.info("Time: %s", datetime.now(timezone.utc).isoformat())
    logger.info(BANNER)

    try:
        result = await service.process_ready_payouts()

        logger.info("Processed %d payouts", result.processed)
        if result.errors:
            logger.warning("Errors encountered:")
            for error in result.errors:
                logger.warning("   - %s", error)
        logger.info(BANNER)
    except Exception:
        logger.exception("Critical error in payout cron")
        return None

    if publish:
        try:
            await publish_event("payout.processed", result.model_dump())
        except Exception:
            logger.warning("Could not publish payout summary", exc_info=True)
    return result
