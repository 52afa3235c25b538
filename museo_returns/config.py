import logging
import os
import sys

MUSEO_API_BASE = os.getenv("MUSEO_API_BASE", "http://localhost:3000/api")  # local dev default

# unset means requests never time out
_timeout = os.getenv("MUSEO_HTTP_TIMEOUT")
HTTP_TIMEOUT = float(_timeout) if _timeout else None

RABBIT_URL = os.getenv("RABBIT_URL")
EXCHANGE_NAME = "events_topic"

LOG_LEVEL = os.getenv("MUSEO_LOG_LEVEL", "INFO")

# Daily at 9:00 AM Philippine time
PAYOUT_CRON = "0 9 * * *"
PAYOUT_TIMEZONE = "Asia/Manila"


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
