from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException

from .config import configure_logging
from .payouts import HttpPayoutService, PayoutService, run_daily_payouts
from .schemas import PayoutRunResult
from .scheduler import get_job_status, shutdown_scheduler, start_scheduler

configure_logging()


def get_payout_service() -> PayoutService:
    return HttpPayoutService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_scheduler(get_payout_service())
    yield
    shutdown_scheduler()


app = FastAPI(title="Museo Payout Worker", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/jobs")
def jobs():
    return get_job_status()


@app.post("/jobs/payouts/run", response_model=PayoutRunResult)
async def run_payouts(service: PayoutService = Depends(get_payout_service)):
    result = await run_daily_payouts(service)
    if result is None:
        raise HTTPException(status_code=502, detail="Payout run failed")
    return result
