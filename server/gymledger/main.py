import logging

import gymledger.models  # noqa: F401
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gymledger import __version__
from gymledger.core.config import settings
from gymledger.core.db import session_scope
from gymledger.core.migrations import run_migrations
from gymledger.routers import commands as commands_router
from gymledger.routers import counters as counters_router
from gymledger.routers import deleted_members as deleted_members_router
from gymledger.routers import invoices as invoices_router
from gymledger.routers import members as members_router
from gymledger.routers import receipts as receipts_router
from gymledger.routers import subscriptions as subscriptions_router
from gymledger.services import subscriptions as subscriptions_service

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="GymLedger API", version=__version__)
scheduler = BackgroundScheduler(timezone="UTC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(members_router.router)
app.include_router(receipts_router.router)
app.include_router(deleted_members_router.router)
app.include_router(subscriptions_router.router)
app.include_router(invoices_router.router)
app.include_router(counters_router.router)
app.include_router(commands_router.router)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.ENVIRONMENT}


def _run_subscription_sweep() -> None:
    with session_scope() as session:
        result = subscriptions_service.run_subscription_sweep(session)
        if result.total:
            logger.info("subscription_sweep_job", extra=result.counts())


@app.on_event("startup")
def upgrade_schema() -> None:
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()


@app.on_event("startup")
def start_scheduled_jobs() -> None:
    if not settings.SCHEDULER_ENABLED:
        return
    if not scheduler.running:
        scheduler.start()
    scheduler.add_job(
        _run_subscription_sweep,
        trigger="interval",
        hours=settings.SUBSCRIPTION_SWEEP_INTERVAL_HOURS,
        id="subscription_sweep",
        replace_existing=True,
    )
    # First pass right away so statuses are current before the first interval.
    scheduler.add_job(_run_subscription_sweep, id="subscription_sweep_startup", replace_existing=True)


@app.on_event("shutdown")
def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
