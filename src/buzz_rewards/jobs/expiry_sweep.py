"""Interval job expiring unredeemed coupons and abandoned mileage spends."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..services.expiry_service import run_expiry_sweep

logger = logging.getLogger(__name__)

JOB_ID = "expiry_sweep"

_scheduler = AsyncIOScheduler(timezone="UTC")


def run_sweep_once(
    session_factory: Callable[[], Session] = SessionLocal,
    current_time: datetime | None = None,
) -> dict[str, int]:
    """Run one sweep in its own transaction and return the expired counts."""

    session = session_factory()
    try:
        summary = run_expiry_sweep(session, current_time=current_time or datetime.now(timezone.utc))
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("expiry sweep failed")
        raise
    finally:
        session.close()

    if any(summary.values()):
        logger.info(
            "expiry sweep: coupons=%s mileage_requests=%s",
            summary["coupons_expired"],
            summary["mileage_requests_expired"],
        )
    return summary


def register_scheduler(app: FastAPI) -> None:
    """Schedule the sweep every ``coupon_sweep_interval_minutes`` while the app runs."""

    @app.on_event("startup")
    async def start_expiry_sweep() -> None:
        if _scheduler.get_job(JOB_ID) is None:
            _scheduler.add_job(
                run_sweep_once,
                "interval",
                minutes=get_settings().coupon_sweep_interval_minutes,
                id=JOB_ID,
                coalesce=True,
                max_instances=1,
            )
        if not _scheduler.running:
            _scheduler.start()

    @app.on_event("shutdown")
    async def stop_expiry_sweep() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
