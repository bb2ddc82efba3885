"""
Background Jobs

Periodic loops started with the application lifespan:
- payment_reset: monthly pending fee/salary entries
- notification_dispatch: releases scheduled notifications
- session_check: closes finished section sessions, reopens current ones

Each run gets its own database session. A failing run is logged and the
loop carries on with the next interval.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import session_scope
from app.core.logging_config import logger
from app.models.base import utcnow
from app.services.notification_service import dispatch_due_notifications
from app.services.payment_service import apply_monthly_reset
from app.services.section_service import check_expired_sessions


JobFunc = Callable[[AsyncSession], Awaitable[Any]]


class PeriodicJob:
    """Runs `func` every `interval_seconds` in a background task"""

    def __init__(self, name: str, func: JobFunc, interval_seconds: float):
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats: Dict[str, Any] = {
            "runs": 0,
            "failures": 0,
            "last_run": None,
            "last_result": None,
            "last_error": None,
        }

    async def start(self):
        """Start the background loop"""
        if self.running:
            logger.warning(f"[Scheduler] Job {self.name} already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[Scheduler] Started {self.name} - interval {self.interval_seconds}s")

    async def stop(self):
        """Stop the loop and wait for the task to finish"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"[Scheduler] Stopped {self.name}")

    async def run_once(self) -> Any:
        """Run the job a single time in a fresh session"""
        started = utcnow()
        self.stats["last_run"] = started.isoformat()
        try:
            async with session_scope() as db:
                result = await self.func(db)
        except Exception as e:
            self.stats["failures"] += 1
            self.stats["last_error"] = str(e)
            logger.log_job_event(self.name, "failed", error=str(e))
            raise

        self.stats["runs"] += 1
        self.stats["last_result"] = result
        elapsed_ms = (utcnow() - started).total_seconds() * 1000
        logger.log_performance(f"job:{self.name}", elapsed_ms)
        return result

    async def _loop(self):
        """Main loop"""
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[Scheduler] Error in {self.name}: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)


async def _payment_reset(db: AsyncSession):
    return await apply_monthly_reset(db)


async def _notification_dispatch(db: AsyncSession):
    return await dispatch_due_notifications(db)


async def _session_check(db: AsyncSession):
    return await check_expired_sessions(db)


def build_jobs() -> List[PeriodicJob]:
    return [
        PeriodicJob("payment_reset", _payment_reset, settings.PAYMENT_RESET_INTERVAL_SECONDS),
        PeriodicJob("notification_dispatch", _notification_dispatch, settings.NOTIFICATION_DISPATCH_INTERVAL_SECONDS),
        PeriodicJob("session_check", _session_check, settings.SESSION_CHECK_INTERVAL_SECONDS),
    ]


class Scheduler:
    """Owns the periodic jobs for the lifetime of the app"""

    def __init__(self, jobs: Optional[List[PeriodicJob]] = None):
        self.jobs = jobs if jobs is not None else build_jobs()
        self.started_at: Optional[datetime] = None

    async def start(self):
        for job in self.jobs:
            await job.start()
        self.started_at = utcnow()

    async def stop(self):
        for job in self.jobs:
            await job.stop()
        self.started_at = None

    def get_job(self, name: str) -> Optional[PeriodicJob]:
        return next((job for job in self.jobs if job.name == name), None)

    def status(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "jobs": {job.name: {"running": job.running, **job.stats} for job in self.jobs},
        }


scheduler = Scheduler()
