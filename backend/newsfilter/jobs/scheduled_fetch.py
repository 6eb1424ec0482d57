"""
Scheduled fetch-all job.

Disabled by default. When enabled, APScheduler triggers a full fetch run
once a day at the configured UTC time; progress goes to the log.
"""
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from newsfilter.config import Settings
from newsfilter.errors import FetchRunInProgressError
from newsfilter.models.domain import FetchRunSummary
from newsfilter.services.events import LoggingEventSink
from newsfilter.services.orchestrator import FetchOrchestrator

logger = structlog.get_logger(__name__)

JOB_ID = "scheduled_fetch"


class ScheduledFetchJob:
    """Runs fetch-all from the scheduler; never raises into it."""

    def __init__(self, orchestrator: FetchOrchestrator):
        self.orchestrator = orchestrator

    async def run(self) -> FetchRunSummary | None:
        try:
            summary = await self.orchestrator.run_fetch_all(LoggingEventSink())
        except FetchRunInProgressError:
            logger.warning("Scheduled fetch skipped, a run is already in progress")
            return None
        except Exception as e:
            logger.error("Scheduled fetch failed", error=str(e), exc_info=True)
            return None

        logger.info(
            "Scheduled fetch completed",
            total=summary.total,
            failed=summary.failed,
            new_articles=summary.new_articles,
        )
        return summary

    def schedule(self, scheduler: AsyncIOScheduler, settings: Settings) -> None:
        scheduler.add_job(
            self.run,
            CronTrigger(hour=settings.fetch_cron_hour, minute=settings.fetch_cron_minute),
            id=JOB_ID,
            name="Scheduled fetch of all enabled sources",
            replace_existing=True,
        )
        logger.info(
            "Scheduled fetch registered",
            fetch_time=f"{settings.fetch_cron_hour:02d}:{settings.fetch_cron_minute:02d} UTC",
        )
