import logging
from typing import List, Dict, Any
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.triggers.interval import IntervalTrigger

from ..core.config import settings
from ..database import SessionLocal
from .reservation_service import reservation_service

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for background housekeeping jobs."""

    def __init__(self):
        self.scheduler = None
        self._initialize_scheduler()

    def _initialize_scheduler(self):
        """Initialize the APScheduler instance."""
        jobstores = {
            'default': MemoryJobStore(),
        }
        executors = {
            'default': ThreadPoolExecutor(4),
        }
        job_defaults = {
            'coalesce': True,
            'max_instances': 1
        }

        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults
        )
        logger.info("Scheduler service initialized")

    def start(self):
        """Start the scheduler."""
        if self.scheduler and not self.scheduler.running:
            self.scheduler.start()
            self._setup_recurring_jobs()
            logger.info("Scheduler service started")

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler service stopped")

    def _setup_recurring_jobs(self):
        """Set up recurring housekeeping jobs."""
        self.scheduler.add_job(
            func=self.purge_expired_reservations,
            trigger=IntervalTrigger(minutes=settings.RESERVATION_SWEEP_MINUTES),
            id='purge_expired_reservations',
            name='Purge Expired Reservations',
            replace_existing=True
        )
        logger.info("Recurring housekeeping jobs scheduled")

    def purge_expired_reservations(self) -> int:
        """Delete reservation rows past their expiry. Lookups already ignore them."""
        db = SessionLocal()
        try:
            purged = reservation_service.purge_expired(db)
            if purged:
                logger.info(f"Purged {purged} expired reservation(s)")
            return purged
        except Exception as e:
            db.rollback()
            logger.error(f"Error purging expired reservations: {e}")
            return 0
        finally:
            db.close()

    def get_scheduled_jobs(self) -> List[Dict[str, Any]]:
        """Get list of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            })
        return jobs


scheduler_service = SchedulerService()
