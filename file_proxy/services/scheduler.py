"""Scheduler service for periodic signature cache maintenance."""
import logging
from typing import Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

from file_proxy.services.signature_cache import BaseSignatureCache

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_signature_cache"


class SchedulerService:
    """Runs the signature cache sweep on a fixed interval."""

    def __init__(self, signature_cache: BaseSignatureCache, purge_interval_seconds: int = 60):
        self.signature_cache = signature_cache
        self.purge_interval_seconds = purge_interval_seconds
        self.scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def _build_scheduler(self) -> BackgroundScheduler:
        return BackgroundScheduler(
            executors={'default': ThreadPoolExecutor(1)},
            job_defaults={'coalesce': True, 'max_instances': 1}
        )

    def start(self):
        """Start the scheduler and register the purge job."""
        if self.running:
            return
        # A shut down scheduler's executor cannot be reused
        self.scheduler = self._build_scheduler()
        self.scheduler.add_job(
            purge_signature_cache_job_func,
            'interval',
            seconds=self.purge_interval_seconds,
            id=PURGE_JOB_ID,
            args=[self.signature_cache],
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(
            f"Scheduler started, purging signature cache every {self.purge_interval_seconds}s"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def trigger_purge(self) -> int:
        """Run the purge job immediately."""
        return purge_signature_cache_job_func(self.signature_cache)


def purge_signature_cache_job_func(signature_cache: BaseSignatureCache) -> int:
    """Remove stale signatures; errors are logged so the job keeps its schedule."""
    try:
        removed = signature_cache.purge_expired()
    except Exception as e:
        logger.error(f"Error purging signature cache: {str(e)}")
        return 0
    if removed:
        logger.info(f"Purged {removed} expired signatures")
    return removed
