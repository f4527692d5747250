"""
Background sweeps for settlement and group completion

Settlement is normally triggered when fixtures finish. These jobs catch
anything a missed trigger or a crashed run left behind, using APScheduler.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from groupscore import db
from groupscore.services.settlement_service import (
    close_completed_groups,
    find_pending_fixture_ids,
    lookback_start,
    settle_predictions_for_fixtures,
)
from groupscore.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)


def _empty_stats():
    return {
        "last_run": None,
        "total_runs": 0,
        "successful_runs": 0,
        "failed_runs": 0,
        "last_error": None,
        "predictions_settled": 0,
        "groups_ended": 0,
    }


class SchedulerService:
    """Manages the periodic settlement and group completion sweeps"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.run_stats = _empty_stats()

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""
        settle_minutes = self.app.config.get("SETTLEMENT_SWEEP_MINUTES", 5)
        completion_minutes = self.app.config.get("GROUP_COMPLETION_SWEEP_MINUTES", 30)

        self.scheduler.add_job(
            func=self._settlement_sweep,
            trigger=IntervalTrigger(minutes=settle_minutes),
            id="settlement_sweep",
            name="Settle Finished Fixtures",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        self.scheduler.add_job(
            func=self._group_completion_sweep,
            trigger=IntervalTrigger(minutes=completion_minutes),
            id="group_completion_sweep",
            name="Close Completed Groups",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        logger.info("Core scheduled jobs added")

    def _settlement_sweep(self):
        """Settle finished fixtures that still have unsettled predictions"""
        with self.app.app_context():
            try:
                hours = self.app.config.get("SETTLEMENT_SWEEP_LOOKBACK_HOURS", 72)
                fixture_ids = find_pending_fixture_ids(since=lookback_start(hours))
                if not fixture_ids:
                    return  # Nothing left behind

                logger.info(f"Settlement sweep found {len(fixture_ids)} pending fixtures")
                with PerformanceMonitor("settlement sweep", log_threshold=1.0):
                    result = settle_predictions_for_fixtures(fixture_ids)
                self._update_stats(
                    True, settled=result.settled, groups_ended=result.groups_ended
                )

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error in settlement sweep: {e}", exc_info=True)

    def _group_completion_sweep(self):
        """End active groups whose fixtures are all terminal"""
        with self.app.app_context():
            try:
                ended = close_completed_groups()
                if ended:
                    logger.info(f"Group completion sweep ended {ended} groups")
                self._update_stats(True, groups_ended=ended)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error in group completion sweep: {e}", exc_info=True)

    def _update_stats(self, success, settled=0, groups_ended=0):
        """Update run statistics"""
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["predictions_settled"] += settled
            self.run_stats["groups_ended"] += groups_ended
            self.run_stats["last_error"] = None
        else:
            self.run_stats["failed_runs"] += 1

    def reset_stats(self):
        self.run_stats = _empty_stats()

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.run_stats}

    def force_run(self, job="settlement"):
        """Manually trigger a sweep"""
        try:
            if job == "settlement":
                self._settlement_sweep()
            elif job == "completion":
                self._group_completion_sweep()
            else:
                raise ValueError(f"Unknown job: {job}")

            return True, f"Manual {job} sweep completed"

        except Exception as e:
            return False, f"Manual sweep failed: {e}"


# Global scheduler instance
scheduler_service = SchedulerService()
