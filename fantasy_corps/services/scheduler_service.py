"""
Daily Scoring Scheduler Service

Runs the daily scoring pipeline in the background using APScheduler. Once a
day, shortly after midnight in the scoring timezone, yesterday's date is mapped
to the active season's scored day, which is then scored and, at week
boundaries, has its league matchups resolved.
"""

import atexit
import logging
import threading
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from fantasy_corps import db
from fantasy_corps.errors import ScoringError
from fantasy_corps.models import Season
from fantasy_corps.services.daily_processor import DailyScoreProcessor
from fantasy_corps.services.matchup_resolver import WeeklyMatchupResolver
from fantasy_corps.utils.timezone_utils import get_scoring_date

logger = logging.getLogger(__name__)


def run_scoring_day(day, resolve=True):
    """
    Score one day then resolve its week's matchups.

    Must run inside an application context. Returns a dict with both results.
    """
    processor = DailyScoreProcessor.from_config()
    result = {"processing": processor.process_day(day).to_dict(), "resolution": None}
    if resolve:
        resolver = WeeklyMatchupResolver.from_config()
        result["resolution"] = resolver.resolve_day(day).to_dict()
    return result


class SchedulerService:
    """Manages the background schedule for the daily scoring run"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self._run_lock = threading.Lock()
        self.run_stats = {
            "last_run": None,
            "last_scored_day": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "skipped_runs": 0,
            "last_error": None,
            "last_result": None,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(
            daemon=True, timezone=app.config.get("SCORING_TIMEZONE", "America/New_York")
        )

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
            # Clear any existing jobs
            self.scheduler.remove_all_jobs()

            # Add scheduled jobs
            self._add_core_jobs()

            # Start scheduler
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
        run_hour = self.app.config.get("SCORING_RUN_HOUR", 2)

        self.scheduler.add_job(
            func=self._daily_scoring,
            trigger=CronTrigger(hour=run_hour, minute=0),
            id="daily_scoring",
            name="Daily Score Processing",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info(f"Daily scoring job scheduled for {run_hour:02d}:00")

    def _daily_scoring(self):
        """Score yesterday's season day"""
        with self.app.app_context():
            self.force_run()

    def run_day(self, day, resolve=True):
        """Run the pipeline for a day, recording stats. Used by the job and force runs."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning(f"A scoring run is already in progress; day {day} not started")
            return None

        try:
            logger.info(f"Running daily scoring for day {day}...")
            result = run_scoring_day(day, resolve=resolve)
            skipped = result["processing"]["skipped"]
            self._update_stats(success=True, skipped=skipped, day=day, result=result)
            return result

        except ScoringError as e:
            db.session.rollback()
            self._update_stats(success=False, day=day)
            self.run_stats["last_error"] = str(e)
            logger.error(f"Error in daily scoring for day {day}: {e}", exc_info=True)
            return None

        except Exception as e:
            db.session.rollback()
            self._update_stats(success=False, day=day)
            self.run_stats["last_error"] = str(e)
            logger.error(f"Unexpected error in daily scoring for day {day}: {e}", exc_info=True)
            return None

        finally:
            self._run_lock.release()

    def _update_stats(self, success=True, skipped=False, day=None, result=None):
        """Update run statistics"""
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1

        if skipped:
            self.run_stats["skipped_runs"] += 1
        elif success:
            self.run_stats["successful_runs"] += 1
        else:
            self.run_stats["failed_runs"] += 1

        if day is not None:
            self.run_stats["last_scored_day"] = day
        if result is not None:
            self.run_stats["last_result"] = result

    def get_status(self):
        """Get scheduler status and statistics"""
        jobs = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": (
                            job.next_run_time.isoformat() if job.next_run_time else None
                        ),
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.run_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_run(self, day=None, resolve=True):
        """Run yesterday's scored day now, or ``day`` when given"""
        if day is None:
            season = Season.get_current_season()
            if not season:
                logger.info("No active season found. Nothing to run.")
                self._update_stats(skipped=True)
                return None
            day = season.scored_day_for(get_scoring_date())

        logger.info(f"Triggering scoring run for day {day}")
        return self.run_day(day, resolve=resolve)


# Global scheduler instance
scheduler_service = SchedulerService()
