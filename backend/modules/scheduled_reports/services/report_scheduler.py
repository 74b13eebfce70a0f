# backend/modules/scheduled_reports/services/report_scheduler.py

import logging
from datetime import datetime
from typing import Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from core.database import SessionLocal
from modules.exports.services.export_service import ExportService

from ..constants import DUE_SWEEP_INTERVAL_SECONDS
from ..models.schedule_models import ScheduledReport, ScheduleStatus
from .cron_service import to_scheduler_crontab
from .schedule_service import ScheduledReportService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "scheduled_reports_due_sweep"
EXPORT_CLEANUP_JOB_ID = "export_cleanup"
BACKGROUND_JOB_IDS = {SWEEP_JOB_ID, EXPORT_CLEANUP_JOB_ID}


class ReportScheduler:
    """Runs scheduled reports in the background.

    One cron job per active schedule plus a once-a-minute sweep that picks
    up schedules whose ``next_run`` passed while the process was down.
    Both paths only execute a schedule that is actually due, so a cron
    fire and a sweep in the same minute run it once.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._running_schedules: Set[str] = set()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    @staticmethod
    def job_id(schedule_id: str) -> str:
        return f"scheduled_report_{schedule_id}"

    def start(self) -> None:
        if self.running:
            return
        self.scheduler.start()
        self.scheduler.add_job(
            self._run_due_schedules,
            trigger=IntervalTrigger(seconds=DUE_SWEEP_INTERVAL_SECONDS),
            id=SWEEP_JOB_ID,
            name="Scheduled reports due sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._cleanup_exports,
            trigger=IntervalTrigger(hours=24),
            id=EXPORT_CLEANUP_JOB_ID,
            name="Expired export cleanup",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        db = SessionLocal()
        try:
            schedules = (
                db.query(ScheduledReport)
                .filter(ScheduledReport.status == ScheduleStatus.ACTIVE.value)
                .all()
            )
            for schedule in schedules:
                self.add_schedule(schedule)
            logger.info(f"Report scheduler started with {len(schedules)} active schedules")
        finally:
            db.close()

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Report scheduler stopped")

    def add_schedule(self, schedule: ScheduledReport) -> None:
        if not self.running:
            return
        self.remove_schedule(schedule.id)
        try:
            trigger = CronTrigger.from_crontab(to_scheduler_crontab(schedule.cron_expression), timezone="UTC")
        except ValueError as e:
            logger.error(f"Invalid cron expression for schedule {schedule.id}: {e}")
            return

        self.scheduler.add_job(
            self._execute_schedule,
            trigger=trigger,
            id=self.job_id(schedule.id),
            args=[schedule.id],
            name=f"Scheduled report {schedule.name}",
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
            misfire_grace_time=300,
        )
        logger.info(f"Started scheduled report: {schedule.name} ({schedule.id})")

    def remove_schedule(self, schedule_id: str) -> None:
        if not self.running:
            return
        job_id = self.job_id(schedule_id)
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)
            logger.info(f"Stopped scheduled report: {schedule_id}")

    def active_job_count(self) -> int:
        if not self.running:
            return 0
        return len([job for job in self.scheduler.get_jobs() if job.id not in BACKGROUND_JOB_IDS])

    async def _execute_schedule(self, schedule_id: str) -> None:
        if schedule_id in self._running_schedules:
            logger.info(f"Scheduled report {schedule_id} already running, skipping")
            return

        self._running_schedules.add(schedule_id)
        db = SessionLocal()
        try:
            schedule = db.query(ScheduledReport).filter(ScheduledReport.id == schedule_id).first()
            if schedule is None or schedule.status != ScheduleStatus.ACTIVE.value:
                logger.warning(f"Schedule {schedule_id} missing or inactive, skipping")
                return
            now = datetime.utcnow()
            if schedule.next_run > now:
                return
            ScheduledReportService(db).execute(schedule, now)
        except Exception as e:
            logger.error(f"Error executing scheduled report {schedule_id}: {e}")
        finally:
            db.close()
            self._running_schedules.discard(schedule_id)

    async def _run_due_schedules(self) -> None:
        db = SessionLocal()
        try:
            due_ids = [schedule.id for schedule in ScheduledReportService(db).due_schedules()]
        finally:
            db.close()

        for schedule_id in due_ids:
            await self._execute_schedule(schedule_id)

    async def _cleanup_exports(self) -> None:
        db = SessionLocal()
        try:
            ExportService(db).cleanup_expired_exports()
        except Exception as e:
            logger.error(f"Export cleanup failed: {e}")
        finally:
            db.close()


report_scheduler = ReportScheduler()


def get_report_scheduler() -> ReportScheduler:
    return report_scheduler
