"""
Scheduled report tests: cron generation, schedule service, background
scheduler and API.
"""

from datetime import datetime, timezone

import pytest
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.exceptions import NotFoundError
from modules.audit.models.audit_models import AuditLog
from modules.scheduled_reports.models.schedule_models import (
    ScheduledReport,
    ScheduledReportExecution,
)
from modules.scheduled_reports.schemas.schedule_schemas import ScheduleCreate, ScheduleUpdate
from modules.scheduled_reports.services import report_scheduler as report_scheduler_module
from modules.scheduled_reports.services.cron_service import (
    calculate_next_run,
    generate_cron_expression,
    is_valid_cron_expression,
    to_scheduler_crontab,
)
from modules.scheduled_reports.services.report_scheduler import ReportScheduler
from modules.scheduled_reports.services.schedule_service import ScheduledReportService

NOW = datetime(2024, 3, 10, 14, 0)


class RecordingScheduler:
    """Stands in for ReportScheduler and records job registration."""

    def __init__(self):
        self.added = []
        self.removed = []

    def add_schedule(self, schedule):
        self.added.append(schedule.id)

    def remove_schedule(self, schedule_id):
        self.removed.append(schedule_id)


def _create(service, user, **overrides):
    values = dict(name="Daily revenue", frequency="daily", format="json")
    values.update(overrides)
    return service.create_schedule(ScheduleCreate(**values), user)


def _make_due(db_session, schedule, when=datetime(2024, 1, 1)):
    schedule.next_run = when
    db_session.commit()


class TestCronService:
    @pytest.mark.parametrize(
        "frequency,options,expected",
        [
            ("daily", None, "0 9 * * *"),
            ("daily", {"hour": 0}, "0 0 * * *"),
            ("weekly", {"day_of_week": 5, "hour": 18}, "0 18 * * 5"),
            ("monthly", {"day_of_month": 15}, "0 9 15 * *"),
            ("quarterly", None, "0 9 1 1,4,7,10 *"),
            ("quarterly", {"month": 11}, "0 9 1 11,2,5,8 *"),
            ("yearly", {"month": 6, "day_of_month": 30}, "0 9 30 6 *"),
        ],
    )
    def test_generate_cron_expression(self, frequency, options, expected):
        assert generate_cron_expression(frequency, options) == expected

    def test_unsupported_frequency(self):
        with pytest.raises(ValueError, match="Unsupported frequency: hourly"):
            generate_cron_expression("hourly")

    def test_is_valid_cron_expression(self):
        assert is_valid_cron_expression("30 6 * * 1-5")
        assert not is_valid_cron_expression(None)
        assert not is_valid_cron_expression("0 9 * *")
        assert not is_valid_cron_expression("0 0 9 * * *")
        assert not is_valid_cron_expression("61 9 * * *")

    def test_calculate_next_run(self):
        assert calculate_next_run("0 9 * * *", NOW) == datetime(2024, 3, 11, 9, 0)
        assert calculate_next_run("0 9 1 * *", NOW) == datetime(2024, 4, 1, 9, 0)
        # 2024-03-10 is a Sunday
        assert calculate_next_run("0 9 * * 1", NOW) == datetime(2024, 3, 11, 9, 0)

    def test_next_run_is_strictly_after_base(self):
        fire_time = datetime(2024, 3, 11, 9, 0)
        assert calculate_next_run("0 9 * * *", fire_time) == datetime(2024, 3, 12, 9, 0)

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("0 9 * * *", "0 9 * * *"),
            ("0 9 * * 1", "0 9 * * mon"),
            ("0 9 * * 0", "0 9 * * sun"),
            ("0 9 * * 7", "0 9 * * sun"),
            ("30 8 * * 1-5", "30 8 * * mon,tue,wed,thu,fri"),
            ("0 9 * * 5,0", "0 9 * * fri,sun"),
            ("0 9 * * */2", "0 9 * * sun,tue,thu,sat"),
            ("0 9 * * mon-fri", "0 9 * * mon-fri"),
            ("0 9 1 1,4,7,10 *", "0 9 1 1,4,7,10 *"),
        ],
    )
    def test_to_scheduler_crontab(self, expression, expected):
        assert to_scheduler_crontab(expression) == expected

    @pytest.mark.parametrize(
        "expression",
        ["0 9 * * 1", "0 9 * * 0", "30 8 * * 1-5", "0 18 * * 5,0", "0 9 1 * *"],
    )
    def test_scheduler_trigger_matches_next_run(self, expression):
        # 2024-01-01 is a Monday
        base = datetime(2024, 1, 1, 10, 0)
        trigger = CronTrigger.from_crontab(to_scheduler_crontab(expression), timezone="UTC")

        fire_time = trigger.get_next_fire_time(None, base.replace(tzinfo=timezone.utc))

        assert fire_time.replace(tzinfo=None) == calculate_next_run(expression, base)


class TestScheduleService:
    def test_create_schedule(self, db_session, regular_user):
        scheduler = RecordingScheduler()
        schedule = _create(
            ScheduledReportService(db_session, scheduler),
            regular_user,
            frequency="weekly",
            recipients=["ops@example.com"],
            scheduleOptions={"dayOfWeek": 3, "hour": 7},
        )

        assert schedule.id.startswith("schedule_")
        assert schedule.cron_expression == "0 7 * * 3"
        assert schedule.schedule_options == {"hour": 7, "day_of_week": 3}
        assert schedule.status == "active"
        assert schedule.next_run > datetime.utcnow()
        assert scheduler.added == [schedule.id]

        entry = db_session.query(AuditLog).one()
        assert entry.action_type == "schedule_management"
        assert entry.new_values["action"] == "create"

    def test_explicit_cron_expression_wins(self, db_session, regular_user):
        schedule = _create(
            ScheduledReportService(db_session), regular_user, cronExpression="30 6 * * 1-5"
        )
        assert schedule.cron_expression == "30 6 * * 1-5"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"format": None}, "Name, frequency, and format are required"),
            ({"frequency": "hourly"}, "Unsupported frequency: hourly"),
            ({"format": "docx"}, "Unsupported format: docx"),
            ({"template": "mystery"}, "Unsupported template: mystery"),
            ({"cronExpression": "every day"}, "Invalid cron expression"),
        ],
    )
    def test_create_validation(self, db_session, regular_user, overrides, message):
        with pytest.raises(ValueError, match=message):
            _create(ScheduledReportService(db_session), regular_user, **overrides)

    def test_active_schedule_limit(self, db_session, regular_user, monkeypatch):
        monkeypatch.setattr(settings, "max_schedules_per_user", 1)
        service = ScheduledReportService(db_session)
        first = _create(service, regular_user)

        with pytest.raises(ValueError, match=r"Maximum schedules per user \(1\) exceeded"):
            _create(service, regular_user)

        # Paused schedules do not count towards the limit
        service.update_schedule(first.id, ScheduleUpdate(status="paused"), regular_user)
        _create(service, regular_user)

        with pytest.raises(ValueError, match="Maximum schedules per user"):
            service.update_schedule(first.id, ScheduleUpdate(status="active"), regular_user)

    def test_update_regenerates_cron(self, db_session, regular_user):
        service = ScheduledReportService(db_session)
        schedule = _create(service, regular_user)

        updated = service.update_schedule(
            schedule.id,
            ScheduleUpdate(frequency="monthly", scheduleOptions={"dayOfMonth": 15, "hour": 0}),
            regular_user,
        )
        assert updated.frequency == "monthly"
        assert updated.cron_expression == "0 0 15 * *"
        assert updated.next_run.day == 15

        renamed = service.update_schedule(schedule.id, ScheduleUpdate(name="Renamed"), regular_user)
        assert renamed.name == "Renamed"
        assert renamed.cron_expression == "0 0 15 * *"

        with pytest.raises(ValueError, match="Invalid cron expression"):
            service.update_schedule(schedule.id, ScheduleUpdate(cronExpression="bad"), regular_user)

    def test_pause_and_delete_unregister_jobs(self, db_session, regular_user):
        scheduler = RecordingScheduler()
        service = ScheduledReportService(db_session, scheduler)
        schedule = _create(service, regular_user)
        schedule_id = schedule.id

        service.update_schedule(schedule_id, ScheduleUpdate(status="paused"), regular_user)
        service.delete_schedule(schedule_id, regular_user)

        assert scheduler.removed == [schedule_id, schedule_id]
        assert db_session.get(ScheduledReport, schedule_id) is None

    def test_schedules_are_private(self, db_session, regular_user, make_user):
        schedule = _create(ScheduledReportService(db_session), regular_user)
        other = make_user("other")

        with pytest.raises(NotFoundError):
            ScheduledReportService(db_session).get_schedule(schedule.id, other)
        assert ScheduledReportService(db_session).list_schedules(other) == []

    def test_execute_records_export(self, seeded_sources, regular_user):
        service = ScheduledReportService(seeded_sources)
        schedule = _create(service, regular_user, format="csv", recipients=["ops@example.com"])

        execution = service.execute(schedule, NOW)

        assert execution.status == "completed"
        assert execution.export_id.startswith("export_")
        assert execution.file_name.endswith(".csv")
        assert execution.record_count == 2
        assert execution.error_message is None
        assert schedule.last_run == NOW
        assert schedule.next_run == datetime(2024, 3, 11, 9, 0)

    def test_failed_execution_still_advances(self, db_session, regular_user, monkeypatch):
        monkeypatch.setattr(settings, "export_daily_limit", 0)
        service = ScheduledReportService(db_session)
        schedule = _create(service, regular_user)

        execution = service.execute(schedule, NOW)

        assert execution.status == "failed"
        assert execution.error_message == "Export limit exceeded. Please try again tomorrow."
        assert execution.export_id is None
        assert schedule.next_run == datetime(2024, 3, 11, 9, 0)

    def test_execute_now_requires_active_schedule(self, db_session, regular_user):
        service = ScheduledReportService(db_session)
        schedule = _create(service, regular_user)
        service.update_schedule(schedule.id, ScheduleUpdate(status="paused"), regular_user)

        with pytest.raises(ValueError, match="Schedule is not active"):
            service.execute_now(schedule.id, regular_user)

    def test_due_schedules_and_run_due(self, db_session, regular_user):
        service = ScheduledReportService(db_session)
        due = _create(service, regular_user, name="Due")
        paused = _create(service, regular_user, name="Paused")
        _create(service, regular_user, name="Later")
        _make_due(db_session, due)
        _make_due(db_session, paused)
        service.update_schedule(paused.id, ScheduleUpdate(status="paused"), regular_user)
        # Pausing leaves next_run alone
        assert paused.next_run == datetime(2024, 1, 1)

        now = datetime(2024, 1, 2, 8, 0)
        assert [s.name for s in service.due_schedules(now)] == ["Due"]

        executions = service.run_due_schedules(now)
        assert [e.schedule_id for e in executions] == [due.id]
        assert due.next_run == datetime(2024, 1, 2, 9, 0)
        assert service.run_due_schedules(now) == []

    def test_list_executions_newest_first(self, db_session, regular_user):
        service = ScheduledReportService(db_session)
        schedule = _create(service, regular_user)
        service.execute(schedule, datetime(2024, 3, 1, 9, 0))
        service.execute(schedule, datetime(2024, 3, 2, 9, 0))

        executions = service.list_executions(schedule.id, regular_user, limit=1)
        assert [e.execution_time for e in executions] == [datetime(2024, 3, 2, 9, 0)]


class TestReportScheduler:
    @pytest.fixture
    def scheduler_session(self, engine, monkeypatch):
        monkeypatch.setattr(
            report_scheduler_module, "SessionLocal", sessionmaker(bind=engine, autoflush=False)
        )

    def test_idle_scheduler_is_a_no_op(self, db_session, regular_user):
        scheduler = ReportScheduler()
        schedule = _create(ScheduledReportService(db_session), regular_user)

        assert scheduler.running is False
        scheduler.add_schedule(schedule)
        scheduler.remove_schedule(schedule.id)
        scheduler.shutdown()
        assert scheduler.active_job_count() == 0
        assert ReportScheduler.job_id(schedule.id) == f"scheduled_report_{schedule.id}"

    @pytest.mark.asyncio
    async def test_execute_schedule_runs_due_schedule(self, db_session, regular_user, scheduler_session):
        schedule = _create(ScheduledReportService(db_session), regular_user)
        _make_due(db_session, schedule)

        await ReportScheduler()._execute_schedule(schedule.id)

        assert db_session.query(ScheduledReportExecution).count() == 1

    @pytest.mark.asyncio
    async def test_execute_schedule_skips(self, db_session, regular_user, scheduler_session):
        service = ScheduledReportService(db_session)
        not_due = _create(service, regular_user, name="Not due")
        paused = _create(service, regular_user, name="Paused")
        busy = _create(service, regular_user, name="Busy")
        _make_due(db_session, paused)
        _make_due(db_session, busy)
        service.update_schedule(paused.id, ScheduleUpdate(status="paused"), regular_user)

        scheduler = ReportScheduler()
        scheduler._running_schedules.add(busy.id)
        for schedule_id in (not_due.id, paused.id, busy.id, "schedule_missing"):
            await scheduler._execute_schedule(schedule_id)

        assert db_session.query(ScheduledReportExecution).count() == 0
        assert scheduler._running_schedules == {busy.id}

    @pytest.mark.asyncio
    async def test_sweep_runs_every_due_schedule(self, db_session, regular_user, scheduler_session):
        service = ScheduledReportService(db_session)
        for name in ("First", "Second"):
            _make_due(db_session, _create(service, regular_user, name=name))

        await ReportScheduler()._run_due_schedules()

        assert db_session.query(ScheduledReportExecution).count() == 2


class TestScheduledReportsApi:
    """/api/scheduled-reports endpoints"""

    def test_health_is_public(self, client):
        body = client.get("/api/scheduled-reports/health").json()
        assert body["status"] == "healthy"
        assert body["schedulerRunning"] is False
        assert body["activeJobs"] == 0

    def test_requires_authentication(self, client):
        response = client.get("/api/scheduled-reports")
        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_MISSING"

    def test_schedule_lifecycle(self, client, user_headers):
        created = client.post(
            "/api/scheduled-reports",
            json={
                "name": "Morning revenue",
                "frequency": "daily",
                "format": "csv",
                "template": "revenue_analysis",
                "scheduleOptions": {"hour": 6},
            },
            headers=user_headers,
        )
        assert created.status_code == 201
        schedule = created.json()["schedule"]
        assert schedule["cron_expression"] == "0 6 * * *"
        schedule_id = schedule["id"]

        listing = client.get("/api/scheduled-reports", headers=user_headers).json()
        assert listing["limits"] == {
            "maxSchedulesPerUser": settings.max_schedules_per_user,
            "currentCount": 1,
        }
        assert listing["supportedFrequencies"] == ["daily", "weekly", "monthly", "quarterly", "yearly"]

        paused = client.put(
            f"/api/scheduled-reports/{schedule_id}", json={"status": "paused"}, headers=user_headers
        )
        assert paused.json()["schedule"]["status"] == "paused"

        rejected = client.post(f"/api/scheduled-reports/{schedule_id}/execute", headers=user_headers)
        assert rejected.status_code == 400
        assert rejected.json()["error"] == "Schedule is not active"

        client.put(
            f"/api/scheduled-reports/{schedule_id}", json={"status": "active"}, headers=user_headers
        )
        executed = client.post(f"/api/scheduled-reports/{schedule_id}/execute", headers=user_headers)
        assert executed.status_code == 200
        assert executed.json()["success"] is True
        assert executed.json()["message"] == "Report executed successfully"
        assert executed.json()["execution"]["status"] == "completed"

        executions = client.get(
            f"/api/scheduled-reports/{schedule_id}/executions", headers=user_headers
        ).json()["executions"]
        assert len(executions) == 1

        deleted = client.delete(f"/api/scheduled-reports/{schedule_id}", headers=user_headers)
        assert deleted.json() == {"success": True, "message": "Schedule deleted successfully"}

        missing = client.get(f"/api/scheduled-reports/{schedule_id}", headers=user_headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "Schedule not found"

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"name": "No format", "frequency": "daily"}, "Name, frequency, and format are required"),
            ({"name": "Hourly", "frequency": "hourly", "format": "csv"}, "Unsupported frequency: hourly"),
        ],
    )
    def test_create_validation(self, client, user_headers, payload, message):
        response = client.post("/api/scheduled-reports", json=payload, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["error"] == message

    def test_invalid_status_rejected(self, client, user_headers):
        response = client.put(
            "/api/scheduled-reports/schedule_missing", json={"status": "deleted"}, headers=user_headers
        )
        assert response.status_code == 400
