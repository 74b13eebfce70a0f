# backend/modules/scheduled_reports/__init__.py

"""
Scheduled Reports Module

Recurring dashboard exports defined by a cron expression:

- Services: cron generation, schedule CRUD and execution, APScheduler
  integration for background runs
- Routers: schedule management and manual execution endpoints
- Models: schedules and their execution history
"""
