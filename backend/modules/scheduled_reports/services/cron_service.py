# backend/modules/scheduled_reports/services/cron_service.py

"""
Cron helpers for report schedules. All times are naive UTC.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from croniter import croniter

from ..constants import DEFAULT_DAY_OF_MONTH, DEFAULT_DAY_OF_WEEK, DEFAULT_HOUR, DEFAULT_MONTH


def _option(options: Dict[str, Any], key: str, default: int) -> int:
    value = options.get(key)
    return default if value is None else int(value)


def generate_cron_expression(frequency: str, options: Optional[Dict[str, Any]] = None) -> str:
    """
    Build the cron expression for a frequency.

    ``options`` may carry ``hour``, ``day_of_week``, ``day_of_month`` and
    ``month``; reports always fire on minute 0.

    >>> generate_cron_expression("quarterly", {"month": 11})
    '0 9 1 11,2,5,8 *'
    """
    options = options or {}
    hour = _option(options, "hour", DEFAULT_HOUR)
    day_of_month = _option(options, "day_of_month", DEFAULT_DAY_OF_MONTH)
    month = _option(options, "month", DEFAULT_MONTH)

    if frequency == "daily":
        return f"0 {hour} * * *"
    if frequency == "weekly":
        return f"0 {hour} * * {_option(options, 'day_of_week', DEFAULT_DAY_OF_WEEK)}"
    if frequency == "monthly":
        return f"0 {hour} {day_of_month} * *"
    if frequency == "quarterly":
        months = ",".join(str((month - 1 + offset) % 12 + 1) for offset in (0, 3, 6, 9))
        return f"0 {hour} {day_of_month} {months} *"
    if frequency == "yearly":
        return f"0 {hour} {day_of_month} {month} *"
    raise ValueError(f"Unsupported frequency: {frequency}")


def is_valid_cron_expression(expression: Optional[str]) -> bool:
    if not expression or len(expression.split()) != 5:
        return False
    return croniter.is_valid(expression)


def calculate_next_run(expression: str, base: Optional[datetime] = None) -> datetime:
    """Next fire time strictly after ``base`` (default: now)"""
    return croniter(expression, base or datetime.utcnow()).get_next(datetime)


# APScheduler counts weekdays from Monday, cron from Sunday; names mean the same to both
WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _weekday_part(part: str) -> str:
    base, _, step = part.partition("/")
    if base == "*":
        if not step:
            return part
        first, last = 0, 6
    elif "-" in base:
        first_text, last_text = base.split("-", 1)
        if not (first_text.isdigit() and last_text.isdigit()):
            return part
        first, last = int(first_text), int(last_text)
    elif base.isdigit():
        first = int(base)
        last = 6 if step else first
    else:
        return part

    names = []
    for day in range(first, last + 1, int(step or 1)):
        name = WEEKDAY_NAMES[day]
        if name not in names:
            names.append(name)
    return ",".join(names)


def to_scheduler_crontab(expression: str) -> str:
    """
    Rewrite numeric day-of-week values as day names for APScheduler.

    >>> to_scheduler_crontab("0 9 * * 1-5")
    '0 9 * * mon,tue,wed,thu,fri'
    """
    fields = expression.split()
    if len(fields) != 5:
        return expression
    fields[4] = ",".join(_weekday_part(part) for part in fields[4].split(","))
    return " ".join(fields)
