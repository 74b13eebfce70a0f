# backend/modules/scheduled_reports/constants.py

SUPPORTED_FREQUENCIES = ["daily", "weekly", "monthly", "quarterly", "yearly"]
SUPPORTED_FORMATS = ["pdf", "excel", "csv", "json"]
SUPPORTED_TEMPLATES = ["revenue_analysis", "commission_analysis", "comprehensive"]

DEFAULT_HOUR = 9
DEFAULT_DAY_OF_WEEK = 1  # Monday
DEFAULT_DAY_OF_MONTH = 1
DEFAULT_MONTH = 1

DUE_SWEEP_INTERVAL_SECONDS = 60
