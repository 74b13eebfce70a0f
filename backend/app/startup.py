"""
Application startup validation and initialization.

This module performs startup checks so that misconfiguration is reported
before the application serves requests.
"""

import logging
import sys
from typing import List, Tuple

from sqlalchemy import inspect, text

from core.config import DEFAULT_JWT_SECRET, settings
from core.database import engine

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "users",
    "audit_logs",
    "disbursement_transactions",
    "revenue_master_view_cache",
    "export_templates",
    "export_history",
    "scheduled_reports",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_database_connection(self) -> bool:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except Exception as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def check_environment_config(self) -> bool:
        if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
            if settings.is_production:
                self.errors.append("JWT_SECRET_KEY must be set in production")
                return False
            self.warnings.append("Using development JWT_SECRET_KEY - change for production")
        if not settings.cors_origin_list:
            self.warnings.append("No CORS origins configured")
        return True

    def check_zoho_config(self) -> bool:
        """Warns when Zoho credentials are missing or only partially set"""
        configured = [
            settings.zoho_client_id,
            settings.zoho_client_secret,
            settings.zoho_refresh_token,
            settings.zoho_org_id,
            settings.zoho_workspace_id,
        ]
        if any(configured) and not settings.zoho_enabled:
            self.warnings.append("Zoho Analytics credentials are incomplete - Zoho features disabled")
        elif not settings.zoho_enabled:
            self.warnings.append("Zoho Analytics not configured - cache and database sources only")
        return True

    def check_required_tables(self) -> bool:
        try:
            existing_tables = inspect(engine).get_table_names()
            missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
            if missing_tables:
                self.warnings.append(
                    f"Missing database tables: {', '.join(missing_tables)}. They will be created on startup"
                )
            return True
        except Exception as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """Run all validation checks"""
        checks = [
            ("Environment Configuration", self.check_environment_config),
            ("Database Connection", self.check_database_connection),
            ("Zoho Configuration", self.check_zoho_config),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True

        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            try:
                if not check_func():
                    all_passed = False
            except Exception as e:
                self.errors.append(f"{check_name} check failed with error: {str(e)}")
                all_passed = False

        return all_passed, self.errors, self.warnings


def run_startup_checks():
    """Run all startup validation checks"""
    logger.info("=" * 60)
    logger.info("Starting Revenue Dashboard API")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 60)

    validator = StartupValidator()
    passed, errors, warnings = validator.validate_all()

    if warnings:
        logger.warning("Startup Warnings:")
        for warning in warnings:
            logger.warning(f"  {warning}")

    if errors:
        logger.error("Startup Errors:")
        for error in errors:
            logger.error(f"  {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings


def configure_startup_logging():
    """Configure logging for startup"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
