from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.startup import configure_startup_logging, run_startup_checks
from core.config import settings
from core.database import init_db
from core.exceptions import register_exception_handlers

# ========== Authentication & Users ==========
from modules.auth.routes.auth_routes import router as auth_router
from modules.auth.routes.rbac_routes import router as rbac_router
from modules.users.routers.user_router import router as user_router
from modules.audit.routers.audit_router import router as audit_router

# ========== Revenue Analytics ==========
from modules.revenue.routers.revenue_dashboard_router import router as revenue_dashboard_router
from modules.revenue.routers.revenue_analytics_router import router as revenue_analytics_router

# ========== Reporting ==========
from modules.templates.routers.template_router import router as template_router
from modules.exports.routers.export_router import router as export_router
from modules.scheduled_reports.routers.schedule_router import router as scheduled_reports_router
from modules.scheduled_reports.services.report_scheduler import report_scheduler

# ========== Zoho Analytics ==========
from modules.zoho.routers.zoho_router import router as zoho_router
from modules.zoho.services.zoho_client import close_zoho_client

configure_startup_logging()

app = FastAPI(
    title="Revenue Dashboard API",
    description="""
    Revenue and commission analytics for insurance disbursements.

    ## Features

    * **Revenue Dashboard** - Filtered, paginated revenue master records with KPIs and charts
    * **Revenue Analytics** - Cached analytics, filter options and cache synchronisation
    * **Exports** - JSON, CSV, Excel and PDF exports with download history
    * **Export Templates** - Per-user report layouts plus system defaults
    * **Scheduled Reports** - Recurring exports driven by cron expressions
    * **Zoho Analytics** - Row-level access to Zoho Analytics tables
    * **Users & Audit Logs** - Admin user management, a full audit trail and CSV/JSON audit export
    * **RBAC** - Permission and dashboard access lookups for the signed-in user

    ## Authentication

    Every endpoint except login and the health checks requires a bearer
    token. Use `/api/auth/login` to obtain one.
    """,
    version="1.0.0",
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ========== Include all routers with proper order (auth first) ==========

app.include_router(auth_router, prefix="/api")
app.include_router(rbac_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(audit_router, prefix="/api")

app.include_router(revenue_dashboard_router, prefix="/api")
app.include_router(revenue_analytics_router, prefix="/api")

app.include_router(template_router, prefix="/api")
app.include_router(export_router, prefix="/api")
app.include_router(scheduled_reports_router, prefix="/api")

app.include_router(zoho_router, prefix="/api")


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    run_startup_checks()
    init_db()

    if settings.report_scheduler_enabled:
        report_scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    report_scheduler.shutdown()
    await close_zoho_client()


@app.get("/")
def read_root():
    return {"message": "Revenue Dashboard API is running"}


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
        "zohoConfigured": settings.zoho_enabled,
        "reportSchedulerRunning": report_scheduler.running,
    }
