# backend/modules/models_registry.py

"""
Imports every model module so that ``Base.metadata`` knows all tables
and string-based relationships resolve.
"""

from modules.users.models import user_models  # noqa: F401
from modules.audit.models import audit_models  # noqa: F401
from modules.revenue.models import revenue_models, source_models  # noqa: F401
from modules.templates.models import template_models  # noqa: F401
from modules.exports.models import export_models  # noqa: F401
from modules.scheduled_reports.models import schedule_models  # noqa: F401
