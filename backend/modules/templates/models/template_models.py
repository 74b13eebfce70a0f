# backend/modules/templates/models/template_models.py

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
import enum

from core.database import Base
from core.mixins import TimestampMixin


class TemplateStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class ExportTemplate(Base, TimestampMixin):
    """Report layout used by exports. ``user_id`` is NULL for system defaults."""

    __tablename__ = "export_templates"

    id = Column(String(100), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    type = Column(String(50), nullable=False, index=True)
    content = Column(JSON, default=dict)
    supported_formats = Column(JSON, default=list)
    sections = Column(JSON, default=list)
    charts = Column(JSON, default=list)
    formatting = Column(JSON, default=dict)
    layout = Column(JSON, default=dict)
    is_default = Column(Boolean, nullable=False, default=False, index=True)
    status = Column(String(20), nullable=False, default=TemplateStatus.ACTIVE.value)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'deleted')", name="ck_export_templates_status"
        ),
        Index("idx_export_templates_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<ExportTemplate(id='{self.id}', name='{self.name}', type='{self.type}')>"
