# backend/modules/audit/models/audit_models.py

from sqlalchemy import Column, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
import enum

from core.database import Base
from core.mixins import CreatedAtMixin


class AuditActionType(str, enum.Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    TOKEN_REFRESH = "token_refresh"
    USER_MANAGEMENT = "user_management"
    TEMPLATE_MANAGEMENT = "template_management"
    SCHEDULE_MANAGEMENT = "schedule_management"
    EXPORT_DATA = "export_data"
    DATA_SYNC = "data_sync"
    EXTERNAL_DATA_CHANGE = "external_data_change"


class AuditLog(Base, CreatedAtMixin):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action_type = Column(String(50), nullable=False, index=True)
    table_name = Column(String(100), nullable=True, index=True)
    record_id = Column(String(100), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    user = relationship("User", lazy="joined")

    __table_args__ = (Index("idx_audit_logs_user_action", "user_id", "action_type"),)
