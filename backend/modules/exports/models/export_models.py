# backend/modules/exports/models/export_models.py

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import enum

from core.database import Base
from core.mixins import TimestampMixin


class ExportStatus(str, enum.Enum):
    PREPARING = "preparing"
    FETCHING = "fetching"
    PROCESSING = "processing"
    WRITING = "writing"
    COMPLETED = "completed"
    ERROR = "error"
    DELETED = "deleted"


class ExportHistory(Base, TimestampMixin):
    __tablename__ = "export_history"

    id = Column(String(100), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    export_type = Column(String(50), nullable=False, default="dashboard")
    format = Column(String(20), nullable=False)
    template_name = Column(String(100), nullable=True)
    filters = Column(JSON, default=dict)
    file_path = Column(String(1000), nullable=True)
    file_name = Column(String(500), nullable=True)
    file_size = Column(Integer, nullable=True)
    record_count = Column(Integer, default=0)
    # "metadata" is reserved on declarative classes
    export_metadata = Column("metadata", JSON, default=dict)
    status = Column(String(20), nullable=False, default=ExportStatus.PREPARING.value, index=True)
    progress = Column(Integer, nullable=False, default=0)
    message = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)

    user = relationship("User")

    __table_args__ = (Index("idx_export_history_user_created", "user_id", "created_at"),)

    def __repr__(self):
        return f"<ExportHistory(id='{self.id}', format='{self.format}', status='{self.status}')>"
