from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey

from passport.db.base import Base


class SystemSetting(Base):
    """Key/value configuration changed through approved system_configuration requests."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_request_id = Column(Integer, ForeignKey("approval_requests.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SystemSetting {self.key}>"
