"""Database model for platform settings."""

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy.sql import func

from ..database import Base


class PlatformSetting(Base):
    """Key/value setting stored as JSON; read through ``ConfigService``."""

    __tablename__ = "platform_settings"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSON, nullable=False)
    updated_by_id = Column(String(26), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<PlatformSetting key={self.key}>"


__all__ = ["PlatformSetting"]
