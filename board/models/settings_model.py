from sqlalchemy import Column, DateTime, String, Text, func

from board.database import Base, utcnow


class ForumSetting(Base):
    __tablename__ = "forum_settings"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now())
