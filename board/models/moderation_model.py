from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from board.database import Base, utcnow

REPORT_STATUSES = ("pending", "reviewed", "dismissed")


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    reporter_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending", server_default="pending", index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)


class ModerationLog(Base):
    """Append-only audit trail; rows are never updated or deleted."""

    __tablename__ = "moderation_log"

    id = Column(Integer, primary_key=True, index=True)
    moderator_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    target_type = Column(String(20), nullable=False)
    target_id = Column(String(64), nullable=False)
    reason = Column(Text, nullable=False, default="", server_default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
