import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, func, text

from board.database import Base, utcnow

ROLES = ("member", "moderator", "admin")


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    username = Column(String(30), nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default="member", server_default="member")  # member, moderator or admin
    bio = Column(Text, nullable=False, default="", server_default="")

    post_count = Column(Integer, nullable=False, default=0, server_default="0")
    reputation_score = Column(Integer, nullable=False, default=0, server_default="0")

    is_banned = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    ban_reason = Column(Text, nullable=False, default="", server_default="")

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    last_seen = Column(DateTime(timezone=True), nullable=True)


# usernames are unique regardless of case
Index("uq_users_username_lower", func.lower(User.username), unique=True)
