from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    func,
    UniqueConstraint,
    Boolean,
    text,
)
from sqlalchemy.orm import relationship

from board.database import Base, utcnow


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="", server_default="")
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")

    # storage refuses to orphan subforums; the ORM must never try to null them out
    subforums = relationship(
        "Subforum",
        back_populates="category",
        order_by="Subforum.sort_order",
        passive_deletes="all",
    )


class Subforum(Base):
    __tablename__ = "subforums"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="", server_default="")
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    icon_color = Column(String(32), nullable=False, default="#4A9B9B", server_default="#4A9B9B")
    icon_label = Column(String(8), nullable=False, default="SF", server_default="SF")

    # denormalized counters for the index page
    thread_count = Column(Integer, nullable=False, default=0, server_default="0")
    post_count = Column(Integer, nullable=False, default=0, server_default="0")

    # last activity, display only (no FK: the thread may be deleted later)
    last_thread_id = Column(Integer, nullable=True)
    last_post_at = Column(DateTime(timezone=True), nullable=True)
    last_post_username = Column(String(30), nullable=True)

    category = relationship("Category", back_populates="subforums")


class Thread(Base):
    __tablename__ = "threads"

    id = Column(Integer, primary_key=True, index=True)
    subforum_id = Column(
        Integer,
        ForeignKey("subforums.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    is_sticky = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_locked = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_announcement = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    # denormalized counters; reply_count excludes the opening post
    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    reply_count = Column(Integer, nullable=False, default=0, server_default="0")

    last_post_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)
    last_post_user_id = Column(String(36), nullable=True)
    last_post_username = Column(String(30), nullable=True)


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    # no storage cascade: posts are removed explicitly with their counters
    thread_id = Column(Integer, ForeignKey("threads.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    # set once at thread creation, never re-derived from timestamps
    is_opening_post = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_edited = Column(Boolean, nullable=False, default=False, server_default=text("false"))


class Reaction(Base):
    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", "reaction_type", name="uq_reaction_post_user_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    reaction_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
