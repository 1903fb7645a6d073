from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from board.schemas.user_schemas import AdminUserOut


class ThreadUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_sticky: Optional[bool] = Field(default=None, alias="isSticky")
    is_locked: Optional[bool] = Field(default=None, alias="isLocked")
    subforum_id: Optional[int] = Field(default=None, alias="subforumId")


class PostUpdateIn(BaseModel):
    content: str = Field(min_length=1, max_length=50_000)


class ReportUpdateIn(BaseModel):
    status: Optional[str] = None


class UserUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: Optional[str] = None
    is_banned: Optional[bool] = Field(default=None, alias="isBanned")
    ban_reason: Optional[str] = Field(default=None, alias="banReason", max_length=1000)


class CategoryCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""


class CategoryUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")


class SubforumCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: int = Field(alias="categoryId")
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    icon_color: Optional[str] = Field(default=None, alias="iconColor", max_length=32)
    icon_label: Optional[str] = Field(default=None, alias="iconLabel", max_length=8)


class SubforumUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: Optional[int] = Field(default=None, alias="categoryId")
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    icon_color: Optional[str] = Field(default=None, alias="iconColor", max_length=32)
    icon_label: Optional[str] = Field(default=None, alias="iconLabel", max_length=8)


class SettingsUpdateIn(BaseModel):
    # values are checked in the service so a non-string gets a precise message
    settings: Optional[Dict[str, Any]] = None
    action: Optional[Literal["reset"]] = None


class AdminPostOut(BaseModel):
    id: int
    thread_id: int
    thread_title: Optional[str] = None
    user_id: str
    author_username: Optional[str] = None
    content: str
    is_opening_post: bool
    is_edited: bool
    created_at: datetime


class AdminReportOut(BaseModel):
    id: int
    post_id: int
    post_content: Optional[str] = None
    thread_id: Optional[int] = None
    reporter_id: str
    reporter_username: Optional[str] = None
    reason: str
    status: str
    created_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None


class ModerationLogOut(BaseModel):
    id: int
    moderator_id: str
    moderator_username: Optional[str] = None
    action: str
    target_type: str
    target_id: str
    reason: str
    created_at: datetime


class DashboardOut(BaseModel):
    total_users: int
    total_threads: int
    total_posts: int
    posts_last_24h: int
    new_users_last_7d: int
    pending_reports: int
    banned_users: int
    recent_actions: List[ModerationLogOut] = []
    recent_posts: List[AdminPostOut] = []
    newest_users: List[AdminUserOut] = []
