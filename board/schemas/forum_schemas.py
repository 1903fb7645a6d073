from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from board.utils.forum_content import format_count

T = TypeVar("T")


class PageOut(BaseModel, Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_prev: bool
    has_next: bool


class SubforumOut(BaseModel):
    id: int
    category_id: int
    name: str
    description: str = ""
    sort_order: int
    icon_color: str
    icon_label: str
    thread_count: int
    post_count: int
    last_thread_id: Optional[int] = None
    last_post_at: Optional[datetime] = None
    last_post_username: Optional[str] = None
    last_thread_title: Optional[str] = None
    category_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def thread_count_label(self) -> str:
        return format_count(self.thread_count)

    @computed_field
    @property
    def post_count_label(self) -> str:
        return format_count(self.post_count)


class CategoryOut(BaseModel):
    id: int
    name: str
    description: str = ""
    sort_order: int
    subforums: List[SubforumOut] = []

    model_config = ConfigDict(from_attributes=True)


class SubforumChoiceOut(BaseModel):
    id: int
    name: str
    category_name: str


class ThreadOut(BaseModel):
    id: int
    subforum_id: int
    user_id: str
    author_username: Optional[str] = None
    title: str
    created_at: datetime
    is_sticky: bool
    is_locked: bool
    is_announcement: bool = False
    view_count: int
    reply_count: int
    last_post_at: datetime
    last_post_user_id: Optional[str] = None
    last_post_username: Optional[str] = None
    subforum_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def reply_count_label(self) -> str:
        return format_count(self.reply_count)

    @computed_field
    @property
    def view_count_label(self) -> str:
        return format_count(self.view_count)


class PostOut(BaseModel):
    id: int
    thread_id: int
    user_id: str
    author_username: Optional[str] = None
    author_role: Optional[str] = None
    author_post_count: Optional[int] = None
    author_created_at: Optional[datetime] = None
    content: str
    content_html: str
    created_at: datetime
    edited_at: Optional[datetime] = None
    is_edited: bool
    is_opening_post: bool


class BreadcrumbOut(BaseModel):
    category_id: int
    category_name: str
    subforum_id: int
    subforum_name: str


class SubforumPageOut(BaseModel):
    subforum: SubforumOut
    threads: PageOut[ThreadOut]


class ThreadPageOut(BaseModel):
    thread: ThreadOut
    breadcrumb: BreadcrumbOut
    posts: PageOut[PostOut]


class CreateThreadIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subforum_id: int = Field(alias="subforumId")
    title: str = Field(min_length=3, max_length=200)
    content: str = Field(min_length=1, max_length=50_000)


class CreatePostIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thread_id: int = Field(alias="threadId")
    content: str = Field(min_length=1, max_length=50_000)


class ReactionIn(BaseModel):
    reaction_type: str = Field(default="like", pattern=r"^[a-z_]{1,20}$")


class ReactionToggleOut(BaseModel):
    reacted: bool
    count: int


class CreateReportIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_id: int = Field(alias="postId")
    reason: str = Field(min_length=5, max_length=1000)


class ForumStatsOut(BaseModel):
    total_threads: int
    total_posts: int
    total_members: int
    latest_member: Optional[str] = None
    online_members: List[str] = []
    recent_threads: List[ThreadOut] = []
    new_threads: List[ThreadOut] = []
