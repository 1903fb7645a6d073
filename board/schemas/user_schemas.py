from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class RegisterIn(BaseModel):
    username: str = Field(pattern=r"^[a-zA-Z0-9_-]{3,30}$")
    password: str = Field(min_length=6, max_length=128)


class LoginIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SessionUserOut(BaseModel):
    id: str
    username: str
    role: str


class AuthOut(BaseModel):
    success: bool = True
    user: SessionUserOut
    access_token: str


class MeOut(BaseModel):
    user: Optional[SessionUserOut] = None


class UserOut(BaseModel):
    id: str
    username: str
    role: str
    bio: str = ""
    post_count: int
    reputation_score: int = 0
    created_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class AdminUserOut(UserOut):
    is_banned: bool
    ban_reason: str = ""


class RecentPostOut(BaseModel):
    id: int
    thread_id: int
    thread_title: str
    content: str
    created_at: Optional[datetime] = None


class ProfileOut(BaseModel):
    user: UserOut
    recent_posts: List[RecentPostOut] = []
