import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from board import config
from board.database import get_async_session, utcnow
from board.deps.admin import require_admin, require_moderator
from board.errors import BadRequest
from board.models.forum_model import Category, Post, Subforum, Thread
from board.models.moderation_model import ModerationLog, Report
from board.models.user_model import User
from board.schemas.admin_schemas import (
    AdminPostOut,
    AdminReportOut,
    CategoryCreateIn,
    CategoryUpdateIn,
    DashboardOut,
    ModerationLogOut,
    PostUpdateIn,
    ReportUpdateIn,
    SettingsUpdateIn,
    SubforumCreateIn,
    SubforumUpdateIn,
    ThreadUpdateIn,
    UserUpdateIn,
)
from board.schemas.forum_schemas import PageOut, ThreadOut
from board.schemas.user_schemas import AdminUserOut
from board.services import forum_service, moderation_service, settings_service, structure_service
from board.utils.pagination import clamp_page, page_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _per_page(per_page: int) -> int:
    return max(1, min(per_page, config.ADMIN_PAGE_MAX))


async def _page(db: AsyncSession, count_stmt, rows_stmt, page: int, per_page: int):
    """Run a count + slice pair; returns (rows, meta)."""
    per_page = _per_page(per_page)
    total = int((await db.execute(count_stmt)).scalar_one() or 0)
    page, total_pages = clamp_page(page, total, per_page)
    rows = (await db.execute(rows_stmt.offset((page - 1) * per_page).limit(per_page))).all()
    return rows, page_meta(page, per_page, total, total_pages)


def _admin_post(post: Post, thread_title: Optional[str], username: Optional[str]) -> AdminPostOut:
    return AdminPostOut(
        id=post.id,
        thread_id=post.thread_id,
        thread_title=thread_title,
        user_id=post.user_id,
        author_username=username,
        content=post.content,
        is_opening_post=bool(post.is_opening_post),
        is_edited=bool(post.is_edited),
        created_at=post.created_at,
    )


def _log_out(entry: ModerationLog, username: Optional[str]) -> ModerationLogOut:
    return ModerationLogOut(
        id=entry.id,
        moderator_id=entry.moderator_id,
        moderator_username=username,
        action=entry.action,
        target_type=entry.target_type,
        target_id=entry.target_id,
        reason=entry.reason or "",
        created_at=entry.created_at,
    )


# ------------------------------
# Dashboard
# ------------------------------
@router.get("/stats", response_model=DashboardOut)
async def dashboard(
    _mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    now = utcnow()

    async def _count(stmt) -> int:
        return int((await db.execute(stmt)).scalar_one() or 0)

    recent_actions = await db.execute(
        select(ModerationLog, User.username)
        .outerjoin(User, User.id == ModerationLog.moderator_id)
        .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
        .limit(10)
    )
    recent_posts = await db.execute(
        select(Post, Thread.title, User.username)
        .join(Thread, Thread.id == Post.thread_id)
        .outerjoin(User, User.id == Post.user_id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(10)
    )
    newest_users = await db.execute(select(User).order_by(User.created_at.desc()).limit(10))

    return DashboardOut(
        total_users=await _count(select(func.count(User.id))),
        total_threads=await _count(select(func.count(Thread.id))),
        total_posts=await _count(select(func.count(Post.id))),
        posts_last_24h=await _count(select(func.count(Post.id)).where(Post.created_at >= now - timedelta(hours=24))),
        new_users_last_7d=await _count(select(func.count(User.id)).where(User.created_at >= now - timedelta(days=7))),
        pending_reports=await _count(select(func.count(Report.id)).where(Report.status == "pending")),
        banned_users=await _count(select(func.count(User.id)).where(User.is_banned.is_(True))),
        recent_actions=[_log_out(e, name) for e, name in recent_actions.all()],
        recent_posts=[_admin_post(p, title, name) for p, title, name in recent_posts.all()],
        newest_users=[AdminUserOut.model_validate(u) for u in newest_users.scalars().all()],
    )


# ------------------------------
# Threads
# ------------------------------
@router.get("/threads", response_model=PageOut[ThreadOut])
async def list_threads(
    search: Optional[str] = None,
    subforum_id: Optional[int] = Query(None, alias="subforumId"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    _mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    filters = []
    if search:
        filters.append(Thread.title.ilike(f"%{search}%"))
    if subforum_id is not None:
        filters.append(Thread.subforum_id == subforum_id)

    rows, meta = await _page(
        db,
        select(func.count(Thread.id)).where(*filters),
        select(Thread, User.username, Subforum.name)
        .outerjoin(User, User.id == Thread.user_id)
        .join(Subforum, Subforum.id == Thread.subforum_id)
        .where(*filters)
        .order_by(Thread.last_post_at.desc(), Thread.id.desc()),
        page,
        per_page,
    )
    items = []
    for thread, username, subforum_name in rows:
        out = ThreadOut.model_validate(thread)
        out.author_username = username
        out.subforum_name = subforum_name
        items.append(out)
    return PageOut[ThreadOut](items=items, **meta)


@router.patch("/threads/{thread_id}")
async def update_thread(
    thread_id: int,
    payload: ThreadUpdateIn,
    mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await forum_service.update_thread(
        db,
        mod,
        thread_id,
        is_sticky=payload.is_sticky,
        is_locked=payload.is_locked,
        subforum_id=payload.subforum_id,
    )
    return {
        "success": True,
        "thread": {
            "id": thread.id,
            "subforum_id": thread.subforum_id,
            "is_sticky": bool(thread.is_sticky),
            "is_locked": bool(thread.is_locked),
        },
    }


@router.delete("/threads/{thread_id}")
async def delete_thread(
    thread_id: int,
    mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    removed = await forum_service.delete_thread(db, mod, thread_id)
    return {"success": True, "postsDeleted": removed}


# ------------------------------
# Posts
# ------------------------------
@router.get("/posts", response_model=PageOut[AdminPostOut])
async def list_posts(
    search: Optional[str] = None,
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    _mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    filters = []
    if search:
        filters.append(Post.content.ilike(f"%{search}%"))
    if user_id:
        filters.append(Post.user_id == user_id)

    rows, meta = await _page(
        db,
        select(func.count(Post.id)).where(*filters),
        select(Post, Thread.title, User.username)
        .join(Thread, Thread.id == Post.thread_id)
        .outerjoin(User, User.id == Post.user_id)
        .where(*filters)
        .order_by(Post.created_at.desc(), Post.id.desc()),
        page,
        per_page,
    )
    return PageOut[AdminPostOut](items=[_admin_post(p, title, name) for p, title, name in rows], **meta)


@router.patch("/posts/{post_id}")
async def edit_post(
    post_id: int,
    payload: PostUpdateIn,
    mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    post = await forum_service.edit_post(db, mod, post_id, payload.content)
    return {"success": True, "postId": post.id}


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: int,
    mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    thread_deleted = await forum_service.delete_post(db, mod, post_id)
    return {"success": True, "threadDeleted": thread_deleted}


# ------------------------------
# Reports
# ------------------------------
@router.get("/reports", response_model=PageOut[AdminReportOut])
async def list_reports(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    _mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    filters = [Report.status == status_filter] if status_filter else []
    reporter = aliased(User)

    rows, meta = await _page(
        db,
        select(func.count(Report.id)).where(*filters),
        select(Report, Post.content, Post.thread_id, reporter.username)
        .outerjoin(Post, Post.id == Report.post_id)
        .outerjoin(reporter, reporter.id == Report.reporter_id)
        .where(*filters)
        .order_by(case((Report.status == "pending", 0), else_=1), Report.created_at.desc(), Report.id.desc()),
        page,
        per_page,
    )
    items = [
        AdminReportOut(
            id=r.id,
            post_id=r.post_id,
            post_content=content,
            thread_id=thread_id,
            reporter_id=r.reporter_id,
            reporter_username=username,
            reason=r.reason,
            status=r.status,
            created_at=r.created_at,
            reviewed_by=r.reviewed_by,
            reviewed_at=r.reviewed_at,
        )
        for r, content, thread_id, username in rows
    ]
    return PageOut[AdminReportOut](items=items, **meta)


@router.patch("/reports/{report_id}")
async def review_report(
    report_id: int,
    payload: ReportUpdateIn,
    mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    report = await moderation_service.review_report(db, mod, report_id, payload.status)
    return {"success": True, "status": report.status}


@router.get("/moderation-log", response_model=PageOut[ModerationLogOut])
async def moderation_log(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    _mod: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    rows, meta = await _page(
        db,
        select(func.count(ModerationLog.id)),
        select(ModerationLog, User.username)
        .outerjoin(User, User.id == ModerationLog.moderator_id)
        .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc()),
        page,
        per_page,
    )
    return PageOut[ModerationLogOut](items=[_log_out(e, name) for e, name in rows], **meta)


# ------------------------------
# Users (admin only)
# ------------------------------
@router.get("/users", response_model=PageOut[AdminUserOut])
async def list_users(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    filters = [User.username.ilike(f"%{search}%")] if search else []
    rows, meta = await _page(
        db,
        select(func.count(User.id)).where(*filters),
        select(User).where(*filters).order_by(User.created_at.desc(), User.username),
        page,
        per_page,
    )
    return PageOut[AdminUserOut](items=[AdminUserOut.model_validate(u) for (u,) in rows], **meta)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdateIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    user = await moderation_service.update_user(
        db,
        admin,
        user_id,
        role=payload.role,
        is_banned=payload.is_banned,
        ban_reason=payload.ban_reason,
    )
    return {"success": True, "user": AdminUserOut.model_validate(user)}


# ------------------------------
# Structure (admin only)
# ------------------------------
@router.get("/categories")
async def list_categories(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    rows = await db.execute(
        select(Category, func.count(Subforum.id))
        .outerjoin(Subforum, Subforum.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.sort_order, Category.id)
    )
    return [
        {
            "id": c.id,
            "name": c.name,
            "description": c.description or "",
            "sort_order": c.sort_order,
            "subforum_count": int(n or 0),
        }
        for c, n in rows.all()
    ]


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreateIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    category = await structure_service.create_category(db, admin, payload.name, payload.description)
    return {"success": True, "categoryId": category.id}


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: int,
    payload: CategoryUpdateIn,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await structure_service.update_category(
        db,
        category_id,
        name=payload.name,
        description=payload.description,
        sort_order=payload.sort_order,
    )
    return {"success": True}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await structure_service.delete_category(db, admin, category_id)
    return {"success": True}


@router.post("/subforums", status_code=status.HTTP_201_CREATED)
async def create_subforum(
    payload: SubforumCreateIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    subforum = await structure_service.create_subforum(
        db,
        admin,
        payload.category_id,
        payload.name,
        payload.description,
        icon_color=payload.icon_color,
        icon_label=payload.icon_label,
    )
    return {"success": True, "subforumId": subforum.id}


@router.patch("/subforums/{subforum_id}")
async def update_subforum(
    subforum_id: int,
    payload: SubforumUpdateIn,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await structure_service.update_subforum(db, subforum_id, **payload.model_dump())
    return {"success": True}


@router.delete("/subforums/{subforum_id}")
async def delete_subforum(
    subforum_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await structure_service.delete_subforum(db, admin, subforum_id)
    return {"success": True}


# ------------------------------
# Settings (admin only)
# ------------------------------
@router.get("/settings")
async def get_settings(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await settings_service.get_settings(db)


@router.patch("/settings")
async def update_settings(
    payload: SettingsUpdateIn,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.action == "reset":
        settings = await settings_service.reset_settings(db)
    elif payload.settings is not None:
        settings = await settings_service.update_settings(db, payload.settings)
    else:
        raise BadRequest('Provide "settings" or "action": "reset".')
    return {"success": True, "settings": settings}
