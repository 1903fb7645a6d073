import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from board import config
from board.database import get_async_session, utcnow
from board.deps.admin import get_active_user
from board.errors import NotFound
from board.limiter import limiter
from board.models.forum_model import Category, Post, Subforum, Thread
from board.models.user_model import User
from board.schemas.forum_schemas import (
    BreadcrumbOut,
    CategoryOut,
    CreatePostIn,
    CreateReportIn,
    CreateThreadIn,
    ForumStatsOut,
    PageOut,
    PostOut,
    ReactionIn,
    ReactionToggleOut,
    SubforumChoiceOut,
    SubforumOut,
    SubforumPageOut,
    ThreadOut,
    ThreadPageOut,
)
from board.schemas.user_schemas import ProfileOut, RecentPostOut, UserOut
from board.services import forum_service, moderation_service, settings_service
from board.utils.forum_content import render_post_content
from board.utils.pagination import clamp_page, page_meta

logger = logging.getLogger(__name__)

router = APIRouter(tags=["forum"])

ONLINE_WINDOW = timedelta(minutes=15)


# ------------------------------
# Mappers
# ------------------------------
def _thread_out(thread: Thread, author_username: Optional[str] = None, subforum_name: Optional[str] = None) -> ThreadOut:
    out = ThreadOut.model_validate(thread)
    out.author_username = author_username
    out.subforum_name = subforum_name
    return out


def _post_out(post: Post, author: Optional[User]) -> PostOut:
    return PostOut(
        id=post.id,
        thread_id=post.thread_id,
        user_id=post.user_id,
        author_username=getattr(author, "username", None),
        author_role=getattr(author, "role", None),
        author_post_count=getattr(author, "post_count", None),
        author_created_at=getattr(author, "created_at", None),
        content=post.content,
        content_html=render_post_content(post.content),
        created_at=post.created_at,
        edited_at=post.edited_at,
        is_edited=bool(post.is_edited),
        is_opening_post=bool(post.is_opening_post),
    )


async def _thread_titles(db: AsyncSession, thread_ids) -> dict:
    ids = [i for i in thread_ids if i]
    if not ids:
        return {}
    rows = await db.execute(select(Thread.id, Thread.title).where(Thread.id.in_(ids)))
    return {tid: title for tid, title in rows.all()}


# ------------------------------
# Read surface
# ------------------------------
@router.get("/categories", response_model=List[CategoryOut])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    categories = (await db.execute(select(Category).order_by(Category.sort_order, Category.id))).scalars().all()
    subforums = (
        await db.execute(select(Subforum).order_by(Subforum.sort_order, Subforum.id))
    ).scalars().all()
    titles = await _thread_titles(db, {s.last_thread_id for s in subforums})

    by_category = {}
    for s in subforums:
        out = SubforumOut.model_validate(s)
        out.last_thread_title = titles.get(s.last_thread_id)
        by_category.setdefault(s.category_id, []).append(out)

    return [
        CategoryOut(
            id=c.id,
            name=c.name,
            description=c.description or "",
            sort_order=c.sort_order,
            subforums=by_category.get(c.id, []),
        )
        for c in categories
    ]


@router.get("/subforums", response_model=List[SubforumChoiceOut])
async def list_subforum_choices(db: AsyncSession = Depends(get_async_session)):
    rows = await db.execute(
        select(Subforum.id, Subforum.name, Category.name.label("category_name"))
        .join(Category, Category.id == Subforum.category_id)
        .order_by(Category.sort_order, Subforum.sort_order, Subforum.id)
    )
    return [SubforumChoiceOut(id=r.id, name=r.name, category_name=r.category_name) for r in rows.all()]


@router.get("/subforums/{subforum_id}", response_model=SubforumPageOut)
async def get_subforum(
    subforum_id: int,
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_async_session),
):
    row = (
        await db.execute(
            select(Subforum, Category.name)
            .join(Category, Category.id == Subforum.category_id)
            .where(Subforum.id == subforum_id)
        )
    ).first()
    if not row:
        raise NotFound("Subforum not found.")
    subforum, category_name = row

    page_size = config.THREADS_PER_PAGE
    total = int(
        (await db.execute(select(func.count(Thread.id)).where(Thread.subforum_id == subforum_id))).scalar_one() or 0
    )
    page, total_pages = clamp_page(page, total, page_size)

    rows = await db.execute(
        select(Thread, User.username)
        .outerjoin(User, User.id == Thread.user_id)
        .where(Thread.subforum_id == subforum_id)
        .order_by(Thread.is_sticky.desc(), Thread.last_post_at.desc(), Thread.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    threads = [_thread_out(t, username) for t, username in rows.all()]

    out = SubforumOut.model_validate(subforum)
    out.category_name = category_name
    out.last_thread_title = (await _thread_titles(db, [subforum.last_thread_id])).get(subforum.last_thread_id)

    return SubforumPageOut(
        subforum=out,
        threads=PageOut[ThreadOut](items=threads, **page_meta(page, page_size, total, total_pages)),
    )


@router.get("/threads/{thread_id}", response_model=ThreadPageOut)
async def get_thread(
    thread_id: int,
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_async_session),
):
    # bump first so the thread row read below already carries the new count
    await forum_service.record_view(db, thread_id)

    row = (
        await db.execute(
            select(Thread, User.username, Subforum, Category)
            .outerjoin(User, User.id == Thread.user_id)
            .join(Subforum, Subforum.id == Thread.subforum_id)
            .join(Category, Category.id == Subforum.category_id)
            .where(Thread.id == thread_id)
        )
    ).first()
    if not row:
        raise NotFound("Thread not found.")
    thread, author_username, subforum, category = row

    page_size = config.POSTS_PER_PAGE
    total = int(
        (await db.execute(select(func.count(Post.id)).where(Post.thread_id == thread_id))).scalar_one() or 0
    )
    page, total_pages = clamp_page(page, total, page_size)

    rows = await db.execute(
        select(Post, User)
        .outerjoin(User, User.id == Post.user_id)
        .where(Post.thread_id == thread_id)
        .order_by(Post.created_at.asc(), Post.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    posts = [_post_out(p, u) for p, u in rows.all()]

    return ThreadPageOut(
        thread=_thread_out(thread, author_username, subforum.name),
        breadcrumb=BreadcrumbOut(
            category_id=category.id,
            category_name=category.name,
            subforum_id=subforum.id,
            subforum_name=subforum.name,
        ),
        posts=PageOut[PostOut](items=posts, **page_meta(page, page_size, total, total_pages)),
    )


@router.get("/stats", response_model=ForumStatsOut)
async def forum_stats(db: AsyncSession = Depends(get_async_session)):
    total_threads = (await db.execute(select(func.count(Thread.id)))).scalar_one()
    total_posts = (await db.execute(select(func.count(Post.id)))).scalar_one()
    total_members = (await db.execute(select(func.count(User.id)))).scalar_one()

    latest_member = (
        await db.execute(select(User.username).order_by(User.created_at.desc()).limit(1))
    ).scalar_one_or_none()

    # no presence tracking; "online" means seen recently
    online = (
        await db.execute(
            select(User.username)
            .where(User.last_seen.is_not(None), User.last_seen >= utcnow() - ONLINE_WINDOW)
            .order_by(User.last_seen.desc())
            .limit(20)
        )
    ).scalars().all()

    async def _threads(order_by):
        rows = await db.execute(
            select(Thread, User.username, Subforum.name)
            .outerjoin(User, User.id == Thread.user_id)
            .join(Subforum, Subforum.id == Thread.subforum_id)
            .order_by(order_by, Thread.id.desc())
            .limit(5)
        )
        return [_thread_out(t, username, sub_name) for t, username, sub_name in rows.all()]

    return ForumStatsOut(
        total_threads=int(total_threads or 0),
        total_posts=int(total_posts or 0),
        total_members=int(total_members or 0),
        latest_member=latest_member,
        online_members=list(online),
        recent_threads=await _threads(Thread.last_post_at.desc()),
        new_threads=await _threads(Thread.created_at.desc()),
    )


@router.get("/users/{username}", response_model=ProfileOut)
async def user_profile(username: str, db: AsyncSession = Depends(get_async_session)):
    user = (
        await db.execute(select(User).where(func.lower(User.username) == username.lower()))
    ).scalars().first()
    if not user:
        raise NotFound("User not found.")

    rows = await db.execute(
        select(Post.id, Post.thread_id, Thread.title, Post.content, Post.created_at)
        .join(Thread, Thread.id == Post.thread_id)
        .where(Post.user_id == user.id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(10)
    )
    recent = [
        RecentPostOut(id=pid, thread_id=tid, thread_title=title, content=content, created_at=created)
        for pid, tid, title, content, created in rows.all()
    ]
    return ProfileOut(user=UserOut.model_validate(user), recent_posts=recent)


@router.get("/settings/theme")
async def theme(db: AsyncSession = Depends(get_async_session)):
    return await settings_service.get_theme(db)


# ------------------------------
# Member writes
# ------------------------------
@router.post("/threads", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute;30/hour")
async def create_thread(
    request: Request,
    payload: CreateThreadIn,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await forum_service.create_thread(db, user, payload.subforum_id, payload.title.strip(), payload.content)
    return {"success": True, "threadId": thread.id}


@router.post("/posts", status_code=status.HTTP_201_CREATED)
@limiter.limit("6/minute;60/hour")
async def create_post(
    request: Request,
    payload: CreatePostIn,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    post = await forum_service.create_reply(db, user, payload.thread_id, payload.content)
    return {"success": True, "postId": post.id}


@router.post("/posts/{post_id}/reactions", response_model=ReactionToggleOut)
async def toggle_reaction(
    post_id: int,
    payload: Optional[ReactionIn] = None,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    reaction_type = payload.reaction_type if payload else "like"
    reacted, count = await forum_service.toggle_reaction(db, user, post_id, reaction_type)
    return ReactionToggleOut(reacted=reacted, count=count)


@router.post("/reports", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def create_report(
    request: Request,
    payload: CreateReportIn,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    report = await moderation_service.submit_report(db, user, payload.post_id, payload.reason)
    return {"success": True, "reportId": report.id}
