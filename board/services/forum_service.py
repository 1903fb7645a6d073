# board/services/forum_service.py
"""
Every write that touches threads or posts goes through this module.

Each public coroutine bundles the row mutation with all of its counter
deltas (subforum <- thread <- post, plus the author's post_count) inside a
single ``atomic`` block, so either the whole effect lands or none of it
does. Counter arithmetic happens in SQL, never as read-modify-write in
Python, and decrements are floored at zero.
"""
import logging
from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from board.database import atomic, utcnow
from board.errors import BadRequest, Forbidden, NotFound
from board.models.forum_model import Post, Reaction, Subforum, Thread
from board.models.moderation_model import Report
from board.models.user_model import User
from board.services.audit import log_action

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 50_000


# ------------------------------
# helpers
# ------------------------------
def _check_title(title: str) -> None:
    if not title or not (TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH):
        raise BadRequest("Title must be between 3 and 200 characters.")


def _check_content(content: str) -> None:
    if not content or len(content) > CONTENT_MAX_LENGTH:
        raise BadRequest("Content must be between 1 and 50,000 characters.")


def _floored(column, amount: int):
    """``column - amount`` that never goes below zero."""
    return case((column - amount < 0, 0), else_=column - amount)


async def _bump(db: AsyncSession, model, row_id, **values) -> None:
    # Counters belong to SQL; loaded objects are not synchronised, re-read them.
    await db.execute(
        update(model)
        .where(model.id == row_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def _count_posts(db: AsyncSession, thread_id: int) -> int:
    return int(
        (await db.execute(select(func.count(Post.id)).where(Post.thread_id == thread_id))).scalar_one() or 0
    )


async def _refresh_thread_last_post(db: AsyncSession, thread_id: int) -> None:
    newest = (
        await db.execute(
            select(Post.created_at, Post.user_id, User.username)
            .join(User, User.id == Post.user_id)
            .where(Post.thread_id == thread_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(1)
        )
    ).first()
    if newest is None:
        return
    await _bump(
        db,
        Thread,
        thread_id,
        last_post_at=newest.created_at,
        last_post_user_id=newest.user_id,
        last_post_username=newest.username,
    )


async def _refresh_subforum_activity(db: AsyncSession, subforum_id: int) -> None:
    """Point the subforum's last-activity triple at its most recently active thread."""
    latest = (
        await db.execute(
            select(Thread.id, Thread.last_post_at, Thread.last_post_username)
            .where(Thread.subforum_id == subforum_id)
            .order_by(Thread.last_post_at.desc(), Thread.id.desc())
            .limit(1)
        )
    ).first()
    await _bump(
        db,
        Subforum,
        subforum_id,
        last_thread_id=latest.id if latest else None,
        last_post_at=latest.last_post_at if latest else None,
        last_post_username=latest.last_post_username if latest else None,
    )


async def _subforum_points_at(db: AsyncSession, subforum_id: int, thread_id: int) -> bool:
    current = (
        await db.execute(select(Subforum.last_thread_id).where(Subforum.id == subforum_id))
    ).scalar_one_or_none()
    return current == thread_id


async def _purge_thread(db: AsyncSession, thread: Thread) -> int:
    """Remove a thread with everything hanging off its posts. Returns the number of posts removed."""
    thread_id, subforum_id = thread.id, thread.subforum_id
    post_ids = select(Post.id).where(Post.thread_id == thread_id)

    await db.execute(delete(Report).where(Report.post_id.in_(post_ids)))
    await db.execute(delete(Reaction).where(Reaction.post_id.in_(post_ids)))

    removed = await _count_posts(db, thread_id)
    await db.execute(delete(Post).where(Post.thread_id == thread_id))
    await db.execute(delete(Thread).where(Thread.id == thread_id))

    await _bump(
        db,
        Subforum,
        subforum_id,
        thread_count=_floored(Subforum.thread_count, 1),
        post_count=_floored(Subforum.post_count, removed),
    )
    if await _subforum_points_at(db, subforum_id, thread_id):
        await _refresh_subforum_activity(db, subforum_id)
    return removed


async def _get_thread(db: AsyncSession, thread_id: int) -> Thread:
    thread = await db.get(Thread, thread_id)
    if not thread:
        raise NotFound("Thread not found.")
    return thread


# ------------------------------
# creation
# ------------------------------
async def create_thread(db: AsyncSession, author: User, subforum_id: int, title: str, content: str) -> Thread:
    _check_title(title)
    _check_content(content)

    subforum = await db.get(Subforum, subforum_id)
    if not subforum:
        raise NotFound("Subforum not found.")

    now = utcnow()
    async with atomic(db):
        thread = Thread(
            subforum_id=subforum.id,
            user_id=author.id,
            title=title,
            created_at=now,
            last_post_at=now,
            last_post_user_id=author.id,
            last_post_username=author.username,
        )
        db.add(thread)
        await db.flush()  # get thread.id

        db.add(
            Post(
                thread_id=thread.id,
                user_id=author.id,
                content=content,
                is_opening_post=True,
                created_at=now,
            )
        )
        await db.flush()

        await _bump(
            db,
            Subforum,
            subforum.id,
            thread_count=Subforum.thread_count + 1,
            post_count=Subforum.post_count + 1,
            last_thread_id=thread.id,
            last_post_at=now,
            last_post_username=author.username,
        )
        await _bump(db, User, author.id, post_count=User.post_count + 1)

    logger.info("thread %s created in subforum %s by %s", thread.id, subforum.id, author.username)
    return thread


async def create_reply(db: AsyncSession, author: User, thread_id: int, content: str) -> Post:
    _check_content(content)

    thread = await _get_thread(db, thread_id)
    if thread.is_locked:
        raise Forbidden("This thread is locked.")

    now = utcnow()
    async with atomic(db):
        post = Post(thread_id=thread.id, user_id=author.id, content=content, created_at=now)
        db.add(post)
        await db.flush()

        await _bump(
            db,
            Thread,
            thread.id,
            reply_count=Thread.reply_count + 1,
            last_post_at=now,
            last_post_user_id=author.id,
            last_post_username=author.username,
        )
        # any reply is the newest activity in its subforum at insert time
        await _bump(
            db,
            Subforum,
            thread.subforum_id,
            post_count=Subforum.post_count + 1,
            last_thread_id=thread.id,
            last_post_at=now,
            last_post_username=author.username,
        )
        await _bump(db, User, author.id, post_count=User.post_count + 1)

    logger.info("post %s added to thread %s by %s", post.id, thread.id, author.username)
    return post


# ------------------------------
# deletion
# ------------------------------
async def delete_thread(db: AsyncSession, moderator: User, thread_id: int) -> int:
    """Delete a thread and all of its posts. Returns the number of posts removed."""
    thread = await _get_thread(db, thread_id)
    title = thread.title

    async with atomic(db):
        removed = await _purge_thread(db, thread)
        await log_action(db, moderator.id, "deleted thread", "thread", thread_id, f"Deleted thread: {title}")

    logger.info("thread %s deleted (%d posts) by %s", thread_id, removed, moderator.username)
    return removed


async def delete_post(db: AsyncSession, moderator: User, post_id: int) -> bool:
    """
    Delete a single post. Deleting the opening post deletes the whole
    thread instead. Returns True when the thread went with it.
    """
    post = await db.get(Post, post_id)
    if not post:
        raise NotFound("Post not found.")
    thread = await _get_thread(db, post.thread_id)
    is_op = bool(post.is_opening_post)

    async with atomic(db):
        if is_op:
            await _purge_thread(db, thread)
            action = "deleted thread (via OP post)"
        else:
            await db.execute(delete(Report).where(Report.post_id == post_id))
            await db.execute(delete(Reaction).where(Reaction.post_id == post_id))
            await db.execute(delete(Post).where(Post.id == post_id))

            await _bump(db, Thread, thread.id, reply_count=_floored(Thread.reply_count, 1))
            await _bump(db, Subforum, thread.subforum_id, post_count=_floored(Subforum.post_count, 1))

            await _refresh_thread_last_post(db, thread.id)
            if await _subforum_points_at(db, thread.subforum_id, thread.id):
                await _refresh_subforum_activity(db, thread.subforum_id)
            action = "deleted post"

        await log_action(db, moderator.id, action, "post", post_id, f"Post #{post_id} deleted")

    logger.info("post %s deleted by %s (thread deleted: %s)", post_id, moderator.username, is_op)
    return is_op


# ------------------------------
# administrative field edits
# ------------------------------
async def _move_thread(db: AsyncSession, thread: Thread, target_id: int) -> None:
    source_id = thread.subforum_id
    if source_id == target_id:
        return

    carried = await _count_posts(db, thread.id)
    thread.subforum_id = target_id
    await db.flush()

    await _bump(
        db,
        Subforum,
        source_id,
        thread_count=_floored(Subforum.thread_count, 1),
        post_count=_floored(Subforum.post_count, carried),
    )
    await _bump(
        db,
        Subforum,
        target_id,
        thread_count=Subforum.thread_count + 1,
        post_count=Subforum.post_count + carried,
    )
    await _refresh_subforum_activity(db, source_id)
    await _refresh_subforum_activity(db, target_id)


async def update_thread(
    db: AsyncSession,
    moderator: User,
    thread_id: int,
    *,
    is_sticky: Optional[bool] = None,
    is_locked: Optional[bool] = None,
    subforum_id: Optional[int] = None,
) -> Thread:
    if is_sticky is None and is_locked is None and subforum_id is None:
        raise BadRequest("No updates provided.")

    thread = await _get_thread(db, thread_id)
    if subforum_id is not None and not await db.get(Subforum, subforum_id):
        raise BadRequest("Target subforum not found.")

    actions = []
    async with atomic(db):
        if is_sticky is not None:
            thread.is_sticky = bool(is_sticky)
            actions.append("stickied" if is_sticky else "unstickied")
        if is_locked is not None:
            thread.is_locked = bool(is_locked)
            actions.append("locked" if is_locked else "unlocked")
        if subforum_id is not None and subforum_id != thread.subforum_id:
            await _move_thread(db, thread, subforum_id)
            actions.append("moved")

        if not actions:
            # nothing changed; no audit entry
            return thread

        await log_action(db, moderator.id, ", ".join(actions), "thread", thread.id, f"Thread: {thread.title}")

    return thread


async def edit_post(db: AsyncSession, moderator: User, post_id: int, content: str) -> Post:
    if not content:
        raise BadRequest("Content cannot be empty.")
    _check_content(content)

    post = await db.get(Post, post_id)
    if not post:
        raise NotFound("Post not found.")

    async with atomic(db):
        post.content = content
        post.is_edited = True
        post.edited_at = utcnow()
        await log_action(db, moderator.id, "edited post", "post", post.id, "Moderator edited post content")

    return post


async def record_view(db: AsyncSession, thread_id: int) -> None:
    async with atomic(db):
        await _bump(db, Thread, thread_id, view_count=Thread.view_count + 1)


async def toggle_reaction(db: AsyncSession, user: User, post_id: int, reaction_type: str) -> tuple[bool, int]:
    """Add the reaction if the user has not made it yet, otherwise remove it."""
    post = await db.get(Post, post_id)
    if not post:
        raise NotFound("Post not found.")

    existing = (
        await db.execute(
            select(Reaction)
            .where(
                Reaction.post_id == post_id,
                Reaction.user_id == user.id,
                Reaction.reaction_type == reaction_type,
            )
            .limit(1)
        )
    ).scalars().first()

    async with atomic(db):
        if existing:
            await db.delete(existing)
        else:
            db.add(Reaction(post_id=post_id, user_id=user.id, reaction_type=reaction_type))

    count = (
        await db.execute(
            select(func.count(Reaction.id)).where(
                Reaction.post_id == post_id, Reaction.reaction_type == reaction_type
            )
        )
    ).scalar_one()
    return existing is None, int(count or 0)
