# board/services/moderation_service.py
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from board.database import atomic, utcnow
from board.errors import BadRequest, Conflict, NotFound
from board.models.forum_model import Post
from board.models.moderation_model import REPORT_STATUSES, Report
from board.models.user_model import ROLES, User
from board.services.audit import log_action

logger = logging.getLogger(__name__)

REASON_MIN_LENGTH = 5
REASON_MAX_LENGTH = 1000


async def submit_report(db: AsyncSession, reporter: User, post_id: int, reason: str) -> Report:
    if not reason or not (REASON_MIN_LENGTH <= len(reason) <= REASON_MAX_LENGTH):
        raise BadRequest("Reason must be between 5 and 1000 characters.")

    post = await db.get(Post, post_id)
    if not post:
        raise NotFound("Post not found.")
    if post.user_id == reporter.id:
        raise BadRequest("You cannot report your own post.")

    existing = (
        await db.execute(
            select(Report.id).where(
                Report.post_id == post_id,
                Report.reporter_id == reporter.id,
                Report.status == "pending",
            )
        )
    ).first()
    if existing:
        raise Conflict("You have already reported this post.")

    async with atomic(db):
        report = Report(post_id=post_id, reporter_id=reporter.id, reason=reason)
        db.add(report)
        await db.flush()

    logger.info("post %s reported by %s", post_id, reporter.username)
    return report


async def review_report(db: AsyncSession, moderator: User, report_id: int, status: Optional[str]) -> Report:
    report = await db.get(Report, report_id)
    if not report:
        raise NotFound("Report not found.")
    if status is None:
        raise BadRequest("No updates provided.")
    if status not in REPORT_STATUSES:
        raise BadRequest("Invalid status.")

    async with atomic(db):
        report.status = status
        report.reviewed_by = moderator.id
        report.reviewed_at = utcnow()
        await log_action(
            db, moderator.id, f"{status} report", "report", report_id, f"Report #{report_id} marked as {status}"
        )
    return report


async def update_user(
    db: AsyncSession,
    admin: User,
    user_id: str,
    *,
    role: Optional[str] = None,
    is_banned: Optional[bool] = None,
    ban_reason: Optional[str] = None,
) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found.")
    if user.id == admin.id:
        raise BadRequest("You cannot modify your own account from the admin panel.")
    if role is not None and role not in ROLES:
        raise BadRequest("Invalid role.")

    async with atomic(db):
        if role is not None:
            user.role = role
            await log_action(
                db, admin.id, f"changed role to {role}", "user", user.id,
                f"Changed {user.username}'s role to {role}",
            )

        if is_banned is not None:
            user.is_banned = bool(is_banned)
            user.ban_reason = ban_reason or ""
            action = "banned user" if is_banned else "unbanned user"
            await log_action(db, admin.id, action, "user", user.id, ban_reason or f"{action}: {user.username}")

    return user
