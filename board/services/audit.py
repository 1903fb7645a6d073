# board/services/audit.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from board.models.moderation_model import ModerationLog

logger = logging.getLogger(__name__)


async def log_action(
    db: AsyncSession,
    moderator_id: str,
    action: str,
    target_type: str,
    target_id,
    reason: str = "",
) -> ModerationLog:
    """Append an audit entry inside the caller's transaction."""
    entry = ModerationLog(
        moderator_id=moderator_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id),
        reason=reason or "",
    )
    db.add(entry)
    await db.flush()
    logger.info("moderation: %s %s %s #%s", moderator_id, action, target_type, target_id)
    return entry
