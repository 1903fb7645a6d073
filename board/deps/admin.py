# board/deps/admin.py
import logging

from fastapi import Depends

from board.errors import Forbidden
from board.models.user_model import User
from board.utils.token_utils import get_current_user

logger = logging.getLogger(__name__)

STAFF_ROLES = ("moderator", "admin")


def is_staff(user: User) -> bool:
    return (getattr(user, "role", "") or "").lower() in STAFF_ROLES


def is_admin(user: User) -> bool:
    return (getattr(user, "role", "") or "").lower() == "admin"


async def get_active_user(user: User = Depends(get_current_user)) -> User:
    """
    The authenticated user, refused when the account is banned.
    Used for everything that writes content (threads, replies, reports).
    """
    if user.is_banned:
        raise Forbidden("This account has been banned.")
    return user


async def require_moderator(user: User = Depends(get_current_user)) -> User:
    """Requires role moderator or admin; 403 otherwise."""
    if not is_staff(user):
        logger.warning("user %s (%s) refused moderator access", user.username, user.role)
        raise Forbidden("Moderator access required.")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Requires role admin; 403 otherwise."""
    if not is_admin(user):
        logger.warning("user %s (%s) refused admin access", user.username, user.role)
        raise Forbidden("Admin access required.")
    return user
