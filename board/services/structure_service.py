# board/services/structure_service.py
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from board.database import atomic
from board.errors import BadRequest, NotFound
from board.models.forum_model import Category, Subforum, Thread
from board.models.user_model import User
from board.services.audit import log_action

logger = logging.getLogger(__name__)

CATEGORY_NOT_EMPTY = "Cannot delete category that contains subforums. Remove subforums first."
SUBFORUM_NOT_EMPTY = "Cannot delete subforum that contains threads. Move or delete threads first."
DEFAULT_ICON_COLOR = "#4A9B9B"


async def _next_sort_order(db: AsyncSession, column, *criteria) -> int:
    stmt = select(func.max(column))
    if criteria:
        stmt = stmt.where(*criteria)
    return int((await db.execute(stmt)).scalar_one() or 0) + 1


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise BadRequest("Name is required.")
    return name


# ------------------------------
# categories
# ------------------------------
async def create_category(db: AsyncSession, admin: User, name: str, description: str = "") -> Category:
    name = _clean_name(name)
    async with atomic(db):
        category = Category(
            name=name,
            description=description or "",
            sort_order=await _next_sort_order(db, Category.sort_order),
        )
        db.add(category)
        await db.flush()
        await log_action(db, admin.id, "created category", "category", category.id, f"Created category: {name}")
    return category


async def update_category(
    db: AsyncSession,
    category_id: int,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    sort_order: Optional[int] = None,
) -> Category:
    category = await db.get(Category, category_id)
    if not category:
        raise NotFound("Category not found.")
    if name is None and description is None and sort_order is None:
        raise BadRequest("No updates provided.")

    async with atomic(db):
        if name is not None:
            category.name = _clean_name(name)
        if description is not None:
            category.description = description
        if sort_order is not None:
            category.sort_order = sort_order
    return category


async def delete_category(db: AsyncSession, admin: User, category_id: int) -> None:
    category = await db.get(Category, category_id)
    if not category:
        raise NotFound("Category not found.")

    children = (
        await db.execute(select(func.count(Subforum.id)).where(Subforum.category_id == category_id))
    ).scalar_one()
    if children:
        raise BadRequest(CATEGORY_NOT_EMPTY)

    # The restrictive FK is the real guard; the count above only makes the message friendly.
    try:
        async with atomic(db):
            await db.delete(category)
            await db.flush()
            await log_action(
                db, admin.id, "deleted category", "category", category_id, f"Deleted category #{category_id}"
            )
    except IntegrityError:
        logger.warning("category %s gained a subforum while being deleted", category_id)
        raise BadRequest(CATEGORY_NOT_EMPTY)


# ------------------------------
# subforums
# ------------------------------
async def create_subforum(
    db: AsyncSession,
    admin: User,
    category_id: int,
    name: str,
    description: str = "",
    icon_color: Optional[str] = None,
    icon_label: Optional[str] = None,
) -> Subforum:
    name = _clean_name(name)
    if not await db.get(Category, category_id):
        raise NotFound("Category not found.")

    async with atomic(db):
        subforum = Subforum(
            category_id=category_id,
            name=name,
            description=description or "",
            sort_order=await _next_sort_order(db, Subforum.sort_order, Subforum.category_id == category_id),
            icon_color=icon_color or DEFAULT_ICON_COLOR,
            icon_label=icon_label or name[:2].upper(),
        )
        db.add(subforum)
        await db.flush()
        await log_action(db, admin.id, "created subforum", "subforum", subforum.id, f"Created subforum: {name}")
    return subforum


async def update_subforum(db: AsyncSession, subforum_id: int, **changes) -> Subforum:
    subforum = await db.get(Subforum, subforum_id)
    if not subforum:
        raise NotFound("Subforum not found.")

    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise BadRequest("No updates provided.")

    if "category_id" in changes and not await db.get(Category, changes["category_id"]):
        raise NotFound("Category not found.")
    if "name" in changes:
        changes["name"] = _clean_name(changes["name"])

    async with atomic(db):
        for field, value in changes.items():
            setattr(subforum, field, value)
    return subforum


async def delete_subforum(db: AsyncSession, admin: User, subforum_id: int) -> None:
    subforum = await db.get(Subforum, subforum_id)
    if not subforum:
        raise NotFound("Subforum not found.")

    children = (
        await db.execute(select(func.count(Thread.id)).where(Thread.subforum_id == subforum_id))
    ).scalar_one()
    if children:
        raise BadRequest(SUBFORUM_NOT_EMPTY)

    try:
        async with atomic(db):
            await db.delete(subforum)
            await db.flush()
            await log_action(
                db, admin.id, "deleted subforum", "subforum", subforum_id, f"Deleted subforum #{subforum_id}"
            )
    except IntegrityError:
        logger.warning("subforum %s gained a thread while being deleted", subforum_id)
        raise BadRequest(SUBFORUM_NOT_EMPTY)
