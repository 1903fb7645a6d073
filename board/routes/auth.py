import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from board.database import atomic, get_async_session, utcnow
from board.errors import Conflict, Forbidden, Unauthorized
from board.limiter import limiter
from board.models.user_model import User
from board.schemas.user_schemas import AuthOut, LoginIn, MeOut, RegisterIn
from board.utils.token_utils import (
    clear_session_cookie,
    create_access_token,
    get_current_user_optional,
    hash_password,
    set_session_cookie,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

USERNAME_TAKEN = "Username already taken."


def _session_user(user: User) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role}


def _login_response(response: Response, user: User) -> dict:
    token = create_access_token(user)
    set_session_cookie(response, token)
    return {"success": True, "user": _session_user(user), "access_token": token}


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    response: Response,
    payload: RegisterIn,
    db: AsyncSession = Depends(get_async_session),
):
    username = payload.username.strip()

    existing = (
        await db.execute(select(User.id).where(func.lower(User.username) == username.lower()))
    ).first()
    if existing:
        raise Conflict(USERNAME_TAKEN)

    user = User(username=username, password_hash=hash_password(payload.password), last_seen=utcnow())
    try:
        async with atomic(db):
            db.add(user)
            await db.flush()
    except IntegrityError:
        # lost a race on the lower(username) index
        raise Conflict(USERNAME_TAKEN)

    logger.info("registered user %s", user.username)
    return _login_response(response, user)


@router.post("/login", response_model=AuthOut)
@limiter.limit("5/minute")
async def login(
    request: Request,
    response: Response,
    payload: LoginIn,
    db: AsyncSession = Depends(get_async_session),
):
    user = (
        await db.execute(select(User).where(func.lower(User.username) == payload.username.strip().lower()))
    ).scalars().first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid username or password.")

    if user.is_banned:
        reason = f" Reason: {user.ban_reason}" if user.ban_reason else ""
        logger.warning("banned user %s tried to log in", user.username)
        raise Forbidden(f"This account has been banned.{reason}")

    async with atomic(db):
        user.last_seen = utcnow()

    return _login_response(response, user)


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}


@router.get("/me", response_model=MeOut)
async def me(user: User = Depends(get_current_user_optional)):
    return {"user": _session_user(user) if user else None}
