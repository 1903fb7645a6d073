import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./forum.db")
SQL_ECHO = _flag("SQL_ECHO", "false")

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))  # 30 days

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "board_session")
SESSION_COOKIE_SECURE = _flag("SESSION_COOKIE_SECURE", "false")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "*").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

THREADS_PER_PAGE = int(os.getenv("THREADS_PER_PAGE", "20"))
POSTS_PER_PAGE = int(os.getenv("POSTS_PER_PAGE", "20"))
ADMIN_PAGE_MAX = int(os.getenv("ADMIN_PAGE_MAX", "50"))
