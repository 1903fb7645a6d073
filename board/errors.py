# board/errors.py
from fastapi import HTTPException, status


class ForumError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class BadRequest(ForumError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(ForumError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(ForumError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ForumError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ForumError):
    status_code = status.HTTP_409_CONFLICT
