"""Username registry endpoints."""

from typing import Any

from litestar import Controller, get, post
from litestar.exceptions import HTTPException, NotFoundException, ValidationException
from litestar.status_codes import HTTP_409_CONFLICT
from sqlalchemy.ext.asyncio import AsyncSession

from packhub.auth.api_key import api_key_guard
from packhub.db.services import username_service


def _require_username(data: dict[str, Any]) -> str:
    username = username_service.normalize_username(data.get("username"))
    if username is None:
        raise ValidationException(detail="Username is required and must be a non-empty string")
    return username


class UsernameController(Controller):
    path = "/"

    @post("/register", guards=[api_key_guard], status_code=201)
    async def register(self, db_session: AsyncSession, data: dict[str, Any]) -> dict[str, str]:
        username = _require_username(data)
        try:
            record = await username_service.register_username(db_session, username)
        except username_service.UsernameExistsError:
            raise HTTPException(status_code=HTTP_409_CONFLICT, detail="Username already exists") from None
        return {"message": "Username registered successfully", "username": record.username}

    @get("/usernames")
    async def list_usernames(self, db_session: AsyncSession) -> dict[str, list[str]]:
        return {"usernames": await username_service.list_usernames(db_session)}

    @post("/check-username", status_code=200)
    async def check_username(self, db_session: AsyncSession, data: dict[str, Any]) -> bool:
        username = _require_username(data)
        return await username_service.username_exists(db_session, username)

    @post("/delete-username", guards=[api_key_guard], status_code=200)
    async def delete_username(self, db_session: AsyncSession, data: dict[str, Any]) -> dict[str, str]:
        username = _require_username(data)
        if not await username_service.delete_username(db_session, username):
            raise NotFoundException(detail="Username not found")
        return {"message": "Username deleted successfully"}
