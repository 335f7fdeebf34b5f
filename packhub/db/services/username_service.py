"""Username service for registering and checking player names."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from packhub.db.models import Username


class UsernameExistsError(Exception):
    """Raised when registering a name that is already taken."""


def normalize_username(value) -> str | None:
    """Return the trimmed name, or None if *value* is not a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


async def username_exists(db_session: AsyncSession, username: str) -> bool:
    result = await db_session.execute(select(Username.id).where(Username.username == username))
    return result.scalar_one_or_none() is not None


async def register_username(db_session: AsyncSession, username: str) -> Username:
    if await username_exists(db_session, username):
        raise UsernameExistsError(username)

    record = Username(username=username)
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


async def list_usernames(db_session: AsyncSession) -> list[str]:
    result = await db_session.execute(select(Username.username).order_by(Username.created_at.asc()))
    return list(result.scalars().all())


async def delete_username(db_session: AsyncSession, username: str) -> bool:
    """Delete a username. Returns False if it was not registered."""
    result = await db_session.execute(delete(Username).where(Username.username == username))
    await db_session.commit()
    return bool(result.rowcount)
