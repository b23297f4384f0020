"""
User lookup.

Accounts are managed outside this service; only existence and the active
flag matter here.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from beerank.app.core.exceptions import ResourceNotFoundError
from beerank.app.models.user import User


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """Return the user, or None if unknown."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def require_active_user(db: AsyncSession, user_id: int) -> User:
    """
    Load a user that must exist and be active.

    Raises:
        ResourceNotFoundError: If the user is unknown or deactivated
    """
    user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise ResourceNotFoundError("User", user_id)
    return user
