"""
User Repository
Database operations for user lookups.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_api.models.user import User
from pms_api.repositories.base import CRUDBase


class UserRepository(CRUDBase[User]):
    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            select(User).where(User.email == email.lower().strip(), User.is_deleted == False)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def get_active(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        result = await db.execute(
            select(User).where(
                User.id == user_id,
                User.is_active == True,  # noqa: E712
                User.is_deleted == False,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()


user_repository = UserRepository(User)
