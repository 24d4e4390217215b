from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserUpdate, Role, Features

logger = logging.getLogger(__name__)


class UserRepository:

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def upsert(self, email: str, first_name: str = "", last_name: str = "") -> User:
        """Return the user with this email, creating a Base user if absent."""
        user = await self.get_by_email(email)
        if user is not None:
            # keep stored profile and role; only fill blanks
            if not user.first_name and first_name:
                user.first_name = first_name
            if not user.last_name and last_name:
                user.last_name = last_name
            await self.db.commit()
            await self.db.refresh(user)
            return user

        user = User(
            email=email.lower(),
            first_name=first_name or "",
            last_name=last_name or "",
            role=int(Role.BASE),
            features=int(Features.NONE),
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Created user %s", user.user_id)
        return user

    async def update(self, user_id: str, user_update: UserUpdate) -> Optional[User]:
        user = await self.get_by_id(user_id)
        if user is None:
            return None

        for field, value in user_update.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, field, value)

        await self.db.commit()
        await self.db.refresh(user)
        return user
