from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from models.api_key import ApiKey
from models.paging import Page, PagingInstruction
from security.tokens import generate_api_key, hash_api_key, api_key_prefix
from services.database import utcnow
from services.paging import fetch_page

logger = logging.getLogger(__name__)


class ApiKeyRepository:

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, user_id: str, label: str) -> tuple[ApiKey, str]:
        """Mint a key. The plaintext is returned here and never again."""
        plaintext = generate_api_key()
        api_key = ApiKey(
            user_id=user_id,
            api_key_hash=hash_api_key(plaintext),
            key_prefix=api_key_prefix(plaintext),
            label=label,
            date_created=utcnow(),
        )
        self.db.add(api_key)
        await self.db.commit()
        await self.db.refresh(api_key)
        logger.info("Created API key %s for user %s", api_key.api_key_id, user_id)
        return api_key, plaintext

    async def get_page(self, user_id: str, instruction: Optional[PagingInstruction] = None) -> Page[ApiKey]:
        stmt = select(ApiKey).where(ApiKey.user_id == user_id)
        return await fetch_page(self.db, stmt, ApiKey.date_created, ApiKey.api_key_id, instruction)

    async def verify(self, api_key: str) -> Optional[ApiKey]:
        result = await self.db.execute(
            select(ApiKey).where(ApiKey.api_key_hash == hash_api_key(api_key))
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None

        record.date_last_accessed = utcnow()
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def delete_many(self, user_id: str, api_key_ids: list[str]) -> int:
        result = await self.db.execute(
            delete(ApiKey).where(
                ApiKey.user_id == user_id,
                ApiKey.api_key_id.in_(api_key_ids),
            )
        )
        await self.db.commit()
        return result.rowcount
