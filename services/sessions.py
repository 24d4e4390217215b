from __future__ import annotations
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from models.paging import Page, PagingInstruction
from models.session import Session
from services.database import as_utc, utcnow
from services.paging import fetch_page

logger = logging.getLogger(__name__)


class SessionRepository:

    def __init__(self, db: AsyncSession, lifespan: timedelta = timedelta(days=7)) -> None:
        self.db = db
        self.lifespan = lifespan

    async def create(self, user_id: str, session_signature: str, ip_address: str, user_agent: str) -> Session:
        now = utcnow()
        session = Session(
            user_id=user_id,
            session_signature=session_signature,
            ip_address=ip_address,
            user_agent=user_agent,
            date_created=now,
            date_last_accessed=now,
            date_expires=now + self.lifespan,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def get_page(self, user_id: str, instruction: Optional[PagingInstruction] = None) -> Page[Session]:
        stmt = select(Session).where(Session.user_id == user_id)
        return await fetch_page(self.db, stmt, Session.date_created, Session.session_id, instruction)

    async def get_by_signature(self, user_id: str, session_signature: str) -> Optional[Session]:
        result = await self.db.execute(
            select(Session).where(
                Session.user_id == user_id,
                Session.session_signature == session_signature,
            )
        )
        return result.scalar_one_or_none()

    async def verify(self, user_id: str, session_signature: str) -> Optional[Session]:
        """
        Look up a live session and slide its expiry forward.

        Expired sessions are deleted and reported as missing.
        """
        session = await self.get_by_signature(user_id, session_signature)
        if session is None:
            return None

        now = utcnow()
        if as_utc(session.date_expires) <= now:
            logger.info("Session %s expired", session.session_id)
            await self.db.delete(session)
            await self.db.commit()
            return None

        session.date_last_accessed = now
        session.date_expires = now + self.lifespan
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def delete_by_signature(self, user_id: str, session_signature: str) -> bool:
        result = await self.db.execute(
            delete(Session).where(
                Session.user_id == user_id,
                Session.session_signature == session_signature,
            )
        )
        await self.db.commit()
        return result.rowcount > 0

    async def delete_many(self, user_id: str, session_ids: list[str]) -> int:
        """Delete the listed sessions; ids owned by other users are ignored."""
        result = await self.db.execute(
            delete(Session).where(
                Session.user_id == user_id,
                Session.session_id.in_(session_ids),
            )
        )
        await self.db.commit()
        return result.rowcount

    async def purge_expired(self) -> int:
        result = await self.db.execute(delete(Session).where(Session.date_expires <= utcnow()))
        await self.db.commit()
        if result.rowcount:
            logger.info("Purged %d expired sessions", result.rowcount)
        return result.rowcount
