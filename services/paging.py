from __future__ import annotations
from datetime import timezone
from typing import Any, Optional

from sqlalchemy import Select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from models.paging import Page, PagingInstruction, PagingInstructions
from services.database import as_utc


def _beyond(column: Any, tiebreak: Any, cursor, cursor_id: Optional[str], older: bool):
    """Rows strictly past the (column, tiebreak) boundary in the paging direction."""
    if older:
        past = column < cursor
        tied = tiebreak < cursor_id if cursor_id is not None else None
    else:
        past = column > cursor
        tied = tiebreak > cursor_id if cursor_id is not None else None
    if tied is None:
        return past
    return or_(past, and_(column == cursor, tied))


async def fetch_page(
    db: AsyncSession,
    stmt: Select,
    column: Any,
    tiebreak: Any,
    instruction: Optional[PagingInstruction],
) -> Page:
    """
    Cursor paging over `(column, tiebreak)`, newest first.

    `tiebreak` is the primary key, so rows sharing a timestamp keep a stable
    order and none are skipped at a page boundary. One extra row is fetched
    to learn whether another page exists. The cursor of `next` is the oldest
    item on this page; the cursor of `previous` is the newest.
    """
    instruction = instruction or PagingInstruction()
    size = instruction.size
    cursor = as_utc(instruction.cursor)
    if cursor is not None:
        cursor = cursor.astimezone(timezone.utc)

    backward = instruction.direction == "backward" and cursor is not None

    if backward:
        stmt = stmt.where(_beyond(column, tiebreak, cursor, instruction.cursor_id, older=False))
        stmt = stmt.order_by(column.asc(), tiebreak.asc())
    else:
        if cursor is not None:
            stmt = stmt.where(_beyond(column, tiebreak, cursor, instruction.cursor_id, older=True))
        stmt = stmt.order_by(column.desc(), tiebreak.desc())

    result = await db.execute(stmt.limit(size + 1))
    rows = list(result.scalars().all())
    has_more = len(rows) > size
    rows = rows[:size]

    if backward:
        rows.reverse()

    def boundary(item, direction: str) -> PagingInstruction:
        return PagingInstruction(
            cursor=as_utc(getattr(item, column.key)),
            cursor_id=getattr(item, tiebreak.key),
            size=size,
            direction=direction,
        )

    paging = PagingInstructions(current=instruction)
    if rows:
        if backward:
            paging.next = boundary(rows[-1], "forward")
            if has_more:
                paging.previous = boundary(rows[0], "backward")
        else:
            if has_more:
                paging.next = boundary(rows[-1], "forward")
            if cursor is not None:
                paging.previous = boundary(rows[0], "backward")

    return Page(items=rows, paging=paging)
