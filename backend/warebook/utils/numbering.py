"""Booking code generation.

Format tokens (``settings.booking_code_format``):
  {date}   → YYYYMMDD
  {seq:N}  → zero-padded sequence, N digits, resets daily per prefix

Default: BK-{date}-{seq:3} → "BK-20260302-007"
"""

import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.config import settings
from warebook.models.booking import Booking

SEQ_RE = re.compile(r"\{seq:(\d+)\}")


def build_prefix(fmt: str, today_str: str) -> str:
    """Static part of the code before the sequence, used to count siblings."""
    prefix = fmt.replace("{date}", today_str)
    match = SEQ_RE.search(prefix)
    return prefix[: match.start()] if match else prefix


def format_code(fmt: str, today_str: str, seq_num: int) -> str:
    seq_match = SEQ_RE.search(fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3
    code = fmt.replace("{date}", today_str)
    return SEQ_RE.sub(f"{seq_num:0{seq_width}d}", code)


async def generate_booking_code(db: AsyncSession, today: date | None = None) -> str:
    fmt = settings.booking_code_format
    today_str = (today or date.today()).strftime("%Y%m%d")
    prefix = build_prefix(fmt, today_str)

    result = await db.execute(
        select(func.count(Booking.id)).where(Booking.booking_code.like(f"{prefix}%"))
    )
    count = result.scalar() or 0
    return format_code(fmt, today_str, count + 1)
