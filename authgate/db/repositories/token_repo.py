import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgate.core.config import settings
from authgate.core.logging import short
from authgate.models.orm import OpaqueToken, RefreshToken, TemporaryToken, TokenKind
from authgate.utils.security import gen_opaque_token

logger = logging.getLogger(__name__)

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

class TokenLedger:
    """
    Owns the opaque token table.

    Each call runs in its own transaction and commits before returning. State
    changes are single conditional UPDATEs decided by their affected-row
    count, so concurrent callers never need an application-level lock.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        temp_ttl: Optional[timedelta] = None,
        refresh_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.sessions = sessions
        self.temp_ttl = temp_ttl if temp_ttl is not None else timedelta(minutes=settings.AUTH_TEMP_TTL_MIN)
        self.refresh_ttl = refresh_ttl if refresh_ttl is not None else timedelta(days=settings.AUTH_REFRESH_TTL_DAYS)
        self.clock = clock

    async def issue_temporary(self) -> str:
        value = gen_opaque_token()
        async with self.sessions.begin() as session:
            session.add(TemporaryToken(value=value, expires_at=self.clock() + self.temp_ttl))
        logger.debug(f"Issued temporary token {short(value)}")
        return value

    async def issue_refresh(self, user_id: str) -> str:
        async with self.sessions.begin() as session:
            value = self._add_refresh(session, user_id)
        logger.debug(f"Issued refresh token {short(value)} for user {user_id[:8]}...")
        return value

    def _add_refresh(self, session: AsyncSession, user_id: str) -> str:
        value = gen_opaque_token()
        session.add(RefreshToken(value=value, user_id=user_id, expires_at=self.clock() + self.refresh_ttl))
        return value

    async def consume_temporary(self, value: str) -> bool:
        stmt = (
            update(TemporaryToken)
            .where(
                TemporaryToken.value == value,
                TemporaryToken.kind == TokenKind.TEMPORARY,
                TemporaryToken.used.is_(False),
                TemporaryToken.active.is_(True),
                TemporaryToken.expires_at > self.clock(),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        async with self.sessions.begin() as session:
            result = await session.execute(stmt)
            consumed = result.rowcount == 1
        if consumed:
            logger.info(f"Consumed temporary token {short(value)}")
        else:
            logger.info(f"Temporary token {short(value)} rejected (unknown, used or expired)")
        return consumed

    async def redeem_refresh(self, value: str) -> Optional[str]:
        """Owner of an active, unexpired refresh token. Does not consume it."""
        stmt = select(RefreshToken.user_id).where(
            RefreshToken.value == value,
            RefreshToken.kind == TokenKind.REFRESH,
            RefreshToken.active.is_(True),
            RefreshToken.used.is_(False),
            RefreshToken.expires_at > self.clock(),
        )
        async with self.sessions() as session:
            res = await session.execute(stmt)
            return res.scalar_one_or_none()

    async def rotate_refresh(self, value: str, user_id: str) -> Optional[str]:
        """
        Retire ``value`` and issue its successor in one transaction.

        Returns the new refresh value, or None when ``value`` was no longer
        active for ``user_id`` (already rotated, revoked or expired). Of any
        number of concurrent rotations of the same value at most one succeeds.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.value == value,
                RefreshToken.kind == TokenKind.REFRESH,
                RefreshToken.user_id == user_id,
                RefreshToken.active.is_(True),
                RefreshToken.expires_at > self.clock(),
            )
            .values(active=False)
            .execution_options(synchronize_session=False)
        )
        async with self.sessions.begin() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                logger.warning(f"Refresh token {short(value)} could not be rotated")
                return None
            new_value = self._add_refresh(session, user_id)
        logger.info(f"Rotated refresh token {short(value)} -> {short(new_value)}")
        return new_value

    async def revoke_refresh(self, value: str) -> None:
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.value == value,
                RefreshToken.kind == TokenKind.REFRESH,
                RefreshToken.active.is_(True),
            )
            .values(active=False)
            .execution_options(synchronize_session=False)
        )
        async with self.sessions.begin() as session:
            result = await session.execute(stmt)
            revoked = result.rowcount
        if revoked:
            logger.info(f"Revoked refresh token {short(value)}")

    async def revoke_all_refresh(self, user_id: str) -> int:
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.kind == TokenKind.REFRESH,
                RefreshToken.active.is_(True),
            )
            .values(active=False)
            .execution_options(synchronize_session=False)
        )
        async with self.sessions.begin() as session:
            result = await session.execute(stmt)
            count = result.rowcount or 0
        logger.info(f"Revoked {count} refresh tokens for user {user_id[:8]}...")
        return count

    async def retired_refresh_owner(self, value: str) -> Optional[str]:
        """Owner of a refresh token that was rotated or revoked, else None."""
        stmt = select(RefreshToken.user_id).where(
            RefreshToken.value == value,
            RefreshToken.kind == TokenKind.REFRESH,
            RefreshToken.active.is_(False),
        )
        async with self.sessions() as session:
            res = await session.execute(stmt)
            return res.scalar_one_or_none()

    async def exists(self, value: str) -> bool:
        stmt = select(func.count()).select_from(OpaqueToken).where(
            OpaqueToken.value == value,
            OpaqueToken.active.is_(True),
        )
        async with self.sessions() as session:
            res = await session.execute(stmt)
            return res.scalar_one() > 0

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        stmt = delete(OpaqueToken).where(OpaqueToken.expires_at < now).execution_options(synchronize_session=False)
        async with self.sessions.begin() as session:
            result = await session.execute(stmt)
            count = result.rowcount or 0
        if count > 0:
            logger.info(f"Swept {count} expired tokens")
        return count
