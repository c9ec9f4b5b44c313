import asyncio
import logging
from functools import lru_cache
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgate.core.errors import UsernameConflict
from authgate.models.orm import User
from authgate.utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

@lru_cache(maxsize=None)
def _dummy_hash(rounds: Optional[int]) -> str:
    # checked against when the user is unknown, so both paths pay one bcrypt
    return hash_password("authgate-no-such-user", rounds)

class UserStore:
    """SQL-backed credential store. bcrypt work runs off the event loop."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession], bcrypt_rounds: Optional[int] = None):
        self.sessions = sessions
        self.bcrypt_rounds = bcrypt_rounds

    async def find_by_username(self, username: str) -> Optional[User]:
        async with self.sessions() as session:
            res = await session.execute(select(User).where(User.username == username))
            return res.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with self.sessions() as session:
            return await session.get(User, user_id)

    async def validate_password(self, user: Optional[User], password: str) -> bool:
        if user is None:
            dummy = await asyncio.to_thread(_dummy_hash, self.bcrypt_rounds)
            await asyncio.to_thread(verify_password, password, dummy)
            return False
        return await asyncio.to_thread(verify_password, password, user.password_hash)

    async def create_user(self, username: str, password: str) -> User:
        if await self.find_by_username(username):
            raise UsernameConflict()
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        user = User(username=username, password_hash=password_hash)
        try:
            async with self.sessions.begin() as session:
                session.add(user)
        except IntegrityError as e:
            # lost a race with a concurrent signup for the same name
            raise UsernameConflict() from e
        async with self.sessions() as session:
            user = await session.get(User, user.id)
        logger.info(f"Created user {username} ({user.id[:8]}...)")
        return user

    async def set_online_status(self, user_id: str, online: bool) -> None:
        async with self.sessions.begin() as session:
            await session.execute(update(User).where(User.id == user_id).values(is_online=online))
