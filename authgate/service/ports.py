"""Port describing the credential store the auth service talks to."""

from typing import Optional, Protocol

from authgate.models.orm import User


class CredentialStore(Protocol):
    """Username/password records reachable by id and by username."""

    async def find_by_username(self, username: str) -> Optional[User]:
        """Return the user named ``username``, or ``None``."""

    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Return the user with id ``user_id``, or ``None``."""

    async def validate_password(self, user: Optional[User], password: str) -> bool:
        """
        Return ``True`` when ``password`` matches the stored hash.

        With ``user=None`` the store still spends one hash check and returns
        ``False``, so an unknown username costs as much as a wrong password.
        """

    async def create_user(self, username: str, password: str) -> User:
        """Persist a new user; raise ``UsernameConflict`` on a taken name."""

    async def set_online_status(self, user_id: str, online: bool) -> None:
        """Flip the user's online flag."""


__all__ = ["CredentialStore"]
