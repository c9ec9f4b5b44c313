import logging

from authgate.core.errors import (
    AccountInactive,
    InvalidCredentials,
    InvalidOrExpiredGate,
    InvalidRefreshToken,
)
from authgate.core.logging import short
from authgate.db.repositories.token_repo import TokenLedger
from authgate.models.orm import User
from authgate.models.session import (
    AccessValid,
    Invalid,
    OpaqueValid,
    RegistrationGate,
    SessionBundle,
    TokenPair,
    UserProjection,
    ValidationOutcome,
)
from authgate.service.ports import CredentialStore
from authgate.utils.security import TokenSigner

logger = logging.getLogger(__name__)

def _humanize(seconds: int) -> str:
    minutes = seconds // 60
    if minutes and seconds % 60 == 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds} seconds"

class AuthService:
    """
    Login, gated signup, refresh rotation, logout and token validation.

    Keeps no state of its own: opaque tokens go through the ledger, access
    tokens through the signer, users through the credential store.
    """

    def __init__(self, users: CredentialStore, ledger: TokenLedger, signer: TokenSigner):
        self.users = users
        self.ledger = ledger
        self.signer = signer

    async def issue_registration_gate(self) -> RegistrationGate:
        token = await self.ledger.issue_temporary()
        return RegistrationGate(token=token, expires_in=_humanize(int(self.ledger.temp_ttl.total_seconds())))

    async def check_registration_gate(self, token: str) -> str:
        if not await self.ledger.consume_temporary(token):
            raise InvalidOrExpiredGate()
        return "Token is valid and may be used for registration."

    async def login(self, username: str, password: str) -> SessionBundle:
        user = await self.users.find_by_username(username)
        valid = await self.users.validate_password(user, password)
        if user is None or not valid:
            logger.warning(f"Failed login for {username!r}")
            raise InvalidCredentials()
        if not user.is_active:
            raise AccountInactive()
        return await self._open_session(user)

    async def register(self, username: str, password: str, gate_token: str) -> SessionBundle:
        if not await self.ledger.consume_temporary(gate_token):
            raise InvalidOrExpiredGate()
        user = await self.users.create_user(username, password)
        return await self._open_session(user)

    async def refresh_session(self, refresh_token: str, password: str) -> TokenPair:
        user_id = await self.ledger.redeem_refresh(refresh_token)
        if user_id is None:
            await self._revoke_on_reuse(refresh_token)
            raise InvalidRefreshToken()
        user = await self.users.find_by_id(user_id)
        valid = await self.users.validate_password(user, password)
        if user is None or not valid:
            logger.warning(f"Password mismatch on refresh with {short(refresh_token)}")
            raise InvalidCredentials()
        if not user.is_active:
            raise AccountInactive()
        new_refresh = await self.ledger.rotate_refresh(refresh_token, user.id)
        if new_refresh is None:
            # a concurrent refresh already rotated this token
            raise InvalidRefreshToken()
        access = self.signer.mint_access(user.id, user.username)
        return TokenPair(access_token=access, refresh_token=new_refresh)

    async def _revoke_on_reuse(self, refresh_token: str) -> None:
        # a retired refresh token coming back means it leaked; end every session of its owner
        owner = await self.ledger.retired_refresh_owner(refresh_token)
        if owner is None:
            return
        revoked = await self.ledger.revoke_all_refresh(owner)
        logger.warning(f"Reuse of retired refresh token {short(refresh_token)}; revoked {revoked} for user {owner[:8]}...")

    async def logout(self, user_id: str, refresh_token: str) -> None:
        await self.users.set_online_status(user_id, False)
        await self.ledger.revoke_refresh(refresh_token)
        logger.info(f"User {user_id[:8]}... logged out")

    async def validate_session(self, token: str) -> ValidationOutcome:
        claim = self.signer.probe_access(token)
        if claim is not None:
            user = await self.users.find_by_id(claim.sub)
            if user and user.is_active:
                return AccessValid(claim=claim, user=UserProjection.model_validate(user))
        if await self.ledger.exists(token):
            return OpaqueValid()
        return Invalid()

    async def _open_session(self, user: User) -> SessionBundle:
        access = self.signer.mint_access(user.id, user.username)
        refresh = await self.ledger.issue_refresh(user.id)
        await self.users.set_online_status(user.id, True)
        projection = UserProjection.model_validate(user).model_copy(update={"is_online": True})
        logger.info(f"Session opened for {user.username} ({user.id[:8]}...)")
        return SessionBundle(user=projection, access_token=access, refresh_token=refresh)
