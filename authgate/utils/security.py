import logging
import secrets
import time
import uuid
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from pydantic import ValidationError

from authgate.core.config import settings
from authgate.core.errors import ExpiredAccessToken, MalformedAccessToken
from authgate.core.logging import short
from authgate.models.session import AccessClaim

logger = logging.getLogger(__name__)

def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds or settings.AUTH_BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # unparsable stored hash
        return False

def gen_opaque_token() -> str:
    # uuid4 hex + 24 random bytes, well past 128 bits
    return uuid.uuid4().hex + secrets.token_urlsafe(24)


class TokenSigner:
    """Mints and verifies short-lived HS256 access tokens. Holds no state."""

    def __init__(
        self,
        secret: Optional[str] = None,
        access_ttl: Optional[timedelta] = None,
        algorithm: Optional[str] = None,
    ):
        self.secret = secret or settings.AUTH_JWT_SECRET
        self.access_ttl = access_ttl if access_ttl is not None else timedelta(minutes=settings.AUTH_ACCESS_TTL_MIN)
        self.algorithm = algorithm or settings.AUTH_JWT_ALGORITHM

    @property
    def expires_in(self) -> int:
        return int(self.access_ttl.total_seconds())

    def mint_access(self, subject: str, username: str) -> str:
        iat = int(time.time())
        payload = {
            "sub": subject,
            "username": username,
            "type": "access",
            "iat": iat,
            "exp": iat + self.expires_in,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_access(self, token: str) -> AccessClaim:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredAccessToken() from e
        except jwt.InvalidTokenError as e:
            raise MalformedAccessToken() from e
        if payload.get("type") != "access":
            raise MalformedAccessToken("Not an access token.")
        try:
            return AccessClaim.model_validate(payload)
        except ValidationError as e:
            raise MalformedAccessToken() from e

    def probe_access(self, token: str) -> AccessClaim | None:
        """Like verify_access but returns None instead of raising."""
        try:
            return self.verify_access(token)
        except ExpiredAccessToken:
            logger.debug(f"Access token {short(token)} expired")
        except MalformedAccessToken as e:
            if isinstance(e.__cause__, jwt.InvalidSignatureError):
                logger.warning(f"Access token {short(token)} failed signature verification")
            else:
                logger.debug(f"Token {short(token)} is not an access token: {e.message}")
        return None
