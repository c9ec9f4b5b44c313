from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

class AccessClaim(BaseModel):
    sub: str
    username: str
    type: Literal["access"] = "access"
    iat: int
    exp: int
    jti: Optional[str] = None

class UserProjection(BaseModel):
    """User record as handed to callers: everything but the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    balance: Decimal = Decimal("0")
    iq: int = 100
    level: int = 0
    experience: int = 0
    games_played: int = 0
    games_won: int = 0
    is_active: bool = True
    is_online: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class RegistrationGate:
    token: str
    expires_in: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class SessionBundle:
    user: UserProjection
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AccessValid:
    claim: AccessClaim
    user: UserProjection
    valid: Literal[True] = True


@dataclass(frozen=True)
class OpaqueValid:
    user: None = None
    valid: Literal[True] = True


@dataclass(frozen=True)
class Invalid:
    user: None = None
    valid: Literal[False] = False


ValidationOutcome = Union[AccessValid, OpaqueValid, Invalid]
