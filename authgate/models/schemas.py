from pydantic import BaseModel, Field
from typing import Optional
from authgate.models.session import UserProjection

class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)

class LoginWithTokenRequest(BaseModel):
    token: str = Field(min_length=1)

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    registration_token: str = Field(min_length=1)

class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)
    password: str = Field(min_length=6)

class ValidateRequest(BaseModel):
    token: str = Field(min_length=1)

class LogoutRequest(BaseModel):
    refresh_token: str = Field(min_length=1)

class TemporaryTokenResponse(BaseModel):
    token: str
    expires_in: str

class SessionResponse(BaseModel):
    user: UserProjection
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 900

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 900

class ValidateResponse(BaseModel):
    is_valid: bool
    user: Optional[UserProjection] = None

class MessageResponse(BaseModel):
    message: str
