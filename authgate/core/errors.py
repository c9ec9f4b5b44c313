from fastapi import Request, status
from fastapi.responses import JSONResponse

class AuthErrorCodes:
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_INACTIVE = "AUTH_ACCOUNT_INACTIVE"
    AUTH_GATE_INVALID = "AUTH_GATE_INVALID"
    AUTH_REFRESH_INVALID = "AUTH_REFRESH_INVALID"
    AUTH_TOKEN_MALFORMED = "AUTH_TOKEN_MALFORMED"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    CONFLICT_USERNAME_TAKEN = "CONFLICT_USERNAME_TAKEN"


class AuthError(Exception):
    """Typed credential/token failure reported to the caller."""

    code = AuthErrorCodes.AUTH_INVALID_CREDENTIALS
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    # same message for unknown username and wrong password
    default_message = "Invalid credentials."


class AccountInactive(AuthError):
    code = AuthErrorCodes.AUTH_ACCOUNT_INACTIVE
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account is disabled."


class InvalidOrExpiredGate(AuthError):
    code = AuthErrorCodes.AUTH_GATE_INVALID
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired registration token."


class InvalidRefreshToken(AuthError):
    code = AuthErrorCodes.AUTH_REFRESH_INVALID
    default_message = "Invalid refresh token."


class UsernameConflict(AuthError):
    code = AuthErrorCodes.CONFLICT_USERNAME_TAKEN
    status_code = status.HTTP_409_CONFLICT
    default_message = "Username already taken."


class AccessTokenError(AuthError):
    code = AuthErrorCodes.AUTH_TOKEN_MALFORMED
    default_message = "Invalid access token."


class MalformedAccessToken(AccessTokenError):
    pass


class ExpiredAccessToken(AccessTokenError):
    code = AuthErrorCodes.AUTH_TOKEN_EXPIRED
    default_message = "Access token expired."


def error_response(code: str, message: str, status_code: int = 400) -> JSONResponse:
    payload = {"error": {"code": code, "message": message}}
    return JSONResponse(status_code=status_code, content=payload)

async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    request.state.auth_error = exc.code
    return error_response(exc.code, exc.message, exc.status_code)
