from fastapi import APIRouter, Depends, Request, status
from authgate.core.errors import MalformedAccessToken
from authgate.models.schemas import (
    LoginRequest, LoginWithTokenRequest, LogoutRequest, MessageResponse, RefreshRequest,
    RegisterRequest, SessionResponse, TemporaryTokenResponse, TokenResponse, ValidateRequest,
    ValidateResponse,
)
from authgate.models.session import AccessClaim, SessionBundle
from authgate.service.auth_service import AuthService

router = APIRouter()

def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service

def bearer_token(req: Request) -> str | None:
    auth = req.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    return auth.split(" ", 1)[1].strip()

def current_claim(request: Request, svc: AuthService = Depends(get_auth_service)) -> AccessClaim:
    token = bearer_token(request)
    if not token:
        raise MalformedAccessToken("Authorization: Bearer <token> required.")
    return svc.signer.verify_access(token)

def _session_response(bundle: SessionBundle, svc: AuthService) -> SessionResponse:
    return SessionResponse(
        user=bundle.user,
        access_token=bundle.access_token,
        refresh_token=bundle.refresh_token,
        expires_in=svc.signer.expires_in,
    )

@router.post("/login", response_model=SessionResponse)
async def login(req: LoginRequest, svc: AuthService = Depends(get_auth_service)):
    bundle = await svc.login(req.username, req.password)
    return _session_response(bundle, svc)

@router.post("/login/token", response_model=MessageResponse)
async def login_with_token(req: LoginWithTokenRequest, svc: AuthService = Depends(get_auth_service)):
    message = await svc.check_registration_gate(req.token)
    return MessageResponse(message=message)

@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(req: RegisterRequest, svc: AuthService = Depends(get_auth_service)):
    bundle = await svc.register(req.username, req.password, req.registration_token)
    return _session_response(bundle, svc)

@router.post("/token/temporary", response_model=TemporaryTokenResponse)
async def temporary_token(svc: AuthService = Depends(get_auth_service)):
    gate = await svc.issue_registration_gate()
    return TemporaryTokenResponse(token=gate.token, expires_in=gate.expires_in)

@router.post("/token/refresh", response_model=TokenResponse)
async def refresh(req: RefreshRequest, svc: AuthService = Depends(get_auth_service)):
    pair = await svc.refresh_session(req.refresh_token, req.password)
    return TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token, expires_in=svc.signer.expires_in)

@router.post("/token/validate", response_model=ValidateResponse)
async def validate(req: ValidateRequest, svc: AuthService = Depends(get_auth_service)):
    outcome = await svc.validate_session(req.token)
    return ValidateResponse(is_valid=outcome.valid, user=outcome.user)

@router.post("/logout", response_model=MessageResponse)
async def logout(
    req: LogoutRequest,
    claim: AccessClaim = Depends(current_claim),
    svc: AuthService = Depends(get_auth_service),
):
    await svc.logout(claim.sub, req.refresh_token)
    return MessageResponse(message="Logged out.")
