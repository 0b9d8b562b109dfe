"""Auth API — the per-audience routes the client's session layer relies on.

Learn: Routes for the credential lifecycle:
- POST /auth/register → create an account (+ immediate session)
- POST /auth/login → email/password → access + refresh tokens
- POST /auth/refresh → refresh token → new access + rotated refresh token
- POST /auth/logout → revoke the presented access token
- GET /auth/me → current user info (echoes the X-Tenant-ID it saw)
- POST /auth/forgot-password, /auth/reset-password, /auth/verify-email

Responses use the platform envelope: {"success": true, "data": {...}}.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from continuum.backend.tokens import TokenError, TokenService
from continuum.backend.users import (
    OneTimeTokenError,
    UserDirectory,
    UserExistsError,
    UserRecord,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str
    name: str
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refreshToken: str
    oldAccessToken: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(min_length=8)


class VerifyEmailRequest(BaseModel):
    token: str
    email: Optional[str] = None


# ─── Dependencies ────────────────────────────────────────


def get_directory(request: Request) -> UserDirectory:
    return request.app.state.directory


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_access_claims(
    authorization: Optional[str] = Header(None),
    directory: UserDirectory = Depends(get_directory),
    tokens: TokenService = Depends(get_tokens),
) -> dict:
    """Validate the Bearer access token (401 if missing, invalid or revoked)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = tokens.verify(authorization[7:], "access")
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if claims["jti"] in directory.revoked:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    return claims


def _session(user: UserRecord, tokens: TokenService) -> dict:
    return {
        "success": True,
        "data": {
            "user": user.public(),
            "userType": user.user_type,
            "tokens": {
                "accessToken": tokens.create_access_token(user.id),
                "refreshToken": tokens.create_refresh_token(user.id),
            },
        },
    }


# ─── Register / login ────────────────────────────────────


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    directory: UserDirectory = Depends(get_directory),
    tokens: TokenService = Depends(get_tokens),
):
    """Create a new user account and start a session for it."""
    try:
        user = directory.create(body.email, body.name, body.password)
    except UserExistsError:
        raise HTTPException(status_code=409, detail="Email already registered")
    logger.info("backend.user_registered", audience=tokens.audience, user_id=user.id)
    return _session(user, tokens)


@router.post("/login")
async def login(
    body: LoginRequest,
    directory: UserDirectory = Depends(get_directory),
    tokens: TokenService = Depends(get_tokens),
):
    """Login with email and password → JWT tokens."""
    user = directory.authenticate(body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    logger.info("backend.login", audience=tokens.audience, user_id=user.id)
    return _session(user, tokens)


# ─── Refresh / logout ────────────────────────────────────


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    directory: UserDirectory = Depends(get_directory),
    tokens: TokenService = Depends(get_tokens),
):
    """Exchange a refresh token for new tokens. The old refresh token is revoked."""
    try:
        claims = tokens.verify(body.refreshToken, "refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    if claims["jti"] in directory.revoked:
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = directory.get(claims["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")

    directory.revoked.add(claims["jti"])
    logger.info("backend.token_refreshed", audience=tokens.audience, user_id=user.id)
    session = _session(user, tokens)
    return {"success": True, "data": {"tokens": session["data"]["tokens"]}}


@router.post("/logout")
async def logout(
    claims: dict = Depends(get_access_claims),
    directory: UserDirectory = Depends(get_directory),
):
    directory.revoked.add(claims["jti"])
    return {"success": True, "message": "Logged out"}


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(
    claims: dict = Depends(get_access_claims),
    directory: UserDirectory = Depends(get_directory),
    x_tenant_id: Optional[str] = Header(None),
):
    """Get the current authenticated user's info."""
    user = directory.get(claims["sub"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "data": {"user": user.public(), "tenantId": x_tenant_id}}


# ─── Password reset / verification ──────────────────────


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    directory: UserDirectory = Depends(get_directory),
):
    """Always succeeds, so the response doesn't reveal which emails exist."""
    directory.issue_reset_token(body.email)
    return {
        "success": True,
        "message": "If that email is registered, a reset link has been sent",
    }


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    directory: UserDirectory = Depends(get_directory),
):
    try:
        directory.reset_password(body.token, body.password)
    except OneTimeTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Password has been reset"}


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    directory: UserDirectory = Depends(get_directory),
):
    try:
        user = directory.verify_email(body.token)
    except OneTimeTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": {"user": user.public()}}
