"""Account routes: register and log in with username + PIN."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth import (
    create_access_token,
    hash_password,
    normalize_username,
    validate_password,
    validate_username,
    verify_password,
)
from ..config import Settings, get_settings
from ..database import Database
from ..logging_config import get_logger, log_auth_event
from ..models import AuthRequest, AuthResponse, ErrorResponse, UserInfo
from ..rate_limit import limiter

logger = get_logger("vocabloop.auth")
router = APIRouter(prefix="/api", tags=["auth"])


@router.post(
    "/auth",
    response_model=AuthResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(lambda: get_settings().auth_rate_limit)
async def authenticate(
    request: Request,
    body: AuthRequest,
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Register a new account or log in to an existing one.

    Both actions return a signed token to use with ``/api/sync``.
    """
    username = normalize_username(body.username)

    if body.action == "register":
        if not validate_username(username):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username must be at least 5 characters.",
            )
        if not validate_password(body.password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password must be at least 6 digits.",
            )
        password_hash = hash_password(body.password)
        try:
            await db.create_account(username, password_hash)
        except ValueError:
            log_auth_event("register", username, False, "username taken")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Username already exists.",
            )
        log_auth_event("register", username, True)
        return AuthResponse(
            message="Registered successfully.",
            user=UserInfo(username=username),
            token=create_access_token(username, settings),
        )

    if body.action == "login":
        if not username or not validate_password(body.password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid username or password format.",
            )
        account = await db.get_account(username)
        if not account or not verify_password(body.password, account.get("password_hash", "")):
            log_auth_event("login", username, False, "invalid credentials")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials.",
            )
        log_auth_event("login", username, True)
        return AuthResponse(
            message="Login successful.",
            user=UserInfo(username=username),
            token=create_access_token(username, settings),
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Unsupported action. Use register or login.",
    )
