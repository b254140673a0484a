from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
from pydantic import BaseModel
import uuid

from letterdesk.core.database import get_db
from letterdesk.core.security import (
    verify_password,
    get_password_hash,
    create_token_pair,
    decode_token
)
from letterdesk.core.logging_config import logger, set_user_id
from letterdesk.models.user import User
from letterdesk.schemas.auth import (
    UserRegister,
    UserLogin,
    Token,
    LoginResponse,
    UserResponse,
)
from letterdesk.modules.auth.dependencies import get_current_user
from letterdesk.core.rate_limiter import auth_rate_limit, strict_rate_limit


class RefreshTokenRequest(BaseModel):
    refresh_token: str


router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@strict_rate_limit()
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register new user (rate limited: 3/min)"""
    client_ip = request.client.host if request.client else "unknown"

    # Email, NIM and NIP are each unique
    checks = [
        (User.email == user_data.email, "Email already registered"),
    ]
    if user_data.nim:
        checks.append((User.nim == user_data.nim, "NIM already registered"))
    if user_data.nip:
        checks.append((User.nip == user_data.nip, "NIP already registered"))

    for condition, message in checks:
        result = await db.execute(select(User.id).where(condition))
        if result.scalar_one_or_none() is not None:
            logger.log_auth_event(
                event="register",
                success=False,
                user_email=user_data.email,
                reason=message,
                client_ip=client_ip
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=message
            )

    user = User(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        role=user_data.role,
        nim=user_data.nim,
        nip=user_data.nip,
    )

    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(
        event="register",
        success=True,
        user_email=user_data.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return user


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user (rate limited: 5/min)"""
    client_ip = request.client.host if request.client else "unknown"

    result = await db.execute(
        select(User).where(User.email == credentials.email)
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    user.last_login = datetime.utcnow()
    await db.commit()

    set_user_id(str(user.id))

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        **create_token_pair(user),
        "user": UserResponse.model_validate(user),
    }


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile"""
    return current_user


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_request: RefreshTokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Refresh access token using refresh token"""
    client_ip = request.client.host if request.client else "unknown"

    payload = decode_token(token_request.refresh_token)

    if payload.get("type") != "refresh":
        logger.log_auth_event(
            event="token_refresh",
            success=False,
            reason="Invalid token type",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type - expected refresh token"
        )

    user_id = payload.get("sub")
    try:
        uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        logger.log_auth_event(
            event="token_refresh",
            success=False,
            reason="User not found or inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    logger.log_auth_event(
        event="token_refresh",
        success=True,
        user_email=user.email,
        client_ip=client_ip
    )

    return create_token_pair(user)
