from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import uuid

from dataconfirm.core.database import get_db
from dataconfirm.core.config import settings
from dataconfirm.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    create_password_reset_token,
    hash_reset_token,
    build_token_claims,
    decode_token,
)
from dataconfirm.core.logging_config import logger, set_user_id
from dataconfirm.core.rate_limiter import limiter
from dataconfirm.models.user import User, UserRole
from dataconfirm.schemas.auth import (
    UserRegister,
    UserLogin,
    Token,
    RefreshTokenRequest,
    LoginResponse,
    UserResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    PasswordResetResponse,
    TokenVerificationResponse,
)
from dataconfirm.modules.auth.dependencies import get_current_user
from dataconfirm.services.email_service import email_service


router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register new agency user (rate limited: 3/min)"""
    client_ip = request.client.host if request.client else "unknown"
    email = user_data.email.lower()

    result = await db.execute(
        select(User).where(User.email == email)
    )
    if result.scalar_one_or_none():
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=email,
            reason="Email already registered",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    role = UserRole.ADMIN if email in settings.ADMIN_EMAILS else UserRole.AGENCY

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        agency=user_data.agency,
        role=role,
    )

    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(
        event="register",
        success=True,
        user_email=email,
        client_ip=client_ip,
        user_role=role.value
    )

    return user


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user (rate limited: 5/min)"""
    client_ip = request.client.host if request.client else "unknown"
    email = credentials.email.lower()

    result = await db.execute(
        select(User).where(User.email == email)
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=email,
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
            user_email=email,
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

    token_data = build_token_claims(user)
    access_token = create_access_token(token_data)
    refresh_token = create_refresh_token(token_data)

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user info"""
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
            detail="Invalid or expired refresh token"
        )

    token_data = build_token_claims(user)

    logger.log_auth_event(
        event="token_refresh",
        success=True,
        user_email=user.email,
        client_ip=client_ip
    )

    return {
        "access_token": create_access_token(token_data),
        "refresh_token": create_refresh_token(token_data),
        "token_type": "bearer"
    }


# ==================== Password reset ====================

async def _user_for_reset_token(token: str, db: AsyncSession) -> Optional[User]:
    """User a reset token belongs to, or None if the token is unusable"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != "password_reset":
        return None

    result = await db.execute(
        select(User).where(User.id == payload.get("sub"))
    )
    user = result.scalar_one_or_none()
    if not user or user.email != payload.get("email"):
        return None

    # Single use: the stored hash is cleared once the password changes
    if user.reset_token_hash != hash_reset_token(token):
        return None
    if user.reset_token_expires and user.reset_token_expires < datetime.utcnow():
        return None
    return user


@router.post("/forgot-password", response_model=PasswordResetResponse)
@limiter.limit("3/minute")
async def forgot_password(
    request: Request,
    reset_request: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Request password reset.

    The reply is identical whether or not the email is registered.
    """
    generic = PasswordResetResponse(
        message="If an account with that email exists, you will receive password reset instructions.",
        success=True
    )
    email = reset_request.email.lower()

    result = await db.execute(
        select(User).where(User.email == email)
    )
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        logger.log_auth_event(event="forgot_password", success=False, user_email=email, reason="Unknown email")
        return generic

    reset_token = create_password_reset_token(str(user.id), user.email)
    user.reset_token_hash = hash_reset_token(reset_token)
    user.reset_token_expires = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    await db.commit()

    sent = await email_service.send_password_reset_email(
        to_email=user.email,
        user_name=user.full_name,
        reset_token=reset_token
    )
    logger.log_auth_event(event="forgot_password", success=sent, user_email=user.email)

    return generic


@router.get("/verify-reset-token/{token}", response_model=TokenVerificationResponse)
async def verify_reset_token(
    token: str,
    db: AsyncSession = Depends(get_db)
):
    """Check whether a reset link is still usable"""
    user = await _user_for_reset_token(token, db)
    if not user:
        return TokenVerificationResponse(valid=False)
    return TokenVerificationResponse(valid=True, email=user.email)


@router.post("/reset-password", response_model=PasswordResetResponse)
async def reset_password(
    reset_request: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Reset password using token from forgot-password email.
    """
    user = await _user_for_reset_token(reset_request.token, db)
    if not user:
        logger.log_auth_event(event="reset_password", success=False, reason="Invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user.hashed_password = get_password_hash(reset_request.new_password)
    user.reset_token_hash = None
    user.reset_token_expires = None
    await db.commit()

    logger.log_auth_event(event="reset_password", success=True, user_email=user.email)

    return PasswordResetResponse(
        message="Password has been reset successfully. You can now login with your new password.",
        success=True
    )
