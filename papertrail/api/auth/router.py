"""Authentication API routes.

Session mechanics stay deliberately thin: a JWT is issued on register/login
and every other router only needs the user id carried in it.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.db.db import get_session
from papertrail.models.types import utcnow
from papertrail.models.user import User
from papertrail.utils.responses import SuccessResponse, success_response
from papertrail.utils.auth import require_auth
from papertrail.utils.passwords import hash_password, verify_password
from papertrail.utils.local_tokens import create_local_token
from papertrail.api.auth.schemas import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    UserResponse,
)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _token_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_local_token(str(user.id), user.email),
        token_type="bearer",
        expires_in=settings.LOCAL_AUTH_TOKEN_EXP_SECONDS,
        user_id=str(user.id),
        email=user.email,
    )


@router.post("/register", response_model=SuccessResponse[TokenResponse], status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, session: AsyncSession = Depends(get_session)):
    """Register a new user account and return an access token."""
    try:
        result = await session.execute(select(User).where(User.email == request.email))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User with this email already exists"
            )

        user = User(
            email=request.email,
            username=request.username,
            full_name=request.full_name,
            hashed_password=hash_password(request.password),
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)

        app_logger.info(f"User registered: {user.email} (ID: {user.id})")
        return success_response(data=_token_for(user), message="User registered successfully")

    except HTTPException:
        raise
    except Exception as e:
        app_logger.error(f"Registration failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Registration failed: {str(e)}"
        )


@router.post("/login", response_model=SuccessResponse[TokenResponse])
async def login(request: LoginRequest, session: AsyncSession = Depends(get_session)):
    """Authenticate user and return access token."""
    try:
        result = await session.execute(select(User).where(User.email == request.email))
        user = result.scalar_one_or_none()

        if not user or not user.hashed_password or not verify_password(request.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is inactive"
            )

        user.last_login_at = utcnow()
        session.add(user)
        await session.commit()

        app_logger.info(f"User logged in: {user.email} (ID: {user.id})")
        return success_response(data=_token_for(user), message="Login successful")

    except HTTPException:
        raise
    except Exception as e:
        app_logger.error(f"Login failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Login failed: {str(e)}"
        )


@router.get("/me", response_model=SuccessResponse[UserResponse])
async def get_current_user(
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Get current authenticated user information."""
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return success_response(
        data=UserResponse(
            id=user.id,
            email=user.email,
            username=user.username,
            full_name=user.full_name,
            is_active=user.is_active,
            sync_enabled=user.sync_enabled,
            last_sync_at=user.last_sync_at.isoformat() if user.last_sync_at else None,
        ),
        message="User information retrieved successfully"
    )
