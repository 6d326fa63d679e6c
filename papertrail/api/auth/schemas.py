"""Authentication request and response schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """Request schema for user registration."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, description="User password (minimum 8 characters)")
    username: Optional[str] = Field(default=None, max_length=100, description="Optional username")
    full_name: Optional[str] = Field(default=None, max_length=255, description="Optional full name")

    model_config = {"json_schema_extra": {"example": {
        "email": "user@example.com",
        "password": "securepassword123",
        "username": "johndoe",
        "full_name": "John Doe"
    }}}


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password")


class TokenResponse(BaseModel):
    """Response schema for authentication tokens."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration time in seconds")
    user_id: str = Field(..., description="Authenticated user ID")
    email: str = Field(..., description="User email address")


class UserResponse(BaseModel):
    """Response schema for user information."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    username: Optional[str] = Field(default=None, description="Username")
    full_name: Optional[str] = Field(default=None, description="Full name")
    is_active: bool = Field(..., description="Whether user account is active")
    sync_enabled: bool = Field(..., description="Whether the user has synced from any device")
    last_sync_at: Optional[str] = Field(default=None, description="Last completed device sync (ISO 8601)")
