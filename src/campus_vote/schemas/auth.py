"""Authentication and user Pydantic v2 schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class TokenResponse(BaseModel):
    """JWT access token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiration in seconds")


class UserCreateRequest(BaseModel):
    """Request to create a new user."""

    email: EmailStr
    password: str = Field(min_length=8)
    role: Literal["admin", "student"] = "student"
    faculty: str = Field(min_length=1, max_length=100)


class UserResponse(BaseModel):
    """User information response."""

    id: int
    email: str
    role: str
    faculty: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}
