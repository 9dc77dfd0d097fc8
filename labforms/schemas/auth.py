"""Authentication schemas for bearer JWT tokens."""

from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, EmailStr


class JWTClaims(BaseModel):
    """JWT claims extracted from an access token."""

    sub: str = Field(..., description="Subject (user ID)")
    email: EmailStr = Field(..., description="User email")
    role: str = Field(default="authenticated", description="User role")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    aud: Optional[str] = Field(None, description="Audience")
    app_metadata: Optional[Dict[str, Any]] = Field(None, description="Application metadata")


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: str = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    role: str = Field(default="user", description="User role")


__all__ = [
    "JWTClaims",
    "CurrentUser",
]
