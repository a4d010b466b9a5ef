"""
Auth-related Pydantic schemas.
"""

from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., example="hr@example.com")
    password: str = Field(..., example="password123")


class LoginResponse(BaseModel):
    success: bool
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class CurrentUserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str


__all__ = [
    "LoginRequest",
    "LoginResponse",
    "CurrentUserResponse",
]
