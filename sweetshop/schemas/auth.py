from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from uuid import UUID


class RegisterRequest(BaseModel):
    """Schema for registering a new account. Accounts are never created as admins here."""
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128, description="Plaintext password")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Public view of a user; the password hash is never serialized."""
    id: UUID
    email: str
    name: str
    is_admin: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    success: bool = True
    user: UserResponse
    token: str
    token_type: str = "bearer"
