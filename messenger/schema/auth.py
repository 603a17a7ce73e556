"""
Authentication schemas.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class UserRegister(BaseModel):
    email: EmailStr
    password: str
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: str
    email: str
    username: Optional[str] = None
    display_name: Optional[str] = None


class LoginResponse(BaseModel):
    message: str
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


class MessageResponse(BaseModel):
    message: str


class SessionStatus(BaseModel):
    """Session controller state as seen by the caller."""
    authenticated: bool
    loading: bool
    identity: Optional[str] = None
    user: Optional[UserInfo] = None
