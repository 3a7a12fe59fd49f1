from pydantic import BaseModel, EmailStr, field_validator
from typing import List, Optional
from datetime import datetime

from app.models.user import UserRole

class UserBase(BaseModel):
    email: EmailStr

class UserCreate(UserBase):
    password: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class MagicLinkRequest(BaseModel):
    # Plain str so malformed addresses reach the service's own validation
    email: str

class PasswordResetRequest(BaseModel):
    email: EmailStr

class LoginHistoryEntryResponse(BaseModel):
    timestamp: datetime
    ip_address: str
    status: str
    reason: Optional[str] = None

    class Config:
        from_attributes = True

class UserResponse(UserBase):
    id: str
    name: Optional[str] = None
    role: str
    company: Optional[str] = None
    group: Optional[str] = None
    last_login: Optional[datetime] = None
    last_login_ip: Optional[str] = None
    login_count_7_days: int = 0
    login_history: List[LoginHistoryEntryResponse] = []

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        return UserRole.parse(value).value

    class Config:
        from_attributes = True

class SessionResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: UserResponse

class LogoutResponse(BaseModel):
    detail: str
    reload_required: bool

class MessageResponse(BaseModel):
    message: str
