# backend/schemas/user.py
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import EmailStr, Field, StringConstraints, field_validator

from schemas.common import CamelModel

LAB_CODE_PATTERN = r"^[A-Z0-9_]{3,50}$"

# Role names are upper-cased by the service before lookup
RoleNameStr = Annotated[str, StringConstraints(pattern=r"^[A-Za-z_]{3,50}$")]
EMAIL_MAX_LENGTH = 200


def _check_email_length(value):
    if value is not None and len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"email must be at most {EMAIL_MAX_LENGTH} characters")
    return value


# Credentials posted to /auth/login
class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=8, max_length=120)


# Successful login: the token plus a summary of who it belongs to
class LoginResponse(CamelModel):
    token: str
    expires_at: datetime
    user_id: str
    username: str
    roles: List[str]
    lab_code: Optional[str] = None


# Schema for creating a user (ADMIN)
class UserCreate(CamelModel):
    username: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=120)
    lab_code: Optional[str] = Field(None, pattern=LAB_CODE_PATTERN)
    roles: List[RoleNameStr] = Field(..., min_length=1)
    active: bool = True

    @field_validator("email")
    @classmethod
    def email_length(cls, v):
        return _check_email_length(v)


# Partial update: only fields that are sent are applied
class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=120)
    lab_code: Optional[str] = Field(None, pattern=LAB_CODE_PATTERN)
    roles: Optional[List[RoleNameStr]] = None
    active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def email_length(cls, v):
        return _check_email_length(v)


# Output schema for user details, never carries the password hash
class UserResponse(CamelModel):
    id: int
    external_id: str
    username: str
    email: str
    roles: List[str]
    lab_code: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UsersPage(CamelModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int


class RoleResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
