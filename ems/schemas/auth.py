"""
Authentication schemas
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ems.core.security import validate_password
from ems.models.account import Privilege
from ems.utils.text import normalize_email


class LoginRequest(BaseModel):
    """Login request schema"""
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)


class TokenResponse(BaseModel):
    """Claim pair issued on login and refresh"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., description="Refresh credential from login")


class RegisterRequest(BaseModel):
    """Self-registration. Accounts created here start at the employee privilege."""
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v):
        return validate_password(v)


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., description="Reset token issued by an administrator")
    new_password: str = Field(..., description="New password")

    @field_validator("new_password", mode="before")
    @classmethod
    def check_password(cls, v):
        return validate_password(v)


class AuthorizationRecordOut(BaseModel):
    """Authoritative privilege and linkage for the current account"""
    id: str
    email: str
    privilege: Privilege
    employee_id: Optional[str] = Field(None, description="Linked employee, if any")

    model_config = ConfigDict(from_attributes=True)


class EmployeeLinkOut(BaseModel):
    employee_id: Optional[str] = None
