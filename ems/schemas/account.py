"""
Account management schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ems.core.security import validate_password
from ems.models.account import Privilege
from ems.utils.text import normalize_email
from ems.utils.datetime_utils import iso_z


class AccountCreate(BaseModel):
    """Schema for creating an account (admin only)"""
    email: str = Field(..., description="Account email (unique)")
    password: str = Field(..., description="Initial password")
    privilege: Privilege = Field(default=Privilege.EMPLOYEE, description="Privilege level")
    employee_id: Optional[str] = Field(None, description="Employee to link on creation")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v):
        return validate_password(v)


class AccountUpdate(BaseModel):
    """Privilege change"""
    privilege: Privilege = Field(..., description="New privilege level")


class LinkRequest(BaseModel):
    employee_id: str = Field(..., description="Employee to link to the account")


class EmployeeRef(BaseModel):
    """Minimal employee for account listings"""
    id: str
    employee_number: str
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class AccountOut(BaseModel):
    id: str
    email: str
    privilege: Privilege
    employee_id: Optional[str] = None
    employee: Optional[EmployeeRef] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_z(dt)


class PasswordResetIssued(BaseModel):
    account_id: str
    delivered_to: str
    expires_in_minutes: int
