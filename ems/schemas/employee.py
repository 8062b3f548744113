"""
Employee schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ems.models.employee import EmployeeStatus
from ems.utils.text import normalize_email
from ems.utils.datetime_utils import iso_z


class EmployeeCreate(BaseModel):
    """Schema for creating an employee"""
    employee_number: str = Field(..., min_length=1, description="Employee number (unique)")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., description="Work email (unique)")
    position: str = Field(..., min_length=1)
    status: EmployeeStatus = Field(default=EmployeeStatus.ACTIVE)

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee"""
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    position: Optional[str] = Field(None, min_length=1)
    status: Optional[EmployeeStatus] = None

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)


class EmployeeOut(BaseModel):
    id: str
    employee_number: str
    first_name: str
    last_name: str
    email: str
    position: str
    status: EmployeeStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_z(dt)
