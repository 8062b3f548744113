"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from ems.models.leave import LeaveStatus, LeaveType
from ems.utils.datetime_utils import iso_z


class LeaveCreate(BaseModel):
    """Schema for requesting leave"""
    employee_id: str = Field(..., description="Employee the leave is for")
    leave_type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave")
    reason: str = Field(..., min_length=1, description="Reason for leave")

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class LeaveDecision(BaseModel):
    """Approve, reject or cancel a pending request"""
    status: LeaveStatus = Field(..., description="approved, rejected or cancelled")
    rejection_reason: Optional[str] = Field(None, description="Required when rejecting")

    @model_validator(mode="after")
    def check_decision(self) -> "LeaveDecision":
        if self.status == LeaveStatus.PENDING:
            raise ValueError("A decision cannot set the status back to pending")
        if self.status == LeaveStatus.REJECTED and not (self.rejection_reason or "").strip():
            raise ValueError("rejection_reason is required when rejecting")
        return self


class LeaveOut(BaseModel):
    id: str
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_count: int
    reason: str
    status: LeaveStatus
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("decided_at", "created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_z(dt)
