"""
Attendance schemas
"""
from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from ems.models.attendance import AttendanceStatus
from ems.utils.datetime_utils import iso_z


class AttendanceCreate(BaseModel):
    employee_id: str = Field(..., description="Employee the record is for")
    date: date
    check_in: Optional[time] = None
    check_out: Optional[time] = None
    status: AttendanceStatus = Field(default=AttendanceStatus.PRESENT)
    notes: str = Field(default="")

    @model_validator(mode="after")
    def check_times(self) -> "AttendanceCreate":
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out cannot be before check_in")
        return self


class AttendanceOut(BaseModel):
    id: str
    employee_id: str
    date: date
    check_in: Optional[time] = None
    check_out: Optional[time] = None
    status: AttendanceStatus
    notes: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_z(dt)
