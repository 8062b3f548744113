"""
Database models
"""
from ems.models.account import Account, Privilege, PRIVILEGE_RANK
from ems.models.employee import Employee, EmployeeStatus
from ems.models.leave import LeaveRequest, LeaveStatus, LeaveType
from ems.models.attendance import AttendanceRecord, AttendanceStatus
from ems.models.audit_log import ActivityLog, ActivityAction, EntityType

__all__ = [
    "Account",
    "Privilege",
    "PRIVILEGE_RANK",
    "Employee",
    "EmployeeStatus",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "AttendanceRecord",
    "AttendanceStatus",
    "ActivityLog",
    "ActivityAction",
    "EntityType",
]
