"""
Activity log model (append-only audit trail)
"""
import enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from ems.db.base import Base


class ActivityAction(str, enum.Enum):
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_EMPLOYEE_LINKED = "user_employee_linked"
    USER_EMPLOYEE_UNLINKED = "user_employee_unlinked"
    USER_PASSWORD_RESET = "user_password_reset"
    EMPLOYEE_CREATED = "employee_created"
    EMPLOYEE_UPDATED = "employee_updated"
    EMPLOYEE_DELETED = "employee_deleted"
    LEAVE_REQUESTED = "leave_requested"
    LEAVE_APPROVED = "leave_approved"
    LEAVE_REJECTED = "leave_rejected"
    LEAVE_CANCELLED = "leave_cancelled"
    ATTENDANCE_RECORDED = "attendance_recorded"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"


class EntityType(str, enum.Enum):
    USER = "user"
    EMPLOYEE = "employee"
    LEAVE = "leave"
    ATTENDANCE = "attendance"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Entries outlive their actor; deleting an account only clears the reference
    actor_id = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    # Set explicitly by the writer; SQLite server defaults lose the timezone
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
