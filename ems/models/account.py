"""
Account model: the authorization record
"""
import enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ems.db.base import Base


class Privilege(str, enum.Enum):
    ADMIN = "admin"
    HR = "hr"
    EMPLOYEE = "employee"

    @property
    def rank(self) -> int:
        """Larger rank = more authority"""
        return PRIVILEGE_RANK[self]

    @classmethod
    def parse(cls, value):
        """Return the matching Privilege, or None for unknown/missing values"""
        if value is None:
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


PRIVILEGE_RANK = {
    Privilege.EMPLOYEE: 1,
    Privilege.HR: 2,
    Privilege.ADMIN: 3,
}


def _new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)
    privilege = Column(String, nullable=False, default=Privilege.EMPLOYEE.value)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    # Claim metadata copied into every issued session claim
    app_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    employee = relationship("Employee", back_populates="account")

    __table_args__ = (
        # An employee can be the target of at most one account link
        UniqueConstraint("employee_id", name="uq_accounts_employee_id"),
        CheckConstraint("privilege IN ('admin', 'hr', 'employee')", name="ck_accounts_privilege"),
    )
