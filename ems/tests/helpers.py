"""
Factories shared by the test modules
"""
from typing import Optional

from sqlalchemy.orm import Session

from ems.core.security import create_access_token, hash_password
from ems.models import Account, Employee, Privilege
from ems.services.auth_service import sync_claim_metadata

DEFAULT_PASSWORD = "testpass123"


def make_employee(
    db: Session,
    employee_number: str,
    first_name: str = "Test",
    last_name: str = "Employee",
    email: Optional[str] = None,
    status: str = "active",
) -> Employee:
    employee = Employee(
        employee_number=employee_number,
        first_name=first_name,
        last_name=last_name,
        email=email or f"{employee_number.lower()}@staff.example.com",
        position="Engineer",
        status=status,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def make_account(
    db: Session,
    email: str,
    privilege: Privilege = Privilege.EMPLOYEE,
    employee_id: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
    with_claim_metadata: bool = True,
) -> Account:
    """Create an account; without claim metadata its claims carry no privilege"""
    account = Account(
        email=email,
        password_hash=hash_password(password),
        privilege=privilege.value,
        employee_id=employee_id,
        app_metadata={},
    )
    if with_claim_metadata:
        sync_claim_metadata(db, account, commit=False)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def headers_for(account: Account, expires_minutes: Optional[int] = None) -> dict:
    """Bearer headers carrying whatever privilege the account's claim metadata holds"""
    token = create_access_token(
        account_id=account.id,
        email=account.email,
        privilege=(account.app_metadata or {}).get("privilege"),
        expires_minutes=expires_minutes,
    )
    return {"Authorization": f"Bearer {token}"}

