"""
Employee directory endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ems.core.deps import get_claim_context, get_db
from ems.models.employee import EmployeeStatus
from ems.policy import ClaimContext
from ems.schemas.employee import EmployeeCreate, EmployeeOut, EmployeeUpdate
from ems.services import employee_service

router = APIRouter()


@router.get("", response_model=List[EmployeeOut])
async def list_employees_endpoint(
    status_filter: Optional[EmployeeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return employee_service.list_employees(db, ctx, status_filter=status_filter, search=search, skip=skip, limit=limit)


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee_endpoint(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Create an employee (admin/hr)"""
    return employee_service.create_employee(db, ctx, employee_data)


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee_endpoint(
    employee_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return employee_service.get_employee(db, ctx, employee_id)


@router.patch("/{employee_id}", response_model=EmployeeOut)
async def update_employee_endpoint(
    employee_id: str,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Update an employee (admin/hr)"""
    return employee_service.update_employee(db, ctx, employee_id, employee_data)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee_endpoint(
    employee_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Delete an employee (admin only)"""
    employee_service.delete_employee(db, ctx, employee_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
