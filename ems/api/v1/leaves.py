"""
Leave request endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ems.core.deps import get_claim_context, get_db
from ems.models.leave import LeaveStatus
from ems.policy import ClaimContext
from ems.schemas.leave import LeaveCreate, LeaveDecision, LeaveOut
from ems.services import leave_service

router = APIRouter()


@router.get("", response_model=List[LeaveOut])
async def list_leaves_endpoint(
    employee_id: Optional[str] = Query(None, description="Omit to list every employee's requests (admin/hr)"),
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return leave_service.list_leaves(db, ctx, employee_id=employee_id, status_filter=status_filter, skip=skip, limit=limit)


@router.post("", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
async def create_leave_endpoint(
    leave_data: LeaveCreate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Submit a leave request for yourself, or for anyone as admin/hr"""
    return leave_service.create_leave(db, ctx, leave_data)


@router.get("/{leave_id}", response_model=LeaveOut)
async def get_leave_endpoint(
    leave_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return leave_service.get_leave(db, ctx, leave_id)


@router.post("/{leave_id}/decision", response_model=LeaveOut)
async def decide_leave_endpoint(
    leave_id: str,
    decision: LeaveDecision,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Approve, reject or cancel a pending request (admin/hr)"""
    return leave_service.decide_leave(db, ctx, leave_id, decision)
