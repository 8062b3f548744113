"""
Attendance endpoints
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ems.core.deps import get_claim_context, get_db
from ems.policy import ClaimContext
from ems.schemas.attendance import AttendanceCreate, AttendanceOut
from ems.services import attendance_service

router = APIRouter()


@router.get("", response_model=List[AttendanceOut])
async def list_attendance_endpoint(
    employee_id: Optional[str] = Query(None, description="Omit to list every employee's records (admin/hr)"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return attendance_service.list_attendance(
        db, ctx, employee_id=employee_id, date_from=date_from, date_to=date_to, skip=skip, limit=limit
    )


@router.post("", response_model=AttendanceOut, status_code=status.HTTP_201_CREATED)
async def record_attendance_endpoint(
    record_data: AttendanceCreate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    return attendance_service.record_attendance(db, ctx, record_data)
