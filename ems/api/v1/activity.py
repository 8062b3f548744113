"""
Activity log endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ems.core.deps import get_claim_context, get_db, require_privilege
from ems.models.account import Privilege
from ems.models.audit_log import ActivityAction, EntityType
from ems.policy import ClaimContext, authorize
from ems.policy.rules import ACTIVITY_LOGS, Operation
from ems.schemas.activity import ActivityCreate, ActivityOut
from ems.services.audit_service import list_activity, record_activity

router = APIRouter()


@router.get("", response_model=List[ActivityOut])
async def list_activity_endpoint(
    actor_id: Optional[str] = Query(None),
    action: Optional[ActivityAction] = Query(None),
    entity_type: Optional[EntityType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(require_privilege(Privilege.ADMIN)),
):
    """Recent activity, newest first (admin)"""
    return list_activity(db, ctx, actor_id=actor_id, action=action, entity_type=entity_type, skip=skip, limit=limit)


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def record_activity_endpoint(
    body: ActivityCreate,
    ctx: ClaimContext = Depends(get_claim_context),
):
    """
    Queue a client-reported activity entry for the caller.

    Accepted means queued, not written.
    """
    authorize(ctx, ACTIVITY_LOGS, Operation.INSERT, {"actor_id": ctx.account_id})
    record_activity(ctx.account_id, body.action, body.entity_type, body.entity_id, body.details)
    return {"accepted": True}
