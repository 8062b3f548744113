"""
Activity log schemas
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ems.models.audit_log import ActivityAction, EntityType
from ems.utils.datetime_utils import iso_z


class ActivityCreate(BaseModel):
    """Client-reported activity. The actor is always the caller."""
    action: ActivityAction
    entity_type: EntityType
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ActivityOut(BaseModel):
    id: str
    actor_id: Optional[str] = None
    action: ActivityAction
    entity_type: EntityType
    entity_id: Optional[str] = None
    details: Dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_z(dt)
