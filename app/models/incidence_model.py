from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.models.common import ObjectId


class IncidenceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Resolution(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    PERMANENTLY_SUSPENDED = "permanently_suspended"


OPEN_INCIDENCE_STATUSES = [IncidenceStatus.PENDING.value, IncidenceStatus.IN_PROGRESS.value]


class IncidenceCreate(BaseModel):
    description: str
    assigned_to: ObjectId
    product_id: ObjectId
    status: Optional[str] = None
    report_count: Optional[int] = None
    report_id: Optional[ObjectId] = None
    appeal_id: Optional[ObjectId] = None
    is_appeal_review: bool = False


class IncidenceUpdate(BaseModel):
    description: Optional[str] = None
    status: Optional[str] = None
    product_id: Optional[ObjectId] = None
    assigned_to: Optional[ObjectId] = None
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None
