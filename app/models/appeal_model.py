from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.models.common import ObjectId


class AppealStatus(str, Enum):
    PENDING = "pending"
    CONVERTED_TO_INCIDENCE = "converted_to_incidence"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"


ACTIVE_APPEAL_STATUSES = [AppealStatus.PENDING.value, AppealStatus.CONVERTED_TO_INCIDENCE.value]


class AppealCreate(BaseModel):
    incidence_id: ObjectId
    message: str


class AppealUpdate(BaseModel):
    message: Optional[str] = None
