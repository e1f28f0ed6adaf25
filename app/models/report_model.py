from enum import Enum

from pydantic import BaseModel

from app.models.common import ObjectId


class ReportStatus(str, Enum):
    PENDING = "pending"
    CONVERTED_TO_INCIDENCE = "converted_to_incidence"
    DISMISSED = "dismissed"


class ReportCreate(BaseModel):
    type: str
    description: str
    product_id: ObjectId
