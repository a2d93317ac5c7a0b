# civreg/models/request.py
from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Optional, Union
from civreg.models.common import CamelModel

StaffId = Union[str, int]


class StateEvent(CamelModel):
    from_status: Optional[str] = None
    to_status: str
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    by_user_id: str
    by_user_name: str
    remarks: Optional[str] = None
    override: bool = False


class OverrideEntry(CamelModel):
    action: str
    reason: str
    by_user_id: str
    by_user_name: str
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    previous_amount: Optional[float] = None
    new_amount: Optional[float] = None


class StatusUpdate(CamelModel):
    # auxiliary fields vary per request type; unknown keys are kept and filtered by the service
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    status: str
    remarks: Optional[str] = None
    or_number: Optional[str] = None
    receipt_number: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    assigned_staff_id: Optional[StaffId] = None
    assigned_staff_name: Optional[str] = None
    assigned_engineer_id: Optional[StaffId] = None
    assigned_engineer_name: Optional[str] = None
    acknowledged_by: Optional[str] = None


class AcknowledgePayload(CamelModel):
    acknowledged_by: Optional[str] = None
    remarks: Optional[str] = None


class OverridePayload(CamelModel):
    action: str
    reason: Optional[str] = None
    new_amount: Optional[float] = None
