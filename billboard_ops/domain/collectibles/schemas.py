"""Collectibles domain schemas - Pydantic models for billing configuration and schedules"""

from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ...notifications import Notification

YesNo = Literal["Yes", "No"]
Terms = Literal["1 month", "2 months"]
CollectibleStatus = Literal["pending", "collected", "overdue", "paid"]


class BillingType(str, Enum):
    MONTHLY = "Monthly"
    ONE_TIME = "One Time"


class CamelModel(BaseModel):
    """Accepts and emits the camelCase field names used by the treasury forms"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BillingConfiguration(CamelModel):
    """Transient billing terms a payment schedule is generated from"""

    billing_type: BillingType = BillingType.MONTHLY
    rate: float = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_months: int = 0
    deposit_required: YesNo = "No"
    deposit_terms: Terms = "1 month"
    deposit_amount: float = 0
    # Collected for the record only; not priced into the schedule
    advance_required: YesNo = "No"
    advance_terms: Terms = "1 month"


class PaymentScheduleEntry(CamelModel):
    label: str
    amount: float


class FieldChange(CamelModel):
    """One form edit, replayed through the deposit rules in order"""

    field: Literal[
        "billing_type",
        "rate",
        "start_date",
        "end_date",
        "total_months",
        "deposit_required",
        "deposit_terms",
        "deposit_amount",
        "advance_required",
        "advance_terms",
    ]
    value: Any


class SchedulePreviewRequest(CamelModel):
    changes: list[FieldChange] = []


class SchedulePreviewResponse(CamelModel):
    booking_id: str
    configuration: BillingConfiguration
    schedule: list[PaymentScheduleEntry]
    total: float


class CreateCollectiblesRequest(CamelModel):
    """Submitted billing form; the schedule is recomputed server-side"""

    configuration: BillingConfiguration

    @field_validator("configuration")
    @classmethod
    def validate_amounts(cls, v: BillingConfiguration):
        if v.rate < 0:
            raise ValueError("Rate must not be negative")
        if v.total_months < 0:
            raise ValueError("Total months must not be negative")
        if v.deposit_amount < 0:
            raise ValueError("Deposit amount must not be negative")
        return v


class CollectiblesCreated(CamelModel):
    booking_id: str
    collectible_ids: list[str]
    invoice_ids: list[str]
    total: float
    notifications: list[Notification] = []


class StatusUpdateRequest(CamelModel):
    status: CollectibleStatus


class CollectibleResponse(CamelModel):
    id: str
    status: Optional[str] = None
    amount: Optional[float] = None
    period: Optional[str] = None
    due_date: Optional[date] = None
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    deleted: bool = False
