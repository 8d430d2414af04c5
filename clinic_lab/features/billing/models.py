# Billing Feature - Models
# Embedded in TestRequest; billing has no collection of its own.

from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field
from clinic_lab.config import settings


class BillingStatus(str, Enum):
    NOT_GENERATED = "not_generated"
    GENERATED = "generated"
    PAYMENT_RECEIVED = "payment_received"
    PAID = "paid"
    CANCELLED = "cancelled"


class BillingItem(BaseModel):
    name: str
    code: Optional[str] = None
    quantity: int = 1
    unit_price: float
    total: float


class Billing(BaseModel):
    """Invoice and payment state of one test request."""

    status: BillingStatus = BillingStatus.NOT_GENERATED
    amount: Optional[float] = None
    paid_amount: float = 0
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    items: List[BillingItem] = Field(default_factory=list)
    taxes: float = 0
    discounts: float = 0
    invoice_number: Optional[str] = None
    notes: Optional[str] = None

    generated_at: Optional[datetime] = None
    generated_by: Optional[str] = None

    # Payment
    paid_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None

    # Center admin verification
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    verification_notes: Optional[str] = None

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
