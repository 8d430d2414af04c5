# Billing Feature - Schemas

from typing import List, Optional
from pydantic import BaseModel, Field


class BillItemInput(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit_price: Optional[float] = None


class GenerateBillRequest(BaseModel):
    """Schema for generating the bill of a test request."""
    items: List[BillItemInput] = Field(default_factory=list)
    taxes: float = 0
    discounts: float = 0
    currency: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "items": [{"name": "Complete Blood Count", "code": "CBC", "quantity": 1, "unit_price": 450}],
                "taxes": 81,
                "discounts": 0,
                "currency": "INR",
            }
        }


class MarkBillPaidRequest(BaseModel):
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class CancelBillRequest(BaseModel):
    reason: Optional[str] = None
