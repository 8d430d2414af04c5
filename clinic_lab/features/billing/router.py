# Billing Feature - Router

from fastapi import APIRouter, Depends
from clinic_lab.features.auth.models import Actor, Role
from clinic_lab.features.auth.dependencies import require_roles
from clinic_lab.features.billing.dependencies import get_billing_ledger
from clinic_lab.features.billing.schemas import CancelBillRequest, GenerateBillRequest, MarkBillPaidRequest
from clinic_lab.features.billing.service import BillingLedger
from clinic_lab.features.test_requests.schemas import TestRequestResponse


router = APIRouter(prefix="/test-requests", tags=["Billing"])


@router.put("/{request_id}/billing/generate", response_model=TestRequestResponse)
async def generate_bill(
    request_id: str,
    data: GenerateBillRequest,
    actor: Actor = Depends(require_roles(Role.RECEPTIONIST)),
    ledger: BillingLedger = Depends(get_billing_ledger)
):
    """
    Generate the bill for a Billing_Pending request.

    - **items**: At least one item with a name and a positive unit price
    - **taxes** / **discounts**: Added to / subtracted from the subtotal
    """
    request = await ledger.generate_bill(request_id, data, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/billing/paid", response_model=TestRequestResponse)
async def mark_bill_paid(
    request_id: str,
    data: MarkBillPaidRequest,
    actor: Actor = Depends(require_roles(Role.RECEPTIONIST, Role.CENTER_ADMIN, Role.SUPERADMIN)),
    ledger: BillingLedger = Depends(get_billing_ledger)
):
    """
    Record payment (receptionist) or verify it (center admin).

    Only verification marks the bill paid and unlocks the lab workflow.
    """
    request = await ledger.mark_paid(request_id, data, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/billing/cancel", response_model=TestRequestResponse)
async def cancel_bill(
    request_id: str,
    data: CancelBillRequest,
    actor: Actor = Depends(require_roles(Role.RECEPTIONIST, Role.CENTER_ADMIN, Role.SUPERADMIN)),
    ledger: BillingLedger = Depends(get_billing_ledger)
):
    """Cancel an unpaid bill. The request goes back to Pending."""
    request = await ledger.cancel_bill(request_id, data.reason, actor)
    return TestRequestResponse.from_document(request)
