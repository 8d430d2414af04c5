"""Test bill generation, payment and cancellation."""

import re
from datetime import datetime

import pytest

from clinic_lab.features.billing.models import BillingItem, BillingStatus
from clinic_lab.features.billing.schemas import BillItemInput, GenerateBillRequest, MarkBillPaidRequest
from clinic_lab.features.billing.service import bill_total, build_items, invoice_number
from clinic_lab.features.test_requests.models import TestRequestStatus as S, WorkflowStage
from clinic_lab.shared.exceptions import ForbiddenException, InvalidTransitionException, ValidationException


async def test_bill_total():
    """Subtotal plus taxes minus discounts, never below zero."""
    items = [
        BillingItem(name="CBC", quantity=1, unit_price=450, total=450),
        BillingItem(name="ESR", quantity=2, unit_price=100, total=200),
    ]
    test_cases = [
        (0, 0, 650.0),
        (81, 31, 700.0),
        (0, 1000, 0.0),
    ]
    for taxes, discounts, expected in test_cases:
        assert bill_total(items, taxes, discounts) == expected


async def test_build_items_requires_name_and_price():
    with pytest.raises(ValidationException):
        build_items([])
    with pytest.raises(ValidationException):
        build_items([BillItemInput(name="CBC", unit_price=0)])
    with pytest.raises(ValidationException):
        build_items([BillItemInput(unit_price=100)])

    items = build_items([BillItemInput(name="Lipid Profile", quantity=3, unit_price=33.33)])
    assert items[0].total == 99.99


async def test_invoice_number_uses_center_code(clinic):
    request = await clinic.create()
    now = datetime(2024, 5, 1, 10, 15, 30)

    assert invoice_number(request, now) == f"DLH-20240501101530-{str(request.id)[-5:]}"

    request = request.model_copy(update={"center_code": "Unknown"})
    assert invoice_number(request, now).startswith("INV-20240501101530-")


async def test_generate_bill(clinic):
    request = await clinic.create()
    bill = GenerateBillRequest(
        items=[
            BillItemInput(name="Complete Blood Count", code="CBC", unit_price=450),
            BillItemInput(name="Collection fee", quantity=2, unit_price=50),
        ],
        taxes=99,
        discounts=49,
    )

    request = await clinic.ledger.generate_bill(str(request.id), bill, clinic.receptionist)

    assert request.status == S.BILLING_GENERATED
    assert request.workflow_stage == WorkflowStage.BILLING
    assert request.billing.status == BillingStatus.GENERATED
    assert request.billing.amount == 600.0
    assert request.billing.currency == "INR"
    assert request.billing.generated_by == clinic.receptionist.id
    assert re.fullmatch(r"DLH-\d{14}-\w{5}", request.billing.invoice_number)

    assert clinic.notifications.titled("Bill Generated - Payment Pending")[0].recipient_id == clinic.center_admin.id
    recipients = {n.recipient_id for n in clinic.notifications.titled("Bill Generated")}
    assert recipients == {clinic.doctor.id, clinic.superadmin.id}


async def test_generate_bill_twice(clinic):
    request = await clinic.request_at(S.BILLING_GENERATED)
    bill = GenerateBillRequest(items=[BillItemInput(name="CBC", unit_price=450)])

    with pytest.raises(InvalidTransitionException) as exc:
        await clinic.ledger.generate_bill(str(request.id), bill, clinic.receptionist)
    assert exc.value.context["currentStatus"] == "Billing_Generated"


async def test_payment_is_recorded_then_verified(clinic):
    """Receptionist records the payment; the center admin's verification marks it paid."""
    request = await clinic.request_at(S.BILLING_GENERATED)
    rid = str(request.id)

    request = await clinic.ledger.mark_paid(
        rid, MarkBillPaidRequest(payment_method="upi", transaction_id="TXN-42"), clinic.receptionist
    )
    assert request.status == S.BILLING_GENERATED
    assert request.billing.status == BillingStatus.PAYMENT_RECEIVED
    assert request.billing.paid_amount == request.billing.amount
    assert request.billing.transaction_id == "TXN-42"
    assert clinic.notifications.titled("Payment Awaiting Verification")[0].recipient_id == clinic.center_admin.id

    request = await clinic.ledger.mark_paid(rid, MarkBillPaidRequest(notes="Checked"), clinic.center_admin)
    assert request.status == S.BILLING_PAID
    assert request.billing.status == BillingStatus.PAID
    assert request.billing.verified_by == clinic.center_admin.id
    assert request.billing.verification_notes == "Checked"
    # Payment details from the first step are kept
    assert request.billing.payment_method == "upi"
    assert clinic.notifications.titled("Payment Verified")[0].recipient_id == clinic.doctor.id


async def test_doctor_cannot_mark_paid(clinic):
    request = await clinic.request_at(S.BILLING_GENERATED)

    with pytest.raises(ForbiddenException):
        await clinic.ledger.mark_paid(str(request.id), MarkBillPaidRequest(), clinic.doctor)


async def test_mark_paid_before_bill(clinic):
    request = await clinic.create()

    with pytest.raises(InvalidTransitionException) as exc:
        await clinic.ledger.mark_paid(str(request.id), MarkBillPaidRequest(), clinic.center_admin)
    assert exc.value.context["currentStatus"] == "Billing_Pending"


async def test_cancelled_bill_returns_request_to_pending(clinic):
    """A cancelled bill sends the request back to Pending, where it may be deleted."""
    request = await clinic.request_at(S.BILLING_GENERATED)
    rid = str(request.id)

    request = await clinic.ledger.cancel_bill(rid, "Patient declined", clinic.receptionist)

    assert request.status == S.PENDING
    assert request.workflow_stage == WorkflowStage.DOCTOR_REQUEST
    assert request.billing.status == BillingStatus.CANCELLED
    assert request.billing.cancellation_reason == "Patient declined"
    assert clinic.notifications.titled("Bill Cancelled")[0].recipient_id == clinic.doctor.id

    request = await clinic.engine.delete(rid, clinic.center_admin)
    assert request.is_active is False
