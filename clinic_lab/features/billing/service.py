# Billing Feature - Service

from typing import List, Optional
from datetime import datetime
from clinic_lab.core.logging import logger
from clinic_lab.features.auth.models import Actor, Role
from clinic_lab.features.billing.models import BillingItem, BillingStatus
from clinic_lab.features.billing.schemas import BillItemInput, GenerateBillRequest, MarkBillPaidRequest
from clinic_lab.features.notifications.models import NotificationType
from clinic_lab.features.test_requests import workflow
from clinic_lab.features.test_requests.models import TestRequest, TestRequestStatus
from clinic_lab.features.test_requests.service import TestRequestWorkflow
from clinic_lab.features.test_requests.workflow import Action
from clinic_lab.shared.exceptions import ForbiddenException, InvalidTransitionException, ValidationException


# Roles that verify a payment and thereby mark the bill paid
VERIFYING_ROLES = {Role.CENTER_ADMIN, Role.SUPERADMIN}


def build_items(items: List[BillItemInput]) -> List[BillingItem]:
    if not items:
        raise ValidationException("At least one bill item is required", requiredFields=["items"])

    built = []
    for index, item in enumerate(items):
        if not item.name or item.unit_price is None or item.unit_price <= 0:
            raise ValidationException(
                f"Bill item {index + 1} needs a name and a positive unit price",
                requiredFields=["name", "unit_price"],
            )
        built.append(BillingItem(
            name=item.name,
            code=item.code,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=round(item.quantity * item.unit_price, 2),
        ))
    return built


def bill_total(items: List[BillingItem], taxes: float, discounts: float) -> float:
    subtotal = sum(item.total for item in items)
    return max(0.0, round(subtotal + taxes - discounts, 2))


def invoice_number(request: TestRequest, now: datetime) -> str:
    """``{centerCode}-{YYYYMMDDHHMMSS}-{last 5 of id}``; INV when the center has no code."""
    prefix = request.center_code if request.center_code and request.center_code != "Unknown" else "INV"
    return f"{prefix}-{now:%Y%m%d%H%M%S}-{str(request.id)[-5:]}"


class BillingLedger:
    """
    Bill generation and payment for test requests.

    Billing lives inside the TestRequest document, so every write goes
    through the workflow's guarded, conditional commit.
    """

    def __init__(self, workflow_engine: TestRequestWorkflow):
        self.workflow = workflow_engine

    async def generate_bill(self, request_id: str, data: GenerateBillRequest, actor: Actor) -> TestRequest:
        request = await self.workflow.load(request_id, actor)
        workflow.check(request, Action.GENERATE_BILL)

        items = build_items(data.items)
        now = datetime.utcnow()
        billing = request.billing.model_copy(update={
            "status": BillingStatus.GENERATED,
            "items": items,
            "taxes": data.taxes,
            "discounts": data.discounts,
            "amount": bill_total(items, data.taxes, data.discounts),
            "currency": data.currency or request.billing.currency,
            "invoice_number": invoice_number(request, now),
            "generated_at": now,
            "generated_by": actor.id,
            "notes": data.notes,
        })
        changes = {"billing": billing}
        changes.update(self.workflow.status_changes(request, actor, TestRequestStatus.BILLING_GENERATED))
        request = await self.workflow.commit(request, actor, changes)

        logger.info(f"Generated invoice {billing.invoice_number} for test request {request.id}: {billing.amount} {billing.currency}")

        message = f"Invoice {billing.invoice_number} for {request.test_type} ({request.patient_name}): {billing.amount} {billing.currency}."
        await self.workflow.notify_doctor(request, actor, NotificationType.BILLING, "Bill Generated", message)
        await self.workflow.notify_group(
            lambda: self.workflow.directory.center_admins(request.center_id), request, actor,
            NotificationType.BILLING, "Bill Generated - Payment Pending", message,
        )
        await self.workflow.notify_group(
            self.workflow.directory.superadmins, request, actor,
            NotificationType.BILLING, "Bill Generated", message,
        )
        return request

    async def mark_paid(self, request_id: str, data: MarkBillPaidRequest, actor: Actor) -> TestRequest:
        """
        Record or verify payment.

        A receptionist records that payment was received; a center admin
        verifies it, which marks the bill paid and the request Billing_Paid.
        A center admin may verify directly from a generated bill.
        """
        if actor.role == Role.RECEPTIONIST:
            action = Action.RECORD_PAYMENT
        elif actor.role in VERIFYING_ROLES:
            action = Action.VERIFY_PAYMENT
        else:
            raise ForbiddenException("Only receptionists and center admins can mark bills as paid")

        request = await self.workflow.load(request_id, actor)
        transition = workflow.check(request, action)

        if request.billing.amount is None:
            raise InvalidTransitionException(
                "Bill has no amount",
                current_status=request.status,
                billingStatus=request.billing.status.value,
                missing="billing.amount",
            )

        now = datetime.utcnow()
        update = {}
        if request.billing.paid_at is None:
            update.update(
                paid_at=now,
                paid_by=actor.id,
                paid_amount=request.billing.amount,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
            )

        changes = {}
        if action == Action.RECORD_PAYMENT:
            update["status"] = BillingStatus.PAYMENT_RECEIVED
            if data.notes:
                update["notes"] = data.notes
        else:
            update.update(
                status=BillingStatus.PAID,
                verified_at=now,
                verified_by=actor.id,
                verification_notes=data.notes,
            )
            changes.update(self.workflow.status_changes(request, actor, transition.target))

        changes["billing"] = request.billing.model_copy(update=update)
        request = await self.workflow.commit(request, actor, changes)

        if action == Action.RECORD_PAYMENT:
            await self.workflow.notify_group(
                lambda: self.workflow.directory.center_admins(request.center_id), request, actor,
                NotificationType.BILLING, "Payment Awaiting Verification",
                f"Payment for invoice {request.billing.invoice_number} was received and needs verification.",
            )
        else:
            await self.workflow.notify_doctor(
                request, actor, NotificationType.BILLING, "Payment Verified",
                f"Payment for {request.test_type} ({request.patient_name}) is verified.",
            )
        return request

    async def cancel_bill(self, request_id: str, reason: Optional[str], actor: Actor) -> TestRequest:
        """Void an unpaid bill; the request returns to Pending and may then be deleted."""
        request = await self.workflow.load(request_id, actor)
        transition = workflow.check(request, Action.CANCEL_BILL)

        billing = request.billing.model_copy(update={
            "status": BillingStatus.CANCELLED,
            "cancelled_at": datetime.utcnow(),
            "cancelled_by": actor.id,
            "cancellation_reason": reason,
        })
        changes = {"billing": billing}
        changes.update(self.workflow.status_changes(request, actor, transition.target, note=reason))
        request = await self.workflow.commit(request, actor, changes)

        await self.workflow.notify_doctor(
            request, actor, NotificationType.BILLING, "Bill Cancelled",
            f"Invoice {billing.invoice_number} for {request.test_type} was cancelled.{' Reason: ' + reason if reason else ''}",
        )
        return request
