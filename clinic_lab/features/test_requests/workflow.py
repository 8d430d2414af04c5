# Test Requests Feature - Transition table
#
# Every mutation of a TestRequest names an Action; the table below says from
# which statuses it may run, which billing statuses it needs and where it
# leads. The engine in service.py never checks a status by hand.

from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict
from clinic_lab.features.billing.models import BillingStatus
from clinic_lab.features.test_requests.models import (
    SampleCollectionStatus,
    TestRequest,
    TestRequestStatus as S,
    WorkflowStage,
)
from clinic_lab.core.logging import workflow_logger
from clinic_lab.shared.exceptions import InvalidTransitionException


class Action(str, Enum):
    GENERATE_BILL = "generate_bill"
    RECORD_PAYMENT = "record_payment"
    VERIFY_PAYMENT = "verify_payment"
    CANCEL_BILL = "cancel_bill"
    SUBMIT_FOR_REVIEW = "submit_for_review"
    APPROVE = "approve"
    REJECT = "reject"
    REQUIRE_CHANGES = "require_changes"
    ASSIGN_LAB_STAFF = "assign_lab_staff"
    SCHEDULE_COLLECTION = "schedule_sample_collection"
    UPDATE_COLLECTION_STATUS = "update_sample_collection_status"
    START_TESTING = "start_lab_testing"
    COMPLETE_TESTING = "complete_lab_testing"
    GENERATE_REPORT = "generate_report"
    SEND_REPORT = "send_report"
    SEND_FEEDBACK = "send_feedback"
    OVERRIDE_STATUS = "override_status"
    CANCEL = "cancel"
    DELETE = "delete"


class Transition(BaseModel):
    """
    Guard and target of one action.

    ``sources`` of None means any status except ``excluded``; a ``target`` of
    None leaves the status to the engine (unchanged, or picked from input).
    """
    model_config = ConfigDict(frozen=True)

    label: str
    sources: Optional[FrozenSet[S]] = None
    excluded: FrozenSet[S] = frozenset()
    target: Optional[S] = None
    billing: Optional[FrozenSet[BillingStatus]] = None

    def allows(self, status: S) -> bool:
        if self.sources is None:
            return status not in self.excluded
        return status in self.sources


PAID = frozenset({BillingStatus.PAID})
REVIEWABLE = frozenset({S.SUPERADMIN_REVIEW, S.SUPERADMIN_REJECTED})

# A delivered or closed request cannot be cancelled
TERMINAL_STATUSES = frozenset({S.REPORT_SENT, S.COMPLETED, S.FEEDBACK_SENT, S.CANCELLED})

# Statuses in which a report artifact may be downloaded
REPORT_READY_STATUSES = frozenset({S.REPORT_GENERATED, S.REPORT_SENT, S.COMPLETED, S.FEEDBACK_SENT})

# Past Report_Generated; regenerating a report here must not move status back
REPORT_DELIVERED_STATUSES = frozenset({S.REPORT_SENT, S.COMPLETED, S.FEEDBACK_SENT})

# Delete only accepts the legacy Pending status (reached through bill
# cancellation) and Cancelled; Billing_Pending is deliberately not included.
DELETABLE_STATUSES = frozenset({S.PENDING, S.CANCELLED})


TRANSITIONS: Dict[Action, Transition] = {
    Action.GENERATE_BILL: Transition(
        label="generate bill",
        sources=frozenset({S.BILLING_PENDING}),
        target=S.BILLING_GENERATED,
        billing=frozenset({BillingStatus.NOT_GENERATED}),
    ),
    Action.RECORD_PAYMENT: Transition(
        label="record payment",
        sources=frozenset({S.BILLING_GENERATED}),
        billing=frozenset({BillingStatus.GENERATED}),
    ),
    Action.VERIFY_PAYMENT: Transition(
        label="verify payment",
        sources=frozenset({S.BILLING_GENERATED}),
        target=S.BILLING_PAID,
        billing=frozenset({BillingStatus.GENERATED, BillingStatus.PAYMENT_RECEIVED}),
    ),
    Action.CANCEL_BILL: Transition(
        label="cancel bill",
        sources=frozenset({S.BILLING_GENERATED}),
        target=S.PENDING,
        billing=frozenset({BillingStatus.GENERATED, BillingStatus.PAYMENT_RECEIVED}),
    ),
    Action.SUBMIT_FOR_REVIEW: Transition(
        label="submit for superadmin review",
        sources=frozenset({S.BILLING_PAID, S.SUPERADMIN_REJECTED}),
        target=S.SUPERADMIN_REVIEW,
        billing=PAID,
    ),
    Action.APPROVE: Transition(
        label="approve test request",
        sources=REVIEWABLE,
        target=S.SUPERADMIN_APPROVED,
        billing=PAID,
    ),
    Action.REJECT: Transition(
        label="reject test request",
        sources=REVIEWABLE,
        target=S.SUPERADMIN_REJECTED,
    ),
    Action.REQUIRE_CHANGES: Transition(
        label="request changes",
        sources=REVIEWABLE,
        target=S.SUPERADMIN_REVIEW,
    ),
    Action.ASSIGN_LAB_STAFF: Transition(
        label="assign lab staff",
        sources=frozenset({S.BILLING_PAID, S.SUPERADMIN_APPROVED}),
        target=S.ASSIGNED,
        billing=PAID,
    ),
    Action.SCHEDULE_COLLECTION: Transition(
        label="schedule sample collection",
        sources=frozenset({S.ASSIGNED}),
        target=S.SAMPLE_COLLECTION_SCHEDULED,
        billing=PAID,
    ),
    Action.UPDATE_COLLECTION_STATUS: Transition(
        label="update sample collection status",
        sources=frozenset({S.SAMPLE_COLLECTION_SCHEDULED}),
    ),
    Action.START_TESTING: Transition(
        label="start lab testing",
        sources=frozenset({S.SAMPLE_COLLECTED}),
        target=S.IN_LAB_TESTING,
        billing=PAID,
    ),
    Action.COMPLETE_TESTING: Transition(
        label="complete lab testing",
        sources=frozenset({S.IN_LAB_TESTING}),
        target=S.TESTING_COMPLETED,
        billing=PAID,
    ),
    Action.GENERATE_REPORT: Transition(
        label="generate report",
        excluded=frozenset({S.CANCELLED}),
        target=S.REPORT_GENERATED,
    ),
    Action.SEND_REPORT: Transition(
        label="send report",
        sources=frozenset({S.REPORT_GENERATED}),
        target=S.REPORT_SENT,
    ),
    Action.SEND_FEEDBACK: Transition(
        label="send feedback",
        sources=frozenset({S.REPORT_GENERATED, S.REPORT_SENT, S.COMPLETED}),
        target=S.FEEDBACK_SENT,
    ),
    Action.OVERRIDE_STATUS: Transition(label="update status"),
    Action.CANCEL: Transition(
        label="cancel test request",
        excluded=TERMINAL_STATUSES,
        target=S.CANCELLED,
    ),
    Action.DELETE: Transition(
        label="delete test request",
        sources=DELETABLE_STATUSES,
    ),
}


STAGE_FOR_STATUS: Dict[S, WorkflowStage] = {
    S.PENDING: WorkflowStage.DOCTOR_REQUEST,
    S.BILLING_PENDING: WorkflowStage.BILLING,
    S.BILLING_GENERATED: WorkflowStage.BILLING,
    S.BILLING_PAID: WorkflowStage.BILLING,
    S.SUPERADMIN_REVIEW: WorkflowStage.SUPERADMIN_REVIEW,
    S.SUPERADMIN_APPROVED: WorkflowStage.LAB_ASSIGNMENT,
    S.SUPERADMIN_REJECTED: WorkflowStage.DOCTOR_REQUEST,
    S.ASSIGNED: WorkflowStage.LAB_ASSIGNMENT,
    S.SAMPLE_COLLECTION_SCHEDULED: WorkflowStage.SAMPLE_COLLECTION,
    S.SAMPLE_COLLECTED: WorkflowStage.SAMPLE_COLLECTION,
    S.IN_LAB_TESTING: WorkflowStage.LAB_TESTING,
    S.TESTING_COMPLETED: WorkflowStage.LAB_TESTING,
    S.REPORT_GENERATED: WorkflowStage.REPORT_GENERATION,
    S.REPORT_SENT: WorkflowStage.COMPLETED,
    S.COMPLETED: WorkflowStage.COMPLETED,
    S.FEEDBACK_SENT: WorkflowStage.COMPLETED,
    S.CANCELLED: WorkflowStage.CANCELLED,
}


def stage_for(status: S) -> WorkflowStage:
    return STAGE_FOR_STATUS[status]


def collection_target(current: S, collection_status: SampleCollectionStatus) -> S:
    """Top-level status implied by a sample collection update."""
    if collection_status == SampleCollectionStatus.COMPLETED:
        return S.SAMPLE_COLLECTED
    if collection_status == SampleCollectionStatus.IN_PROGRESS:
        return S.SAMPLE_COLLECTION_SCHEDULED
    return current


def _values(items) -> List[str]:
    return sorted(item.value for item in items)


def check(request: TestRequest, action: Action) -> Transition:
    """
    Validate ``action`` against the request's current state.

    Raises:
        InvalidTransitionException: with ``currentStatus`` and the unmet
            precondition (required statuses and/or billing status)
    """
    transition = TRANSITIONS[action]
    status = request.status

    if not request.is_active:
        raise InvalidTransitionException(
            f"Cannot {transition.label}: test request has been deleted",
            current_status=status,
            isActive=False,
        )

    if not transition.allows(status):
        context = {}
        if transition.sources is not None:
            context["requiredStatuses"] = _values(transition.sources)
        else:
            context["disallowedStatuses"] = _values(transition.excluded)
        workflow_logger.warning(f"Rejected {action.value} on test request {request.id}: status is {status.value}")
        raise InvalidTransitionException(
            f"Cannot {transition.label} while test request is {status.value}",
            current_status=status,
            **context,
        )

    if transition.billing is not None and request.billing.status not in transition.billing:
        workflow_logger.warning(
            f"Rejected {action.value} on test request {request.id}: billing is {request.billing.status.value}"
        )
        raise InvalidTransitionException(
            f"Cannot {transition.label}: billing status is {request.billing.status.value}",
            current_status=status,
            billingStatus=request.billing.status.value,
            requiredBillingStatuses=_values(transition.billing),
        )

    return transition
