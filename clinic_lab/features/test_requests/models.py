# Test Requests Feature - Models

from enum import Enum
from typing import List, Optional
from datetime import datetime
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from clinic_lab.shared.models import TimestampMixin
from clinic_lab.features.billing.models import Billing


class TestRequestStatus(str, Enum):
    # Legacy initial status; a request returns here when its bill is cancelled
    PENDING = "Pending"
    BILLING_PENDING = "Billing_Pending"
    BILLING_GENERATED = "Billing_Generated"
    BILLING_PAID = "Billing_Paid"
    SUPERADMIN_REVIEW = "Superadmin_Review"
    SUPERADMIN_APPROVED = "Superadmin_Approved"
    SUPERADMIN_REJECTED = "Superadmin_Rejected"
    ASSIGNED = "Assigned"
    SAMPLE_COLLECTION_SCHEDULED = "Sample_Collection_Scheduled"
    SAMPLE_COLLECTED = "Sample_Collected"
    IN_LAB_TESTING = "In_Lab_Testing"
    TESTING_COMPLETED = "Testing_Completed"
    REPORT_GENERATED = "Report_Generated"
    REPORT_SENT = "Report_Sent"
    COMPLETED = "Completed"
    FEEDBACK_SENT = "feedback_sent"
    CANCELLED = "Cancelled"


class WorkflowStage(str, Enum):
    DOCTOR_REQUEST = "doctor_request"
    BILLING = "billing"
    SUPERADMIN_REVIEW = "superadmin_review"
    LAB_ASSIGNMENT = "lab_assignment"
    SAMPLE_COLLECTION = "sample_collection"
    LAB_TESTING = "lab_testing"
    REPORT_GENERATION = "report_generation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Urgency(str, Enum):
    NORMAL = "Normal"
    URGENT = "Urgent"
    EMERGENCY = "Emergency"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REQUIRES_CHANGES = "requires_changes"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVIEWED = "reviewed"


class SampleCollectionStatus(str, Enum):
    NOT_SCHEDULED = "Not_Scheduled"
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In_Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ResultStatus(str, Enum):
    NORMAL = "Normal"
    HIGH = "High"
    LOW = "Low"
    CRITICAL = "Critical"


class SuperadminReview(BaseModel):
    status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    additional_tests: Optional[str] = None
    patient_instructions: Optional[str] = None
    changes_required: Optional[str] = None
    approved_for_lab: bool = False
    feedback: Optional[str] = None


class Approval(BaseModel):
    approved: bool = False
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None


class Approvals(BaseModel):
    superadmin: Approval = Field(default_factory=Approval)
    lab: Approval = Field(default_factory=Approval)


class ResultValue(BaseModel):
    """One measured parameter, kept in the order the lab entered it."""
    parameter: str
    value: str
    unit: Optional[str] = None
    normal_range: Optional[str] = None
    status: ResultStatus = ResultStatus.NORMAL


class StatusChange(BaseModel):
    """Audit entry appended whenever status changes."""
    from_status: Optional[TestRequestStatus] = None
    to_status: TestRequestStatus
    changed_by: Optional[str] = None
    changed_by_name: Optional[str] = None
    changed_at: datetime = Field(default_factory=datetime.utcnow)
    note: Optional[str] = None


class TestRequest(Document, TimestampMixin):
    """
    Lab test request.

    ``status`` is authoritative; ``workflow_stage`` is derived from it on every
    change. Mutations go through the conditional update in
    ``TestRequestStore.commit`` keyed on ``status`` and ``version``.
    """

    # Who and for whom
    doctor_id: Indexed(str)
    doctor_name: Optional[str] = None
    patient_id: Indexed(str)
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None

    # Center snapshot for display without a join
    center_id: Optional[str] = None
    center_name: str = "Unknown Center"
    center_code: str = "Unknown"

    # What
    test_type: str
    test_description: Optional[str] = None
    urgency: Urgency = Urgency.NORMAL
    notes: Optional[str] = None

    # Workflow
    status: TestRequestStatus = TestRequestStatus.BILLING_PENDING
    workflow_stage: WorkflowStage = WorkflowStage.BILLING
    billing: Billing = Field(default_factory=Billing)
    superadmin_review: SuperadminReview = Field(default_factory=SuperadminReview)
    approvals: Approvals = Field(default_factory=Approvals)

    # Lab assignment
    assigned_lab_staff_id: Optional[str] = None
    assigned_lab_staff_name: Optional[str] = None
    lab_assigned_date: Optional[datetime] = None

    # Sample collection
    sample_collector_id: Optional[str] = None
    sample_collector_name: Optional[str] = None
    sample_collection_scheduled_date: Optional[datetime] = None
    sample_collection_actual_date: Optional[datetime] = None
    sample_collection_status: SampleCollectionStatus = SampleCollectionStatus.NOT_SCHEDULED
    sample_collection_notes: Optional[str] = None

    # Testing
    lab_technician_id: Optional[str] = None
    lab_technician_name: Optional[str] = None
    testing_start_date: Optional[datetime] = None
    testing_end_date: Optional[datetime] = None
    lab_testing_completed_date: Optional[datetime] = None
    testing_notes: Optional[str] = None

    # Results
    test_results: Optional[str] = None
    result_values: List[ResultValue] = Field(default_factory=list)
    conclusion: Optional[str] = None
    recommendations: Optional[str] = None

    # Report artifact
    report_file_path: Optional[str] = None
    report_summary: Optional[str] = None
    clinical_interpretation: Optional[str] = None
    report_generated_by: Optional[str] = None
    report_generated_by_name: Optional[str] = None
    report_generated_date: Optional[datetime] = None
    direct_upload_completed: bool = False

    # Delivery
    report_sent_date: Optional[datetime] = None
    report_sent_by: Optional[str] = None
    report_sent_by_name: Optional[str] = None
    send_method: Optional[str] = None
    email_subject: Optional[str] = None
    email_message: Optional[str] = None
    notification_message: Optional[str] = None
    sent_to: Optional[str] = None
    delivery_confirmation: bool = False

    status_history: List[StatusChange] = Field(default_factory=list)

    created_by: Optional[str] = None
    is_active: bool = True
    version: int = 0

    class Settings:
        name = "testrequests"
        use_state_management = True
        indexes = [
            [("center_id", 1), ("status", 1), ("is_active", 1)],
            [("doctor_id", 1), ("created_at", -1)],
            [("assigned_lab_staff_id", 1), ("status", 1)],
        ]
