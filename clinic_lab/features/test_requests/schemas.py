# Test Requests Feature - Schemas

from enum import Enum
from typing import Any, List, Optional
from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field
from clinic_lab.features.billing.models import Billing
from clinic_lab.features.test_requests.models import (
    Approvals,
    ResultStatus,
    ResultValue,
    SampleCollectionStatus,
    StatusChange,
    SuperadminReview,
    TestRequest,
    TestRequestStatus,
    Urgency,
    WorkflowStage,
)


class TestRequestCreate(BaseModel):
    """Schema for creating a test request."""
    doctor_id: Optional[str] = Field(None, description="Requesting doctor; defaults to the caller")
    patient_id: str = Field(..., description="Patient ID")
    test_type: str = Field(..., min_length=1, description="Test type, e.g. CBC")
    test_description: Optional[str] = None
    urgency: Urgency = Urgency.NORMAL
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "test_type": "CBC",
                "test_description": "Complete blood count",
                "urgency": "Normal",
                "notes": "Fasting sample",
            }
        }


class AssignLabStaffRequest(BaseModel):
    lab_staff_id: str
    lab_staff_name: Optional[str] = None


class ScheduleCollectionRequest(BaseModel):
    # Required, but checked by the workflow so the error names the field
    sample_collector_id: Optional[str] = None
    sample_collector_name: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class CollectionStatusRequest(BaseModel):
    status: SampleCollectionStatus
    actual_date: Optional[datetime] = None
    notes: Optional[str] = None


class StartTestingRequest(BaseModel):
    lab_technician_id: Optional[str] = None
    lab_technician_name: Optional[str] = None
    notes: Optional[str] = None


class ResultParameterInput(BaseModel):
    """
    One measured parameter as submitted by the lab.

    Older clients send ``name`` instead of ``parameter`` and ``normalRange``
    instead of ``normal_range``; both are accepted.
    """
    parameter: Optional[str] = None
    name: Optional[str] = None
    value: Any = None
    unit: Optional[str] = None
    normal_range: Optional[str] = Field(
        None, validation_alias=AliasChoices("normal_range", "normalRange")
    )
    status: ResultStatus = ResultStatus.NORMAL


class CompleteTestingRequest(BaseModel):
    results: Optional[str] = None
    parameters: List[ResultParameterInput] = Field(default_factory=list)
    conclusion: Optional[str] = None
    recommendations: Optional[str] = None
    completed_date: Optional[datetime] = None
    notes: Optional[str] = None


class GenerateReportRequest(BaseModel):
    report_summary: Optional[str] = None
    clinical_interpretation: Optional[str] = None


class SendReportRequest(BaseModel):
    send_method: str = "system"
    email_subject: Optional[str] = None
    email_message: Optional[str] = None
    notification_message: Optional[str] = None
    sent_to: Optional[str] = None
    delivery_confirmation: bool = False


class StatusUpdateRequest(BaseModel):
    # Plain string so an unknown status is reported by the workflow, not by FastAPI
    status: str
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUIRE_CHANGES = "require_changes"


class ReviewRequest(BaseModel):
    action: str = Field(..., description="approve, reject or require_changes")
    review_notes: Optional[str] = None
    additional_tests: Optional[str] = None
    patient_instructions: Optional[str] = None
    changes_required: Optional[str] = None


class FeedbackRequest(BaseModel):
    feedback: str = Field(..., min_length=1)
    additional_notes: Optional[str] = None


class TestRequestResponse(BaseModel):
    """Schema for test request response."""
    id: str
    doctor_id: str
    doctor_name: Optional[str] = None
    patient_id: str
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    center_id: Optional[str] = None
    center_name: str
    center_code: str
    test_type: str
    test_description: Optional[str] = None
    urgency: Urgency
    notes: Optional[str] = None

    status: TestRequestStatus
    workflow_stage: WorkflowStage
    billing: Billing
    superadmin_review: SuperadminReview
    approvals: Approvals

    assigned_lab_staff_id: Optional[str] = None
    assigned_lab_staff_name: Optional[str] = None
    lab_assigned_date: Optional[datetime] = None
    sample_collector_id: Optional[str] = None
    sample_collector_name: Optional[str] = None
    sample_collection_scheduled_date: Optional[datetime] = None
    sample_collection_actual_date: Optional[datetime] = None
    sample_collection_status: SampleCollectionStatus
    sample_collection_notes: Optional[str] = None
    lab_technician_id: Optional[str] = None
    lab_technician_name: Optional[str] = None
    testing_start_date: Optional[datetime] = None
    testing_end_date: Optional[datetime] = None
    lab_testing_completed_date: Optional[datetime] = None
    testing_notes: Optional[str] = None

    test_results: Optional[str] = None
    result_values: List[ResultValue]
    conclusion: Optional[str] = None
    recommendations: Optional[str] = None

    report_file_path: Optional[str] = None
    report_summary: Optional[str] = None
    clinical_interpretation: Optional[str] = None
    report_generated_by: Optional[str] = None
    report_generated_by_name: Optional[str] = None
    report_generated_date: Optional[datetime] = None
    report_sent_date: Optional[datetime] = None
    report_sent_by: Optional[str] = None
    report_sent_by_name: Optional[str] = None
    send_method: Optional[str] = None
    sent_to: Optional[str] = None
    delivery_confirmation: bool = False

    status_history: List[StatusChange]
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, request: TestRequest) -> "TestRequestResponse":
        data = request.model_dump(exclude={"id", "revision_id"})
        return cls(id=str(request.id), **data)


class ReportStatusResponse(BaseModel):
    test_request_id: str
    status: TestRequestStatus
    available: bool
    report_generated_date: Optional[datetime] = None
    file_name: Optional[str] = None
    message: str
