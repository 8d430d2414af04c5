# Test Requests Feature - Router

import json
from typing import Optional
from datetime import datetime
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError
from clinic_lab.config import settings
from clinic_lab.features.auth.models import (
    Actor,
    ADMIN_ROLES,
    LAB_ROLES,
    REPORT_READER_ROLES,
    REQUESTER_ROLES,
)
from clinic_lab.features.auth.dependencies import get_current_actor, require_roles
from clinic_lab.features.test_requests.dependencies import get_workflow
from clinic_lab.features.test_requests.schemas import (
    AssignLabStaffRequest,
    CancelRequest,
    CollectionStatusRequest,
    CompleteTestingRequest,
    GenerateReportRequest,
    ReportStatusResponse,
    ScheduleCollectionRequest,
    SendReportRequest,
    StartTestingRequest,
    StatusUpdateRequest,
    TestRequestCreate,
    TestRequestResponse,
)
from clinic_lab.features.test_requests.service import TestRequestWorkflow
from clinic_lab.shared.exceptions import BadRequestException, ValidationException
from clinic_lab.shared.schemas import MessageResponse


router = APIRouter(prefix="/test-requests", tags=["Test Requests"])

PDF_CONTENT_TYPES = {"application/pdf", "application/octet-stream"}


# ==================== Doctor Endpoints ====================

@router.post("", response_model=TestRequestResponse, status_code=201)
async def create_test_request(
    data: TestRequestCreate,
    actor: Actor = Depends(require_roles(*REQUESTER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Create a test request. It starts in Billing_Pending.

    - **patient_id**: Patient ID
    - **test_type**: Test type (e.g., CBC)
    - **urgency**: Normal, Urgent or Emergency
    - **doctor_id**: Requesting doctor (defaults to the caller)
    """
    request = await engine.create(data, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/submit-review", response_model=TestRequestResponse)
async def submit_for_review(
    request_id: str,
    actor: Actor = Depends(require_roles(*REQUESTER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Send a paid (or previously rejected) request to superadmin review."""
    request = await engine.submit_for_review(request_id, actor)
    return TestRequestResponse.from_document(request)


# Two-segment report routes; they never collide with /{request_id}
@router.get("/report-status/{request_id}", response_model=ReportStatusResponse)
async def check_report_status(
    request_id: str,
    actor: Actor = Depends(require_roles(*REPORT_READER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Whether the report of a test request can be downloaded."""
    request, path, message = await engine.report_status(request_id, actor)
    return ReportStatusResponse(
        test_request_id=str(request.id),
        status=request.status,
        available=path is not None,
        report_generated_date=request.report_generated_date,
        file_name=path.name if path else None,
        message=message,
    )


@router.get("/download-report/{request_id}")
async def download_test_report(
    request_id: str,
    actor: Actor = Depends(require_roles(*REPORT_READER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Stream the report PDF."""
    request, path = await engine.open_report(request_id, actor)
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=f"test-report-{request.id}.pdf",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )


@router.get("/{request_id}", response_model=TestRequestResponse)
async def get_test_request(
    request_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Get one test request of the caller's center."""
    request = await engine.load(request_id, actor)
    return TestRequestResponse.from_document(request)


# ==================== Lab Endpoints ====================

@router.put("/{request_id}/assign", response_model=TestRequestResponse)
async def assign_lab_staff(
    request_id: str,
    data: AssignLabStaffRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Assign lab staff. Requires a paid bill.

    - **lab_staff_id**: Lab staff ID
    - **lab_staff_name**: Display name (defaults to the directory name)
    """
    request = await engine.assign_lab_staff(request_id, data.lab_staff_id, data.lab_staff_name, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/schedule-collection", response_model=TestRequestResponse)
async def schedule_sample_collection(
    request_id: str,
    data: ScheduleCollectionRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Schedule sample collection for an assigned request.

    - **sample_collector_id**: Collector ID (required)
    - **scheduled_date**: When the sample will be collected (required)
    """
    request = await engine.schedule_sample_collection(request_id, data, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/collection-status", response_model=TestRequestResponse)
async def update_sample_collection_status(
    request_id: str,
    data: CollectionStatusRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Update sample collection progress.

    - **status**: Not_Scheduled, Scheduled, In_Progress, Completed or Failed
    """
    request = await engine.update_sample_collection_status(
        request_id, data.status, data.actual_date, data.notes, actor
    )
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/start-testing", response_model=TestRequestResponse)
async def start_lab_testing(
    request_id: str,
    data: StartTestingRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Start testing a collected sample."""
    request = await engine.start_lab_testing(
        request_id, data.lab_technician_id, data.lab_technician_name, data.notes, actor
    )
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/complete-testing", response_model=TestRequestResponse)
async def complete_lab_testing(
    request_id: str,
    results: Optional[str] = Form(None),
    parameters: Optional[str] = Form(None, description="JSON list of result parameters"),
    conclusion: Optional[str] = Form(None),
    recommendations: Optional[str] = Form(None),
    completed_date: Optional[datetime] = Form(None),
    notes: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Record results and complete lab testing (multipart form).

    - **parameters**: JSON list of {parameter (or name), value, unit, normal_range, status}
    - **file**: Optional report PDF; when given the request moves on to Report_Generated
    """
    try:
        data = CompleteTestingRequest(
            results=results,
            parameters=json.loads(parameters) if parameters else [],
            conclusion=conclusion,
            recommendations=recommendations,
            completed_date=completed_date,
            notes=notes,
        )
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValidationException("Invalid result parameters", details=str(e))

    upload = None
    if file is not None and file.filename:
        if file.content_type not in PDF_CONTENT_TYPES:
            raise BadRequestException("Report upload must be a PDF")
        upload = await file.read()
        if len(upload) / (1024 * 1024) > settings.MAX_REPORT_UPLOAD_MB:
            raise BadRequestException(f"File size exceeds {settings.MAX_REPORT_UPLOAD_MB}MB limit")

    request = await engine.complete_lab_testing(request_id, data, actor, upload=upload)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/generate-report", response_model=TestRequestResponse)
async def generate_test_report(
    request_id: str,
    data: GenerateReportRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Render the report PDF from the current request data."""
    request = await engine.generate_report(
        request_id, data.report_summary, data.clinical_interpretation, actor
    )
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/send-report", response_model=TestRequestResponse)
async def send_report_to_doctor(
    request_id: str,
    data: SendReportRequest,
    actor: Actor = Depends(require_roles(*LAB_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Deliver a generated report to the requesting doctor.

    - **send_method**: How it was sent (default: system)
    - **sent_to**: Recipient name (defaults to the requesting doctor)
    """
    request = await engine.send_report(request_id, data, actor)
    return TestRequestResponse.from_document(request)


# ==================== Administrative Endpoints ====================

@router.put("/{request_id}/status", response_model=TestRequestResponse)
async def update_test_request_status(
    request_id: str,
    data: StatusUpdateRequest,
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Set the status directly, bypassing the transition guards.

    Center admins and superadmins only. Recorded in the status history.
    """
    request = await engine.update_status(request_id, data.status, data.notes, actor)
    return TestRequestResponse.from_document(request)


@router.put("/{request_id}/cancel", response_model=TestRequestResponse)
async def cancel_test_request(
    request_id: str,
    data: CancelRequest,
    actor: Actor = Depends(get_current_actor),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Cancel a test request that has not been delivered.

    - **reason**: Appended to the request notes
    """
    request = await engine.cancel(request_id, data.reason, actor)
    return TestRequestResponse.from_document(request)


@router.delete("/{request_id}", response_model=MessageResponse)
async def delete_test_request(
    request_id: str,
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """Deactivate a Pending or Cancelled test request (soft delete)."""
    request = await engine.delete(request_id, actor)
    return MessageResponse(message="Test request deleted successfully", data={"id": str(request.id)})
