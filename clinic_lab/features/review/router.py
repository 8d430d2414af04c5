# Superadmin Review Feature - Router

from fastapi import APIRouter, Depends
from clinic_lab.features.auth.models import Actor, REVIEWER_ROLES
from clinic_lab.features.auth.dependencies import require_roles
from clinic_lab.features.test_requests.dependencies import get_workflow
from clinic_lab.features.test_requests.schemas import FeedbackRequest, ReviewRequest, TestRequestResponse
from clinic_lab.features.test_requests.service import TestRequestWorkflow


router = APIRouter(prefix="/superadmin/doctors/working", tags=["Superadmin Review"])


@router.post("/test-request/{request_id}/review", response_model=TestRequestResponse)
async def review_test_request(
    request_id: str,
    data: ReviewRequest,
    actor: Actor = Depends(require_roles(*REVIEWER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Review a test request.

    - **action**: approve, reject or require_changes
    - **review_notes**: Shown to the doctor (the reason on reject)
    - **changes_required**: What must change (require_changes)
    - **additional_tests** / **patient_instructions**: Optional guidance
    """
    request = await engine.review(request_id, data, actor)
    return TestRequestResponse.from_document(request)


@router.post("/test-request/{request_id}/feedback", response_model=TestRequestResponse)
async def send_feedback(
    request_id: str,
    data: FeedbackRequest,
    actor: Actor = Depends(require_roles(*REVIEWER_ROLES)),
    engine: TestRequestWorkflow = Depends(get_workflow)
):
    """
    Send feedback on a lab report to the requesting doctor.

    - **feedback**: Feedback text
    """
    request = await engine.send_feedback(request_id, data.feedback, data.additional_notes, actor)
    return TestRequestResponse.from_document(request)
