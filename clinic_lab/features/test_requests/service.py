# Test Requests Feature - Workflow engine

from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from datetime import datetime
from pathlib import Path
from clinic_lab.core.logging import logger, workflow_logger
from clinic_lab.features.auth.models import Actor, Role
from clinic_lab.features.auth.service import AuthService
from clinic_lab.features.directory.models import Recipient
from clinic_lab.features.directory.service import DirectoryService
from clinic_lab.features.notifications.models import NotificationType
from clinic_lab.features.notifications.service import NotificationService
from clinic_lab.features.reports.service import ReportStore
from clinic_lab.features.test_requests import workflow
from clinic_lab.features.test_requests.models import (
    Approval,
    ResultValue,
    ReviewStatus,
    SampleCollectionStatus,
    StatusChange,
    TestRequest,
    TestRequestStatus,
)
from clinic_lab.features.test_requests.schemas import (
    CompleteTestingRequest,
    ResultParameterInput,
    ReviewAction,
    ReviewRequest,
    ScheduleCollectionRequest,
    SendReportRequest,
    TestRequestCreate,
)
from clinic_lab.features.test_requests.store import TestRequestStore
from clinic_lab.features.test_requests.workflow import Action
from clinic_lab.shared.exceptions import (
    AppException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)


REVIEW_ACTIONS = {
    ReviewAction.APPROVE: Action.APPROVE,
    ReviewAction.REJECT: Action.REJECT,
    ReviewAction.REQUIRE_CHANGES: Action.REQUIRE_CHANGES,
}


class TestRequestWorkflow:
    """
    Drives a TestRequest through billing, review, lab work and delivery.

    Every operation loads the request, checks the transition table, writes
    the changes with a conditional update and then notifies. Collaborators
    are injected so each can be swapped independently.
    """

    def __init__(
        self,
        store: Optional[TestRequestStore] = None,
        directory: Optional[DirectoryService] = None,
        notifications: Optional[NotificationService] = None,
        reports: Optional[ReportStore] = None,
    ):
        self.store = store or TestRequestStore()
        self.directory = directory or DirectoryService()
        self.notifications = notifications or NotificationService()
        self.reports = reports or ReportStore()

    # ==================== Building blocks ====================

    async def load(self, request_id: str, actor: Optional[Actor] = None) -> TestRequest:
        """Fetch a request, enforcing center isolation when an actor is given."""
        request = await self.store.get(request_id)
        if request is None:
            raise NotFoundException("Test request not found")
        if actor is not None:
            AuthService.ensure_center_access(actor, request.center_id)
        return request

    @staticmethod
    def status_changes(
        request: TestRequest,
        actor: Actor,
        *statuses: TestRequestStatus,
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Changes that move ``request`` through ``statuses`` in order.

        Each hop is recorded in the status history; ``workflow_stage`` follows
        the final status. Hops to the status already held are skipped.
        """
        history = list(request.status_history)
        current = request.status
        now = datetime.utcnow()
        for status in statuses:
            if status == current:
                continue
            history.append(StatusChange(
                from_status=current,
                to_status=status,
                changed_by=actor.id,
                changed_by_name=actor.name,
                changed_at=now,
                note=note,
            ))
            current = status

        if current == request.status:
            return {}
        return {
            "status": current,
            "workflow_stage": workflow.stage_for(current),
            "status_history": history,
        }

    async def commit(
        self,
        request: TestRequest,
        actor: Actor,
        changes: Dict[str, Any],
    ) -> TestRequest:
        """
        Write ``changes`` if nobody else touched the request since it was read.

        Raises:
            ConflictException: the status or version moved underneath us
        """
        changes = dict(changes)
        changes["version"] = request.version + 1
        changes["updated_at"] = datetime.utcnow()

        updated = await self.store.commit(request.id, request.status, request.version, changes)
        if updated is None:
            current = await self.store.get(str(request.id))
            current_status = current.status if current else request.status
            workflow_logger.warning(
                f"Concurrent update on test request {request.id}: "
                f"expected {request.status.value} v{request.version}, found {current_status.value}"
            )
            raise ConflictException(
                "Test request was modified by another user, reload and try again",
                currentStatus=current_status.value,
                expectedStatus=request.status.value,
            )

        if "status" in changes:
            workflow_logger.info(
                f"Test request {request.id}: {request.status.value} -> {updated.status.value} "
                f"by {actor.role.value} {actor.id}"
            )
        return updated

    async def commit_report(
        self,
        request: TestRequest,
        actor: Actor,
        changes: Dict[str, Any],
    ) -> TestRequest:
        """
        Commit changes that carry a freshly written ``report_file_path``.

        A failed write removes the new file. A successful one removes the
        report it replaces.
        """
        new_path = changes["report_file_path"]
        previous_path = request.report_file_path
        try:
            updated = await self.commit(request, actor, changes)
        except Exception:
            self.reports.delete_file(new_path)
            raise

        if previous_path and previous_path != new_path:
            if not self.reports.delete_file(previous_path):
                logger.warning(f"Could not delete previous report for test request {request.id}")
        return updated

    @staticmethod
    def doctor_of(request: TestRequest) -> Recipient:
        return Recipient(id=request.doctor_id, name=request.doctor_name or "Doctor", center_id=request.center_id)

    @staticmethod
    def payload(request: TestRequest, **extra: Any) -> Dict[str, Any]:
        data = {
            "test_request_id": str(request.id),
            "status": request.status.value,
            "test_type": request.test_type,
            "patient_name": request.patient_name,
        }
        data.update(extra)
        return data

    async def notify_doctor(
        self,
        request: TestRequest,
        actor: Actor,
        type: NotificationType,
        title: str,
        message: str,
        **extra: Any,
    ) -> None:
        await self.notifications.notify(
            self.doctor_of(request),
            type,
            title,
            message,
            data=self.payload(request, **extra),
            sender_id=actor.id,
        )

    async def notify_group(
        self,
        fetch: Callable[[], Awaitable[List[Recipient]]],
        request: TestRequest,
        actor: Actor,
        type: NotificationType,
        title: str,
        message: str,
    ) -> int:
        """Fan out to a directory query; a failing query is logged like a failed delivery."""
        try:
            recipients = await fetch()
        except Exception as e:
            logger.error(f"❌ Could not resolve recipients for '{title}' on test request {request.id}: {str(e)}")
            return 0
        return await self.notifications.fan_out(
            recipients,
            type,
            title,
            message,
            data=self.payload(request),
            sender_id=actor.id,
        )

    # ==================== Creation ====================

    async def create(self, data: TestRequestCreate, actor: Actor) -> TestRequest:
        """
        Create a test request in Billing_Pending.

        The doctor may come from the user collection or the legacy doctor
        collection; the center is the patient's center.
        """
        if actor.role == Role.DOCTOR and data.doctor_id and data.doctor_id != actor.id:
            raise ForbiddenException("Doctors can only create test requests in their own name")

        doctor = await self.directory.resolve_doctor(data.doctor_id or actor.id)
        patient = await self.directory.resolve_patient(data.patient_id)
        AuthService.ensure_center_access(actor, patient.center_id)
        if doctor.center_id and doctor.center_id != patient.center_id:
            raise ForbiddenException("Doctor and patient belong to different centers")

        center = await self.directory.get_center(patient.center_id)

        request = TestRequest(
            doctor_id=doctor.id,
            doctor_name=doctor.name,
            patient_id=str(patient.id),
            patient_name=patient.name,
            patient_phone=patient.phone,
            patient_address=patient.address,
            center_id=patient.center_id,
            center_name=center.name if center else "Unknown Center",
            center_code=(center.code if center and center.code else "Unknown"),
            test_type=data.test_type,
            test_description=data.test_description,
            urgency=data.urgency,
            notes=data.notes,
            status=TestRequestStatus.BILLING_PENDING,
            workflow_stage=workflow.stage_for(TestRequestStatus.BILLING_PENDING),
            status_history=[StatusChange(
                to_status=TestRequestStatus.BILLING_PENDING,
                changed_by=actor.id,
                changed_by_name=actor.name,
            )],
            created_by=actor.id,
        )
        request = await self.store.insert(request)
        logger.info(f"Created test request {request.id} ({request.test_type}) for patient {request.patient_id} by doctor {doctor.id}")

        summary = f"Dr. {doctor.name} requested {request.test_type} for {request.patient_name} at {request.center_name}."
        await self.notify_group(
            self.directory.superadmins, request, actor, NotificationType.TEST_REQUEST,
            "New Test Request (Billing Pending)", f"{summary} Billing is pending.",
        )
        await self.notify_group(
            self.directory.superadmin_doctors, request, actor, NotificationType.TEST_REQUEST,
            "Test Request Awaiting Billing", f"{summary} It will reach review once billing is paid.",
        )
        await self.notify_group(
            lambda: self.directory.center_admins(request.center_id), request, actor,
            NotificationType.TEST_REQUEST,
            "New Test Request (Billing Pending)", f"{summary} Billing is pending.",
        )
        await self.notify_group(
            lambda: self.directory.center_receptionists(request.center_id), request, actor,
            NotificationType.BILLING,
            "New Test Request - Generate Bill", f"{summary} Please generate the bill.",
        )
        return request

    # ==================== Superadmin review ====================

    async def submit_for_review(self, request_id: str, actor: Actor) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.SUBMIT_FOR_REVIEW)

        review = request.superadmin_review.model_copy(update={"status": ReviewStatus.PENDING})
        changes = {"superadmin_review": review}
        changes.update(self.status_changes(request, actor, TestRequestStatus.SUPERADMIN_REVIEW))
        request = await self.commit(request, actor, changes)

        await self.notify_group(
            self.directory.superadmin_doctors, request, actor, NotificationType.SUPERADMIN_REVIEW,
            "Test Request Awaiting Review",
            f"{request.test_type} for {request.patient_name} ({request.center_name}) is ready for review.",
        )
        return request

    async def review(self, request_id: str, data: ReviewRequest, actor: Actor) -> TestRequest:
        """
        Approve, reject or send back a request under superadmin review.

        Approval needs a paid bill; the guard reports the billing status otherwise.
        """
        try:
            review_action = ReviewAction(data.action)
        except ValueError:
            raise ValidationException(
                f"Invalid review action: {data.action}",
                allowedActions=[a.value for a in ReviewAction],
            )

        request = await self.load(request_id, actor)
        transition = workflow.check(request, REVIEW_ACTIONS[review_action])

        now = datetime.utcnow()
        review_update: Dict[str, Any] = {
            "reviewed_by": actor.id,
            "reviewed_by_name": actor.name,
            "reviewed_at": now,
            "review_notes": data.review_notes,
            "additional_tests": data.additional_tests,
            "patient_instructions": data.patient_instructions,
        }
        changes: Dict[str, Any] = {}

        if review_action == ReviewAction.APPROVE:
            review_update.update(status=ReviewStatus.APPROVED, approved_for_lab=True)
            changes["approvals"] = request.approvals.model_copy(update={
                "superadmin": Approval(approved=True, approved_at=now, approved_by=actor.id),
            })
        elif review_action == ReviewAction.REJECT:
            review_update.update(status=ReviewStatus.REJECTED, approved_for_lab=False)
        else:
            review_update.update(
                status=ReviewStatus.REQUIRES_CHANGES,
                changes_required=data.changes_required,
                approved_for_lab=False,
            )

        changes["superadmin_review"] = request.superadmin_review.model_copy(update=review_update)
        changes.update(self.status_changes(request, actor, transition.target, note=data.review_notes))
        request = await self.commit(request, actor, changes)

        if review_action == ReviewAction.APPROVE:
            await self.notify_doctor(
                request, actor, NotificationType.SUPERADMIN_REVIEW, "Test Request Approved",
                f"{request.test_type} for {request.patient_name} was approved for lab processing.",
            )
            await self.notify_group(
                self.directory.active_lab_staff, request, actor, NotificationType.LAB_ASSIGNMENT,
                "New Test Request Approved for Lab",
                f"{request.test_type} for {request.patient_name} ({request.center_name}) is ready for lab assignment.",
            )
        elif review_action == ReviewAction.REJECT:
            reason = f" Reason: {data.review_notes}" if data.review_notes else ""
            await self.notify_doctor(
                request, actor, NotificationType.SUPERADMIN_REVIEW, "Test Request Rejected",
                f"{request.test_type} for {request.patient_name} was rejected.{reason}",
            )
        else:
            await self.notify_doctor(
                request, actor, NotificationType.SUPERADMIN_REVIEW, "Changes Required",
                f"{request.test_type} for {request.patient_name} needs changes: {data.changes_required or '-'}",
            )
        return request

    async def send_feedback(
        self,
        request_id: str,
        feedback: str,
        additional_notes: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.SEND_FEEDBACK)

        review = request.superadmin_review.model_copy(update={
            "status": ReviewStatus.REVIEWED,
            "feedback": feedback,
            "review_notes": additional_notes or request.superadmin_review.review_notes,
            "reviewed_by": actor.id,
            "reviewed_by_name": actor.name,
            "reviewed_at": datetime.utcnow(),
        })
        changes = {"superadmin_review": review}
        changes.update(self.status_changes(request, actor, TestRequestStatus.FEEDBACK_SENT))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.LAB_REPORT_FEEDBACK, "Feedback on Lab Report",
            f"Dr. {actor.name} sent feedback on the {request.test_type} report for {request.patient_name}.",
            feedback=feedback,
        )
        return request

    # ==================== Lab ====================

    async def assign_lab_staff(
        self,
        request_id: str,
        staff_id: str,
        staff_name: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.ASSIGN_LAB_STAFF)

        staff = await self.directory.resolve_lab_staff(staff_id)
        changes = {
            "assigned_lab_staff_id": staff.id,
            "assigned_lab_staff_name": staff_name or staff.name,
            "lab_assigned_date": datetime.utcnow(),
        }
        changes.update(self.status_changes(request, actor, TestRequestStatus.ASSIGNED))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.LAB_ASSIGNMENT, "Lab Staff Assigned",
            f"{request.assigned_lab_staff_name} has been assigned to {request.test_type} for {request.patient_name}.",
        )
        return request

    async def schedule_sample_collection(
        self,
        request_id: str,
        data: ScheduleCollectionRequest,
        actor: Actor,
    ) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.SCHEDULE_COLLECTION)

        if not request.assigned_lab_staff_id:
            raise InvalidTransitionException(
                "Lab staff must be assigned before scheduling sample collection",
                current_status=request.status,
                missing="assigned_lab_staff_id",
            )
        if not data.sample_collector_id or not data.scheduled_date:
            raise ValidationException(
                "Sample collector and scheduled date are required",
                requiredFields=["sample_collector_id", "scheduled_date"],
            )

        changes = {
            "sample_collector_id": data.sample_collector_id,
            "sample_collector_name": data.sample_collector_name,
            "sample_collection_scheduled_date": data.scheduled_date,
            "sample_collection_notes": data.notes,
            "sample_collection_status": SampleCollectionStatus.SCHEDULED,
        }
        changes.update(self.status_changes(request, actor, TestRequestStatus.SAMPLE_COLLECTION_SCHEDULED))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.SAMPLE_COLLECTION, "Sample Collection Scheduled",
            f"Sample collection for {request.patient_name} is scheduled on {data.scheduled_date:%Y-%m-%d %H:%M}.",
        )
        return request

    async def update_sample_collection_status(
        self,
        request_id: str,
        collection_status: SampleCollectionStatus,
        actual_date: Optional[datetime],
        notes: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        """
        Record collection progress.

        Completed moves the request to Sample_Collected; the billing gate was
        already passed when collection was scheduled.
        """
        request = await self.load(request_id, actor)
        workflow.check(request, Action.UPDATE_COLLECTION_STATUS)

        changes: Dict[str, Any] = {"sample_collection_status": collection_status}
        if notes is not None:
            changes["sample_collection_notes"] = notes
        if collection_status == SampleCollectionStatus.COMPLETED:
            changes["sample_collection_actual_date"] = actual_date or datetime.utcnow()
        elif actual_date is not None:
            changes["sample_collection_actual_date"] = actual_date

        target = workflow.collection_target(request.status, collection_status)
        changes.update(self.status_changes(request, actor, target))
        request = await self.commit(request, actor, changes)

        if collection_status == SampleCollectionStatus.COMPLETED:
            await self.notify_doctor(
                request, actor, NotificationType.SAMPLE_COLLECTION, "Sample Collected",
                f"The sample for {request.test_type} ({request.patient_name}) has been collected.",
            )
        return request

    async def start_lab_testing(
        self,
        request_id: str,
        technician_id: Optional[str],
        technician_name: Optional[str],
        notes: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.START_TESTING)

        changes = {
            "lab_technician_id": technician_id or actor.id,
            "lab_technician_name": technician_name or actor.name,
            "testing_start_date": datetime.utcnow(),
            "testing_notes": notes,
        }
        changes.update(self.status_changes(request, actor, TestRequestStatus.IN_LAB_TESTING))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.LAB_TESTING, "Lab Testing Started",
            f"Testing for {request.test_type} ({request.patient_name}) has started.",
        )
        return request

    @staticmethod
    def to_result_values(parameters: List[ResultParameterInput]) -> List[ResultValue]:
        """Map submitted parameters onto stored results, keeping their order."""
        values = []
        for index, item in enumerate(parameters):
            parameter = item.parameter or item.name
            if not parameter:
                raise ValidationException(
                    f"Result parameter {index + 1} has no name",
                    requiredFields=["parameter"],
                )
            values.append(ResultValue(
                parameter=parameter,
                value="" if item.value is None else str(item.value),
                unit=item.unit,
                normal_range=item.normal_range,
                status=item.status,
            ))
        return values

    async def complete_lab_testing(
        self,
        request_id: str,
        data: CompleteTestingRequest,
        actor: Actor,
        upload: Optional[bytes] = None,
    ) -> TestRequest:
        """
        Record results and close lab testing.

        The technician is always the caller. When the lab uploads the report
        PDF with the results, it is stored first and the request continues to
        Report_Generated in the same write.
        """
        request = await self.load(request_id, actor)
        workflow.check(request, Action.COMPLETE_TESTING)

        completed_at = data.completed_date or datetime.utcnow()
        changes: Dict[str, Any] = {
            "test_results": data.results,
            "result_values": self.to_result_values(data.parameters),
            "conclusion": data.conclusion,
            "recommendations": data.recommendations,
            "lab_technician_id": actor.id,
            "lab_technician_name": actor.name,
            "testing_end_date": completed_at,
            "lab_testing_completed_date": completed_at,
        }
        if data.notes is not None:
            changes["testing_notes"] = data.notes

        statuses = [TestRequestStatus.TESTING_COMPLETED]
        if upload:
            changes.update({
                "report_file_path": self.reports.save_upload(request.id, upload),
                "report_generated_by": actor.id,
                "report_generated_by_name": actor.name,
                "report_generated_date": datetime.utcnow(),
                "direct_upload_completed": True,
            })
            statuses.append(TestRequestStatus.REPORT_GENERATED)

        changes.update(self.status_changes(request, actor, *statuses))
        if upload:
            request = await self.commit_report(request, actor, changes)
        else:
            request = await self.commit(request, actor, changes)

        if upload:
            title, message = "Lab Report Generated", f"The {request.test_type} report for {request.patient_name} is ready."
        else:
            title, message = "Lab Testing Completed", f"Testing for {request.test_type} ({request.patient_name}) is complete."
        await self.notify_doctor(request, actor, NotificationType.LAB_TESTING, title, message)
        return request

    # ==================== Report ====================

    async def generate_report(
        self,
        request_id: str,
        report_summary: Optional[str],
        clinical_interpretation: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        """
        Render the report PDF and record it.

        Allowed from any status but Cancelled. The status only changes after
        the file is written; a request already past Report_Generated keeps its
        status and just gets a fresh artifact.
        """
        request = await self.load(request_id, actor)
        transition = workflow.check(request, Action.GENERATE_REPORT)

        if request.status not in (
            {TestRequestStatus.TESTING_COMPLETED} | workflow.REPORT_READY_STATUSES
        ):
            logger.warning(f"Generating report for test request {request.id} before testing completed ({request.status.value})")

        now = datetime.utcnow()
        report_fields = {
            "report_summary": report_summary,
            "clinical_interpretation": clinical_interpretation,
            "report_generated_by": actor.id,
            "report_generated_by_name": actor.name,
            "report_generated_date": now,
        }
        snapshot = request.model_copy(update=report_fields)
        try:
            path = self.reports.render(snapshot)
        except Exception:
            logger.exception(f"Report rendering failed for test request {request.id}")
            raise AppException(500, "Failed to generate report", error="Internal")

        changes: Dict[str, Any] = dict(report_fields, report_file_path=path)
        if request.status not in workflow.REPORT_DELIVERED_STATUSES:
            changes.update(self.status_changes(request, actor, transition.target))
        request = await self.commit_report(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.LAB_REPORT, "Lab Report Generated",
            f"The {request.test_type} report for {request.patient_name} has been generated.",
        )
        return request

    async def send_report(self, request_id: str, data: SendReportRequest, actor: Actor) -> TestRequest:
        request = await self.load(request_id, actor)
        workflow.check(request, Action.SEND_REPORT)

        if not request.report_file_path:
            raise InvalidTransitionException(
                "Report has not been generated yet",
                current_status=request.status,
                missing="report_file_path",
            )

        changes = {
            "report_sent_date": datetime.utcnow(),
            "report_sent_by": actor.id,
            "report_sent_by_name": actor.name,
            "send_method": data.send_method,
            "email_subject": data.email_subject,
            "email_message": data.email_message,
            "notification_message": data.notification_message,
            "sent_to": data.sent_to or request.doctor_name,
            "delivery_confirmation": data.delivery_confirmation,
        }
        changes.update(self.status_changes(request, actor, TestRequestStatus.REPORT_SENT))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.LAB_REPORT, "Lab Report Sent",
            data.notification_message or f"The {request.test_type} report for {request.patient_name} has been sent to you.",
        )
        return request

    async def report_status(self, request_id: str, actor: Actor) -> Tuple[TestRequest, Optional[Path], str]:
        """Where the report stands: (request, resolved file or None, explanation)."""
        request = await self.load(request_id, actor)

        if request.status not in workflow.REPORT_READY_STATUSES:
            return request, None, f"Report not available while test request is {request.status.value}"
        if not request.report_file_path:
            return request, None, "No report file recorded for this test request"

        path = self.reports.resolve(request.report_file_path)
        if path is None:
            return request, None, "Report file not found on server"
        return request, path, "Report available"

    async def open_report(self, request_id: str, actor: Actor) -> Tuple[TestRequest, Path]:
        """
        Locate the report file for download.

        Raises:
            InvalidTransitionException: report not ready in this status
            NotFoundException: no path stored, or no strategy finds the file
            AppException: the file exists but is empty (500)
        """
        request = await self.load(request_id, actor)

        if request.status not in workflow.REPORT_READY_STATUSES:
            raise InvalidTransitionException(
                "Report not available for download",
                current_status=request.status,
                requiredStatuses=sorted(s.value for s in workflow.REPORT_READY_STATUSES),
            )
        if not request.report_file_path:
            raise NotFoundException("No report file recorded for this test request")

        path = self.reports.resolve(request.report_file_path)
        if path is None:
            raise NotFoundException("Report file not found on server")
        if path.stat().st_size == 0:
            logger.error(f"Report file for test request {request.id} is empty: {path}")
            raise AppException(500, "Report file is empty or corrupted", error="Internal")

        logger.info(f"Serving report for test request {request.id} to {actor.role.value} {actor.id}")
        return request, path

    # ==================== Administrative ====================

    async def update_status(
        self,
        request_id: str,
        status: str,
        notes: Optional[str],
        actor: Actor,
    ) -> TestRequest:
        """Raw status override. Still conditional on what was read, still audited."""
        try:
            new_status = TestRequestStatus(status)
        except ValueError:
            raise ValidationException(
                f"Invalid status: {status}",
                allowedStatuses=[s.value for s in TestRequestStatus],
            )

        request = await self.load(request_id, actor)
        workflow.check(request, Action.OVERRIDE_STATUS)

        changes: Dict[str, Any] = {}
        if notes:
            changes["notes"] = notes
        changes.update(self.status_changes(request, actor, new_status, note="Status override"))
        if not changes:
            return request
        return await self.commit(request, actor, changes)

    async def cancel(self, request_id: str, reason: Optional[str], actor: Actor) -> TestRequest:
        request = await self.load(request_id, actor)
        transition = workflow.check(request, Action.CANCEL)

        changes: Dict[str, Any] = {}
        if reason:
            changes["notes"] = "\n".join(filter(None, [request.notes, f"Cancelled: {reason}"]))
        changes.update(self.status_changes(request, actor, transition.target, note=reason))
        request = await self.commit(request, actor, changes)

        await self.notify_doctor(
            request, actor, NotificationType.TEST_REQUEST, "Test Request Cancelled",
            f"{request.test_type} for {request.patient_name} was cancelled.{' Reason: ' + reason if reason else ''}",
        )
        return request

    async def delete(self, request_id: str, actor: Actor) -> TestRequest:
        """Soft delete; only legacy Pending and Cancelled requests qualify."""
        request = await self.load(request_id, actor)
        workflow.check(request, Action.DELETE)

        request = await self.commit(request, actor, {"is_active": False})
        logger.info(f"Test request {request.id} deactivated by {actor.role.value} {actor.id}")
        return request
