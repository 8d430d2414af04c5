"""Shared fixtures: Beanie initialized without a server, in-memory collaborators."""

from typing import Dict, List, Optional, Set

import pytest
from beanie import PydanticObjectId, init_beanie
from beanie.odm.utils.init import Initializer
from pymongo import AsyncMongoClient

from clinic_lab.database import document_models
from clinic_lab.features.auth.models import Actor, ActorKind, Role
from clinic_lab.features.billing.schemas import BillItemInput, GenerateBillRequest, MarkBillPaidRequest
from clinic_lab.features.billing.service import BillingLedger
from clinic_lab.features.directory.models import Center, Patient, Recipient
from clinic_lab.features.directory.service import DirectoryService
from clinic_lab.features.notifications.models import Notification
from clinic_lab.features.notifications.service import NotificationService
from clinic_lab.features.reports.service import ReportStore
from clinic_lab.features.test_requests.models import SampleCollectionStatus, TestRequest, TestRequestStatus as S
from clinic_lab.features.test_requests.schemas import (
    CompleteTestingRequest,
    ResultParameterInput,
    ReviewRequest,
    ScheduleCollectionRequest,
    SendReportRequest,
    TestRequestCreate,
)
from clinic_lab.features.test_requests.service import TestRequestWorkflow
from clinic_lab.shared.exceptions import NotFoundException


CENTER_ID = str(PydanticObjectId())
OTHER_CENTER_ID = str(PydanticObjectId())


def new_id() -> str:
    return str(PydanticObjectId())


# ==================== Beanie ====================

@pytest.fixture(autouse=True)
async def beanie_models(monkeypatch):
    """Bind the documents to an unconnected client; nothing here talks to MongoDB."""

    async def offline_cached_info(self):
        self._database_major_version = 7
        self._existing_collections = []

    monkeypatch.setattr(Initializer, "_load_cached_info", offline_cached_info)
    client = AsyncMongoClient("mongodb://localhost:27017", connect=False)
    await init_beanie(
        database=client["clinic_lab_test"],
        document_models=document_models(),
        skip_indexes=True,
    )
    yield
    await client.close()


# ==================== Fakes ====================

class InMemoryStore:
    """Same contract as TestRequestStore, including the conditional commit."""

    def __init__(self):
        self.documents: Dict[str, TestRequest] = {}

    async def get(self, request_id: str) -> Optional[TestRequest]:
        document = self.documents.get(str(request_id))
        return document.model_copy(deep=True) if document else None

    async def insert(self, request: TestRequest) -> TestRequest:
        request.id = PydanticObjectId()
        self.documents[str(request.id)] = request.model_copy(deep=True)
        return request

    def put(self, request: TestRequest) -> None:
        self.documents[str(request.id)] = request.model_copy(deep=True)

    async def commit(self, request_id, expected_status, expected_version, changes):
        current = self.documents.get(str(request_id))
        if (
            current is None
            or current.status != expected_status
            or current.version != expected_version
            or not current.is_active
        ):
            return None
        updated = current.model_copy(update=changes, deep=True)
        self.documents[str(request_id)] = updated
        return updated.model_copy(deep=True)


class InMemoryDirectory(DirectoryService):
    def __init__(self):
        self.doctors: Dict[str, Recipient] = {}
        self.patients: Dict[str, Patient] = {}
        self.centers: Dict[str, Center] = {}
        self.lab_staff: Dict[str, Recipient] = {}
        self.superadmin_users: List[Recipient] = []
        self.reviewers: List[Recipient] = []
        self.admins: List[Recipient] = []
        self.receptionists: List[Recipient] = []
        self.broken: Set[str] = set()

    def _check(self, query: str) -> None:
        if query in self.broken:
            raise RuntimeError(f"{query} query failed")

    async def resolve_doctor(self, doctor_id: str) -> Recipient:
        if doctor_id not in self.doctors:
            raise NotFoundException("Doctor not found")
        return self.doctors[doctor_id]

    async def resolve_patient(self, patient_id: str) -> Patient:
        if patient_id not in self.patients:
            raise NotFoundException("Patient not found")
        return self.patients[patient_id]

    async def get_center(self, center_id: Optional[str]) -> Optional[Center]:
        return self.centers.get(center_id)

    async def resolve_lab_staff(self, staff_id: str) -> Recipient:
        if staff_id not in self.lab_staff:
            raise NotFoundException("Lab staff not found")
        return self.lab_staff[staff_id]

    async def superadmins(self) -> List[Recipient]:
        self._check("superadmins")
        return list(self.superadmin_users)

    async def superadmin_doctors(self) -> List[Recipient]:
        self._check("superadmin_doctors")
        return list(self.reviewers)

    async def center_admins(self, center_id: Optional[str]) -> List[Recipient]:
        self._check("center_admins")
        return [r for r in self.admins if r.center_id == center_id]

    async def center_receptionists(self, center_id: Optional[str]) -> List[Recipient]:
        self._check("center_receptionists")
        return [r for r in self.receptionists if r.center_id == center_id]

    async def active_lab_staff(self) -> List[Recipient]:
        self._check("active_lab_staff")
        return list(self.lab_staff.values())


class RecordingNotifications(NotificationService):
    """Keeps delivered notifications in memory; ids in ``failing`` raise on delivery."""

    def __init__(self):
        self.sent: List[Notification] = []
        self.failing: Set[str] = set()

    async def deliver(self, notification: Notification) -> None:
        if notification.recipient_id in self.failing:
            raise ConnectionError("notification write failed")
        self.sent.append(notification)

    def titled(self, title: str) -> List[Notification]:
        return [n for n in self.sent if n.title == title]

    def to(self, recipient_id: str) -> List[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]


# ==================== Clinic ====================

def _actor(name: str, role: Role, center_id: Optional[str] = None, kind: ActorKind = ActorKind.USER) -> Actor:
    return Actor(id=new_id(), name=name, kind=kind, role=role, center_id=center_id)


class Clinic:
    """One center with its staff, a patient and a workflow wired to fakes."""

    # Status reached after each step of the standard path
    PATH = [
        S.BILLING_PENDING,
        S.BILLING_GENERATED,
        S.BILLING_PAID,
        S.SUPERADMIN_REVIEW,
        S.SUPERADMIN_APPROVED,
        S.ASSIGNED,
        S.SAMPLE_COLLECTION_SCHEDULED,
        S.SAMPLE_COLLECTED,
        S.IN_LAB_TESTING,
        S.TESTING_COMPLETED,
        S.REPORT_GENERATED,
        S.REPORT_SENT,
    ]

    def __init__(self, report_dir):
        self.store = InMemoryStore()
        self.directory = InMemoryDirectory()
        self.notifications = RecordingNotifications()
        self.reports = ReportStore(report_dir)
        self.engine = TestRequestWorkflow(
            store=self.store,
            directory=self.directory,
            notifications=self.notifications,
            reports=self.reports,
        )
        self.ledger = BillingLedger(self.engine)

        self.doctor = _actor("Asha Rao", Role.DOCTOR, CENTER_ID)
        self.receptionist = _actor("Ravi Kumar", Role.RECEPTIONIST, CENTER_ID)
        self.center_admin = _actor("Meera Iyer", Role.CENTER_ADMIN, CENTER_ID)
        self.superadmin = _actor("Head Office", Role.SUPERADMIN)
        self.reviewer = _actor("Vikram Shah", Role.SUPERADMIN_DOCTOR, kind=ActorKind.SUPERADMIN_DOCTOR)
        self.lab = _actor("Lab Desk", Role.LAB_STAFF, kind=ActorKind.LAB_STAFF)
        self.outsider = _actor("Other Doctor", Role.DOCTOR, OTHER_CENTER_ID)

        center = Center(name="Delhi Central", code="DLH")
        center.id = PydanticObjectId(CENTER_ID)
        self.directory.centers[CENTER_ID] = center

        self.patient = Patient(name="Neha Singh", phone="9876543210", address="12 MG Road", center_id=CENTER_ID)
        self.patient.id = PydanticObjectId()
        self.directory.patients[str(self.patient.id)] = self.patient

        self.directory.doctors[self.doctor.id] = Recipient(id=self.doctor.id, name=self.doctor.name, center_id=CENTER_ID)
        self.technician = Recipient(id=new_id(), name="Sunil Verma", kind=ActorKind.LAB_STAFF)
        self.directory.lab_staff[self.technician.id] = self.technician

        self.directory.superadmin_users = [Recipient(id=self.superadmin.id, name=self.superadmin.name)]
        self.directory.reviewers = [
            Recipient(id=self.reviewer.id, name=self.reviewer.name, kind=ActorKind.SUPERADMIN_DOCTOR)
        ]
        self.directory.admins = [
            Recipient(id=self.center_admin.id, name=self.center_admin.name, center_id=CENTER_ID)
        ]
        self.directory.receptionists = [
            Recipient(id=self.receptionist.id, name=self.receptionist.name, center_id=CENTER_ID)
        ]

    async def create(self, **overrides) -> TestRequest:
        data = dict(patient_id=str(self.patient.id), test_type="CBC", notes="Fasting sample")
        data.update(overrides)
        return await self.engine.create(TestRequestCreate(**data), self.doctor)

    async def step(self, request: TestRequest) -> TestRequest:
        """Advance ``request`` one status along the standard path."""
        rid = str(request.id)
        status = request.status
        if status == S.BILLING_PENDING:
            bill = GenerateBillRequest(items=[BillItemInput(name="Complete Blood Count", code="CBC", unit_price=450)])
            return await self.ledger.generate_bill(rid, bill, self.receptionist)
        if status == S.BILLING_GENERATED:
            return await self.ledger.mark_paid(rid, MarkBillPaidRequest(payment_method="cash"), self.center_admin)
        if status == S.BILLING_PAID:
            return await self.engine.submit_for_review(rid, self.doctor)
        if status == S.SUPERADMIN_REVIEW:
            return await self.engine.review(rid, ReviewRequest(action="approve"), self.reviewer)
        if status == S.SUPERADMIN_APPROVED:
            return await self.engine.assign_lab_staff(rid, self.technician.id, None, self.lab)
        if status == S.ASSIGNED:
            schedule = ScheduleCollectionRequest(
                sample_collector_id=self.technician.id,
                sample_collector_name=self.technician.name,
                scheduled_date="2024-05-02T09:30:00",
            )
            return await self.engine.schedule_sample_collection(rid, schedule, self.lab)
        if status == S.SAMPLE_COLLECTION_SCHEDULED:
            return await self.engine.update_sample_collection_status(
                rid, SampleCollectionStatus.COMPLETED, None, None, self.lab
            )
        if status == S.SAMPLE_COLLECTED:
            return await self.engine.start_lab_testing(rid, None, None, None, self.lab)
        if status == S.IN_LAB_TESTING:
            results = CompleteTestingRequest(
                parameters=[
                    ResultParameterInput(parameter="Hemoglobin", value=13.2, unit="g/dL", normal_range="12-16"),
                    ResultParameterInput(name="WBC", value="7200", unit="/uL"),
                ],
                conclusion="Within normal limits",
            )
            return await self.engine.complete_lab_testing(rid, results, self.lab)
        if status == S.TESTING_COMPLETED:
            return await self.engine.generate_report(rid, "Normal CBC", None, self.lab)
        if status == S.REPORT_GENERATED:
            return await self.engine.send_report(rid, SendReportRequest(), self.lab)
        raise AssertionError(f"No standard step from {status.value}")

    async def advance(self, request: TestRequest, to: S) -> TestRequest:
        while request.status != to:
            request = await self.step(request)
        return request

    async def request_at(self, status: S) -> TestRequest:
        return await self.advance(await self.create(), status)


@pytest.fixture
def clinic(tmp_path) -> Clinic:
    return Clinic(tmp_path / "reports")
