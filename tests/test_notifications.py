"""Test notification fan-out and its isolation from the workflow."""

import pytest
from beanie import PydanticObjectId

from clinic_lab.features.auth.models import ActorKind
from clinic_lab.features.directory.models import Recipient
from clinic_lab.features.notifications.models import Notification, NotificationType
from clinic_lab.features.notifications.service import NotificationService
from clinic_lab.features.test_requests.models import TestRequestStatus as S
from clinic_lab.shared.exceptions import NotFoundException


def new_id():
    return str(PydanticObjectId())


def _receptionists(count, center_id):
    return [Recipient(id=new_id(), name=f"Receptionist {i}", center_id=center_id) for i in range(count)]


async def test_create_notifies_every_group(clinic):
    """Superadmins, reviewers, center admins and receptionists all hear about a new request."""
    clinic.directory.receptionists = _receptionists(3, clinic.doctor.center_id)

    request = await clinic.create()

    assert len(clinic.notifications.titled("New Test Request (Billing Pending)")) == 2
    assert len(clinic.notifications.titled("Test Request Awaiting Billing")) == 1
    billing = clinic.notifications.titled("New Test Request - Generate Bill")
    assert len(billing) == 3
    assert all(n.type == NotificationType.BILLING for n in billing)
    assert all(n.data["test_request_id"] == str(request.id) for n in billing)
    assert all(n.sender_id == clinic.doctor.id for n in billing)


async def test_receptionists_of_other_centers_are_skipped(clinic):
    clinic.directory.receptionists = _receptionists(2, clinic.doctor.center_id) + [
        Recipient(id=new_id(), name="Elsewhere", center_id="65a1f0c2e4b0a1b2c3d4e5f6")
    ]

    await clinic.create()

    assert len(clinic.notifications.titled("New Test Request - Generate Bill")) == 2


async def test_failed_delivery_does_not_fail_the_operation(clinic):
    """One receptionist's write fails; the request exists and the others are notified."""
    receptionists = _receptionists(3, clinic.doctor.center_id)
    clinic.directory.receptionists = receptionists
    clinic.notifications.failing = {receptionists[1].id}

    request = await clinic.create()

    assert (await clinic.store.get(str(request.id))).status == S.BILLING_PENDING
    delivered = {n.recipient_id for n in clinic.notifications.titled("New Test Request - Generate Bill")}
    assert delivered == {receptionists[0].id, receptionists[2].id}


async def test_failed_recipient_query_does_not_fail_the_operation(clinic):
    clinic.directory.broken = {"superadmins"}

    request = await clinic.create()

    assert request.status == S.BILLING_PENDING
    assert clinic.notifications.to(clinic.superadmin.id) == []
    assert len(clinic.notifications.titled("New Test Request - Generate Bill")) == 1


async def test_doctor_notification_failure_does_not_fail_transition(clinic):
    request = await clinic.request_at(S.SUPERADMIN_APPROVED)
    clinic.notifications.failing = {clinic.doctor.id}

    request = await clinic.engine.assign_lab_staff(str(request.id), clinic.technician.id, None, clinic.lab)

    assert request.status == S.ASSIGNED
    assert clinic.notifications.titled("Lab Staff Assigned") == []


async def test_fan_out_counts_deliveries(clinic):
    notifications = clinic.notifications
    recipients = [
        Recipient(id=new_id(), name="Lab A", kind=ActorKind.LAB_STAFF),
        Recipient(id=new_id(), name="Lab B", kind=ActorKind.LAB_STAFF),
        Recipient(id=new_id(), name="Lab C", kind=ActorKind.LAB_STAFF),
    ]
    notifications.failing = {recipients[0].id}

    delivered = await notifications.fan_out(
        recipients, NotificationType.LAB_ASSIGNMENT, "New Test Request Approved for Lab", "CBC is ready"
    )

    assert delivered == 2
    assert [n.recipient_kind for n in notifications.sent] == [ActorKind.LAB_STAFF, ActorKind.LAB_STAFF]
    assert all(n.read is False for n in notifications.sent)


async def test_fan_out_to_nobody(clinic):
    notifications = clinic.notifications

    assert await notifications.fan_out([], NotificationType.BILLING, "Bill Generated", "-") == 0
    assert notifications.sent == []


# ==================== Inbox ====================

async def test_mark_read_only_own_notification(clinic, monkeypatch):
    """Another user's notification is reported as missing; the owner can mark it read."""
    notification = Notification(
        recipient_id=clinic.doctor.id,
        type=NotificationType.LAB_REPORT,
        title="Lab Report Sent",
        message="CBC report is ready",
    )
    notification.id = PydanticObjectId()
    saved = []

    async def get(cls, document_id, **kwargs):
        return notification if document_id == notification.id else None

    async def save(self, **kwargs):
        saved.append(self.id)
        return self

    monkeypatch.setattr(Notification, "get", classmethod(get))
    monkeypatch.setattr(Notification, "save", save)

    with pytest.raises(NotFoundException):
        await NotificationService.mark_read(str(notification.id), clinic.receptionist)
    with pytest.raises(NotFoundException):
        await NotificationService.mark_read("not-an-id", clinic.doctor)

    response = await NotificationService.mark_read(str(notification.id), clinic.doctor)

    assert response.read is True
    assert response.read_at is not None
    assert saved == [notification.id]
