"""Test the MongoDB queries the real store and directory send, without a server."""

from datetime import datetime

from beanie import PydanticObjectId
from beanie.odm.queries.find import FindMany
from beanie.odm.queries.update import UpdateOne, UpdateResponse

from clinic_lab.features.billing.models import Billing, BillingStatus
from clinic_lab.features.directory.service import DirectoryService
from clinic_lab.features.test_requests.models import StatusChange, TestRequestStatus as S, WorkflowStage
from clinic_lab.features.test_requests.store import TestRequestStore


async def test_commit_is_one_conditional_set(monkeypatch):
    """The filter pins id, status, version and liveness; the $set is BSON-ready."""
    sent = []

    async def capture(self):
        sent.append(self)
        return None

    monkeypatch.setattr(UpdateOne, "_update", capture)
    request_id = PydanticObjectId()
    changed_at = datetime(2024, 3, 1, 9, 30)
    changes = {
        "status": S.ASSIGNED,
        "workflow_stage": WorkflowStage.LAB_ASSIGNMENT,
        "billing": Billing(status=BillingStatus.PAID, amount=500, paid_amount=500),
        "status_history": [
            StatusChange(from_status=S.SUPERADMIN_APPROVED, to_status=S.ASSIGNED, changed_by="lab-1", changed_at=changed_at),
        ],
        "version": 4,
    }

    result = await TestRequestStore().commit(request_id, S.SUPERADMIN_APPROVED, 3, changes)

    assert result is None
    query = sent[0]
    assert query.response_type == UpdateResponse.NEW_DOCUMENT
    assert query.find_query == {
        "_id": request_id,
        "status": "Superadmin_Approved",
        "version": 3,
        "is_active": True,
    }
    update = query.update_query["$set"]
    assert update["status"] == "Assigned"
    assert update["workflow_stage"] == "lab_assignment"
    assert update["version"] == 4
    assert update["billing"]["status"] == "paid"
    assert update["billing"]["amount"] == 500
    [entry] = update["status_history"]
    assert entry["from_status"] == "Superadmin_Approved"
    assert entry["to_status"] == "Assigned"
    assert entry["changed_by"] == "lab-1"
    assert entry["changed_at"] == changed_at


async def test_center_receptionists_query(monkeypatch):
    filters = []

    async def capture(self, length=None):
        filters.append(self.get_filter_query())
        return []

    monkeypatch.setattr(FindMany, "to_list", capture)

    recipients = await DirectoryService().center_receptionists("center-7")

    assert recipients == []
    assert filters == [{
        "$and": [
            {"role": "receptionist"},
            {"center_id": "center-7"},
            {"status": "active"},
            {"is_deleted": False},
        ]
    }]


async def test_center_queries_need_a_center(monkeypatch):
    async def fail(self, length=None):
        raise AssertionError("no query expected")

    monkeypatch.setattr(FindMany, "to_list", fail)

    assert await DirectoryService().center_admins(None) == []
    assert await DirectoryService().center_receptionists("") == []
