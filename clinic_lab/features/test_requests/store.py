# Test Requests Feature - Persistence

from typing import Any, Dict, Optional
from beanie import PydanticObjectId
from beanie.operators import Set
from beanie.odm.queries.update import UpdateResponse
from clinic_lab.features.directory.service import to_object_id
from clinic_lab.features.test_requests.models import TestRequest, TestRequestStatus


class TestRequestStore:
    """
    MongoDB access for test requests.

    ``commit`` is the only write path after creation: it updates the document
    only if status and version are still what the caller read.
    """

    async def get(self, request_id: str) -> Optional[TestRequest]:
        object_id = to_object_id(request_id)
        if object_id is None:
            return None
        return await TestRequest.get(object_id)

    async def insert(self, request: TestRequest) -> TestRequest:
        await request.insert()
        return request

    async def commit(
        self,
        request_id: PydanticObjectId,
        expected_status: TestRequestStatus,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Optional[TestRequest]:
        """
        Apply ``changes`` as a single conditional ``$set``.

        Returns:
            The updated document, or None when another writer got there first
        """
        return await TestRequest.find_one(
            {
                "_id": request_id,
                "status": expected_status.value,
                "version": expected_version,
                "is_active": True,
            }
        ).update(Set(changes), response_type=UpdateResponse.NEW_DOCUMENT)
