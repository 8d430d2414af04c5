# Notifications Feature - Models

from enum import Enum
from typing import Any, Dict, Optional
from datetime import datetime
from beanie import Document, Indexed
from pydantic import Field
from clinic_lab.shared.models import TimestampMixin
from clinic_lab.features.auth.models import ActorKind


class NotificationType(str, Enum):
    TEST_REQUEST = "test_request"
    BILLING = "billing"
    SUPERADMIN_REVIEW = "superadmin_review"
    LAB_ASSIGNMENT = "lab_assignment"
    SAMPLE_COLLECTION = "sample_collection"
    LAB_TESTING = "lab_testing"
    LAB_REPORT = "lab_report"
    LAB_REPORT_FEEDBACK = "lab_report_feedback"


class Notification(Document, TimestampMixin):
    """
    In-app notification.
    One document per recipient; the workflow writes them, the inbox reads them.
    """
    
    recipient_id: Indexed(str)
    recipient_kind: ActorKind = ActorKind.USER
    sender_id: Optional[str] = None
    
    type: NotificationType
    title: str
    message: str
    
    # Usually {"test_request_id": ..., "status": ...}
    data: Dict[str, Any] = Field(default_factory=dict)
    
    read: bool = False
    read_at: Optional[datetime] = None
    
    class Settings:
        name = "notifications"
        use_state_management = True
        indexes = [
            [("recipient_id", 1), ("read", 1), ("created_at", -1)],
        ]
