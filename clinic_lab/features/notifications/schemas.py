# Notifications Feature - Schemas

from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    """Schema for notification response."""
    id: str
    type: str
    title: str
    message: str
    data: Dict[str, Any]
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread: int
