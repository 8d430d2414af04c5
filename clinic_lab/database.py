"""MongoDB database connection manager."""

from pymongo import AsyncMongoClient
from beanie import init_beanie
from typing import Optional

from clinic_lab.config import settings
from clinic_lab.core.logging import logger


def document_models() -> list:
    """Every Beanie document the service reads or writes."""
    from clinic_lab.features.directory.models import (
        Center,
        Doctor,
        LabStaff,
        Patient,
        SuperAdminDoctor,
        User,
    )
    from clinic_lab.features.notifications.models import Notification
    from clinic_lab.features.test_requests.models import TestRequest

    return [
        User,
        Doctor,
        Center,
        Patient,
        LabStaff,
        SuperAdminDoctor,
        Notification,
        TestRequest,
    ]


class Database:
    """MongoDB database connection manager."""
    
    client: Optional[AsyncMongoClient] = None
    
    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncMongoClient(settings.MONGODB_URL)
        
        await init_beanie(
            database=cls.client[settings.DATABASE_NAME],
            document_models=document_models(),
        )
        
        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")
    
    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            await cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")
