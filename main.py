"""Clinic Lab Workflow API - development entry point."""

import uvicorn

from clinic_lab.config import settings
from clinic_lab.main import app


if __name__ == "__main__":
    uvicorn.run(
        "clinic_lab.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )
