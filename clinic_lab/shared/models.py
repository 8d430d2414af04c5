from pydantic import BaseModel, Field
from datetime import datetime


class TimestampMixin(BaseModel):
    """Mixin for adding timestamp fields to documents."""
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    
    def update_timestamp(self):
        """Update the updated_at timestamp."""
        self.updated_at = datetime.utcnow()
