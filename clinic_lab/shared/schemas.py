from pydantic import BaseModel
from typing import Optional, Any


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by mutations without a body."""
    
    message: str
    data: Optional[Any] = None
