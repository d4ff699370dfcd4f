"""Generic API response schemas"""

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
