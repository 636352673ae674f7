"""
Companion contact schemas.
"""

from typing import List, Optional

from pydantic import Field

from backend.app.schemas.trip import CamelModel, UtcDateTime


class CompanionSaveRequest(CamelModel):
    """Create a contact, or update one of your own when ``id`` is given."""
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


class CompanionResponse(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: UtcDateTime


class CompanionListResponse(CamelModel):
    items: List[CompanionResponse]
