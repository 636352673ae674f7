"""
Companion contact endpoints.

Contacts a user travels with; their count breaks leaderboard ties.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_current_user
from backend.app.db.session import get_db
from backend.app.schemas.companion import CompanionListResponse, CompanionResponse, CompanionSaveRequest
from backend.app.services.companions import CompanionDirectory

router = APIRouter(prefix="/companions", tags=["Companions"])


@router.get("", response_model=CompanionListResponse)
async def list_companions(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    contacts = await CompanionDirectory.list_companions(db, current_user["user_id"])
    return CompanionListResponse(items=[CompanionResponse.model_validate(c) for c in contacts])


@router.post("", response_model=CompanionResponse)
async def save_companion(
    request: CompanionSaveRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a contact, or update one of the caller's contacts when ``id`` is set."""
    contact = await CompanionDirectory.save_companion(db, current_user["user_id"], request)
    return CompanionResponse.model_validate(contact)


@router.delete("/{companion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_companion(
    companion_id: int = Path(..., description="Companion ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await CompanionDirectory.delete_companion(db, current_user["user_id"], companion_id)
