"""
Companion contacts saved by a user.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.reliability import run_unit_of_work
from backend.app.models.companion_contact import CompanionContact
from backend.app.schemas.companion import CompanionSaveRequest

logger = logging.getLogger(__name__)


async def _get_owned_contact(db: AsyncSession, contact_id: int, owner_id: str) -> CompanionContact:
    result = await db.execute(
        select(CompanionContact)
        .where(CompanionContact.id == contact_id, CompanionContact.user_id == owner_id)
        .execution_options(populate_existing=True)
    )
    contact = result.scalar_one_or_none()
    if not contact:
        raise ResourceNotFoundError("Companion", contact_id)
    return contact


class CompanionDirectory:

    @staticmethod
    async def list_companions(db: AsyncSession, owner_id: str) -> List[CompanionContact]:
        async def work():
            result = await db.execute(
                select(CompanionContact)
                .where(CompanionContact.user_id == owner_id)
                .order_by(CompanionContact.created_at.desc(), CompanionContact.id.desc())
            )
            return list(result.scalars().all())

        return await run_unit_of_work(db, "list_companions", work)

    @staticmethod
    async def save_companion(db: AsyncSession, owner_id: str, request: CompanionSaveRequest) -> CompanionContact:
        """Create a contact, or update the caller's contact ``request.id``."""

        async def work():
            if request.id is not None:
                contact = await _get_owned_contact(db, request.id, owner_id)
            else:
                contact = CompanionContact(user_id=owner_id)
                db.add(contact)

            contact.name = request.name
            contact.email = request.email
            contact.phone = request.phone

            await db.commit()
            await db.refresh(contact)
            return contact

        return await run_unit_of_work(db, "save_companion", work)

    @staticmethod
    async def delete_companion(db: AsyncSession, owner_id: str, contact_id: int) -> None:
        async def work():
            contact = await _get_owned_contact(db, contact_id, owner_id)
            await db.delete(contact)
            await db.commit()

        await run_unit_of_work(db, "delete_companion", work)
        logger.info("Companion %s deleted by user %s", contact_id, owner_id)
