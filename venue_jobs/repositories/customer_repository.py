from datetime import datetime
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from venue_jobs.models.customer import Customer
from .base_repository import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Repository for Customer lookups made by messaging jobs."""

    def __init__(self, session: AsyncSession):
        super().__init__(Customer, session)

    async def get_customers(self, customer_ids: List[UUID]) -> List[Customer]:
        """Get customers by ID; unknown IDs are ignored."""
        return await self.get_many_by_ids(customer_ids)

    async def mark_sms_delivered(self, customer_id: UUID, sent_at: datetime) -> None:
        await self.update(customer_id, {"last_successful_sms_at": sent_at})
