"""
Breeze customer link repository
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select

from domain.order.repository import CustomerLinkRepository
from infrastructure.models.order import BreezeCustomerLinkModel


class SQLAlchemyCustomerLinkRepository(CustomerLinkRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_remote_customer_id(self, user_id: int) -> Optional[str]:
        result = await self.session.execute(
            select(BreezeCustomerLinkModel.breeze_customer_id).where(
                BreezeCustomerLinkModel.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def set_remote_customer_id(self, user_id: int, customer_id: str) -> None:
        existing = await self.session.get(BreezeCustomerLinkModel, user_id)
        if existing is None:
            self.session.add(
                BreezeCustomerLinkModel(user_id=user_id, breeze_customer_id=customer_id)
            )
        else:
            existing.breeze_customer_id = customer_id
        await self.session.flush()

    async def purge(self) -> int:
        result = await self.session.execute(delete(BreezeCustomerLinkModel))
        return result.rowcount or 0
