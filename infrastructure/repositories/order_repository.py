"""
Order repository - SQLAlchemy data access for the Breeze gateway

Status writes are single conditional UPDATE statements, so two concurrent
deliveries can never both move an order to PAID.
"""
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from domain.order.entity import Order, OrderItem, OrderNote, PaymentStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderItemModel, OrderNoteModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_PAID = PaymentStatus.PAID.value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyOrderRepository(OrderRepository):
    """SQLAlchemy implementation of the order repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: OrderItemModel) -> OrderItem:
        return OrderItem(
            name=model.name,
            quantity=model.quantity,
            line_total=Decimal(str(model.line_total)),
            catalog_price=Decimal(str(model.catalog_price or 0)),
            short_description=model.short_description,
            image_url=model.image_url,
            product_id=model.product_id,
            product_available=bool(model.product_available),
        )

    def _to_entity(self, model: OrderModel) -> Order:
        """Map the ORM row to the domain entity"""
        return Order(
            id=model.id,
            currency=model.currency,
            billing_email=model.billing_email,
            payment_status=PaymentStatus(model.payment_status),
            user_id=model.user_id,
            items=[self._item_to_entity(i) for i in model.items],
            shipping_total=Decimal(str(model.shipping_total or 0)),
            shipping_method=model.shipping_method,
            discount_total=Decimal(str(model.discount_total or 0)),
            tax_total=Decimal(str(model.tax_total or 0)),
            breeze_customer_id=model.breeze_customer_id,
            breeze_payment_page_id=model.breeze_payment_page_id,
            breeze_return_token=model.breeze_return_token,
            transaction_id=model.transaction_id,
            notes=[OrderNote(note=n.note, created_at=n.created_at) for n in model.notes],
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    async def _update(self, stmt) -> int:
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def set_return_token(self, order_id: int, token: str) -> None:
        await self._update(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(breeze_return_token=token, updated_at=_utcnow())
        )

    async def consume_return_token(self, order_id: int, expected: str) -> bool:
        if not expected:
            return False
        changed = await self._update(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.breeze_return_token == expected,
            )
            .values(breeze_return_token=None, updated_at=_utcnow())
        )
        return changed == 1

    async def save_checkout_session(
        self,
        order_id: int,
        customer_id: str,
        payment_page_id: Optional[str],
    ) -> bool:
        changed = await self._update(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.payment_status != _PAID)
            .values(
                breeze_customer_id=customer_id,
                breeze_payment_page_id=payment_page_id,
                payment_status=PaymentStatus.PENDING_REMOTE.value,
                updated_at=_utcnow(),
            )
        )
        logger.info(
            "order_checkout_session_saved",
            order_id=order_id,
            payment_page_id=payment_page_id,
            applied=changed == 1,
        )
        return changed == 1

    async def mark_paid_if_unpaid(self, order_id: int, transaction_id: Optional[str]) -> bool:
        now = _utcnow()
        changed = await self._update(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.payment_status != _PAID)
            .values(
                payment_status=_PAID,
                transaction_id=transaction_id or "",
                paid_at=now,
                updated_at=now,
            )
        )
        return changed == 1

    async def transition_unless_paid(self, order_id: int, status: PaymentStatus) -> bool:
        if status == PaymentStatus.PAID:
            raise ValueError("use mark_paid_if_unpaid to set PAID")
        changed = await self._update(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.payment_status != _PAID)
            .values(payment_status=status.value, updated_at=_utcnow())
        )
        return changed == 1

    async def add_note(self, order_id: int, note: str) -> None:
        self.session.add(OrderNoteModel(order_id=order_id, note=note))
        await self.session.flush()

    async def purge_breeze_metadata(self) -> int:
        changed = await self._update(
            update(OrderModel)
            .where(
                or_(
                    OrderModel.breeze_customer_id.is_not(None),
                    OrderModel.breeze_payment_page_id.is_not(None),
                    OrderModel.breeze_return_token.is_not(None),
                )
            )
            .values(
                breeze_customer_id=None,
                breeze_payment_page_id=None,
                breeze_return_token=None,
            )
        )
        logger.info("order_breeze_metadata_purged", orders=changed)
        return changed
