"""
Order persistence models - SQLAlchemy ORM mappings
Infrastructure detail only; business rules live in domain.order.entity.Order
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderModel(Base):
    """
    Host order row, narrowed to what the Breeze gateway reads and writes
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True, comment="Host user id, NULL for guests")
    billing_email = Column(String(320), nullable=False, comment="Billing email")
    currency = Column(String(3), nullable=False, default="USD", comment="ISO-4217 code")

    payment_status = Column(
        String(40),
        nullable=False,
        default="unpaid",
        index=True,
        comment="unpaid/pending_remote/awaiting_webhook_confirmation/paid/failed"
    )

    shipping_total = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    shipping_method = Column(String(200), nullable=True)
    discount_total = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    tax_total = Column(Numeric(precision=15, scale=2), nullable=False, default=0)

    # Breeze metadata
    breeze_customer_id = Column(String(200), nullable=True, comment="Remote customer id")
    breeze_payment_page_id = Column(String(200), nullable=True, index=True, comment="Remote payment page id")
    breeze_return_token = Column(String(128), nullable=True, comment="One-time return token")
    transaction_id = Column(String(200), nullable=True, comment="Provider reference recorded on payment")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItemModel.id",
        cascade="all, delete-orphan",
    )
    notes = relationship(
        "OrderNoteModel",
        back_populates="order",
        lazy="selectin",
        order_by="OrderNoteModel.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_orders_user_status", "user_id", "payment_status"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, currency='{self.currency}', "
            f"payment_status='{self.payment_status}')>"
        )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    short_description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    line_total = Column(Numeric(precision=15, scale=2), nullable=False, comment="Post-discount line total")
    catalog_price = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    image_url = Column(String(1000), nullable=True)
    product_id = Column(Integer, nullable=True)
    product_available = Column(Boolean, nullable=False, default=True)

    order = relationship("OrderModel", back_populates="items")


class OrderNoteModel(Base):
    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    note = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    order = relationship("OrderModel", back_populates="notes")


class BreezeCustomerLinkModel(Base):
    """Remote customer id cached per host user"""
    __tablename__ = "breeze_customer_links"

    user_id = Column(Integer, primary_key=True)
    breeze_customer_id = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
