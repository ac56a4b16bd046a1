"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import (
    BreezeCustomerLinkModel,
    OrderItemModel,
    OrderModel,
    OrderNoteModel,
)

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderItemModel",
    "OrderNoteModel",
    "BreezeCustomerLinkModel",
]
