"""
Order repository interfaces - abstract data access used by the Breeze gateway
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order, PaymentStatus


class OrderRepository(ABC):
    """Order repository port. Status transitions are conditional and atomic per order."""

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Load an order with its items, or None"""
        pass

    @abstractmethod
    async def set_return_token(self, order_id: int, token: str) -> None:
        """Store the one-time return token"""
        pass

    @abstractmethod
    async def consume_return_token(self, order_id: int, expected: str) -> bool:
        """Delete the return token only if it still equals ``expected``.

        Returns True when this call removed it.
        """
        pass

    @abstractmethod
    async def save_checkout_session(
        self,
        order_id: int,
        customer_id: str,
        payment_page_id: Optional[str],
    ) -> bool:
        """Persist the remote customer/payment page ids and move the order to PENDING_REMOTE.

        Leaves a PAID order untouched and returns False in that case.
        """
        pass

    @abstractmethod
    async def mark_paid_if_unpaid(self, order_id: int, transaction_id: Optional[str]) -> bool:
        """Set PAID unless already PAID. Returns True when the row changed."""
        pass

    @abstractmethod
    async def transition_unless_paid(self, order_id: int, status: PaymentStatus) -> bool:
        """Set a non-terminal status unless the order is PAID. Returns True when the row changed."""
        pass

    @abstractmethod
    async def add_note(self, order_id: int, note: str) -> None:
        """Append an audit note"""
        pass

    @abstractmethod
    async def purge_breeze_metadata(self) -> int:
        """Clear Breeze ids and tokens from every order, returns affected rows"""
        pass


class CustomerLinkRepository(ABC):
    """Cache of remote Breeze customer ids per host user (never for guests)"""

    @abstractmethod
    async def get_remote_customer_id(self, user_id: int) -> Optional[str]:
        pass

    @abstractmethod
    async def set_remote_customer_id(self, user_id: int, customer_id: str) -> None:
        pass

    @abstractmethod
    async def purge(self) -> int:
        pass
