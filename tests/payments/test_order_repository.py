"""SQLAlchemy repositories against an in-memory SQLite database."""
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.order.entity import PaymentStatus
from infrastructure.models import Base
from infrastructure.models.order import OrderItemModel, OrderModel
from infrastructure.unit_of_work import sqlalchemy_uow_factory
from scripts.purge_breeze_data import purge


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async with factory() as session:
        session.add(
            OrderModel(
                id=42,
                user_id=7,
                billing_email="buyer@example.com",
                currency="usd",
                payment_status=PaymentStatus.PENDING_REMOTE.value,
                shipping_total=Decimal("10.00"),
                breeze_payment_page_id="page_abc123",
                items=[OrderItemModel(name="Widget", quantity=2, line_total=Decimal("60.00"))],
            )
        )
        session.add(OrderModel(id=43, billing_email="guest@example.com", currency="EUR"))
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return sqlalchemy_uow_factory(session_factory)


@pytest.mark.asyncio
async def test_loads_order_aggregate(uow_factory):
    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
        missing = await uow.orders.get_by_id(999)

    assert missing is None
    assert order.currency == "USD"
    assert order.payment_status == PaymentStatus.PENDING_REMOTE
    assert order.items[0].line_total == Decimal("60.00")
    assert order.payable_total() == Decimal("70.00")
    assert order.host_status == "pending"


@pytest.mark.asyncio
async def test_return_token_consumed_once(uow_factory):
    async with uow_factory() as uow:
        await uow.orders.set_return_token(42, "tok")

    async with uow_factory() as uow:
        assert await uow.orders.consume_return_token(42, "wrong") is False
        assert await uow.orders.consume_return_token(42, "tok") is True
        assert await uow.orders.consume_return_token(42, "tok") is False

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
    assert order.breeze_return_token is None


@pytest.mark.asyncio
async def test_mark_paid_is_conditional(uow_factory):
    async with uow_factory() as uow:
        assert await uow.orders.mark_paid_if_unpaid(42, "page_abc123") is True
        assert await uow.orders.mark_paid_if_unpaid(42, "page_abc123") is False
        assert await uow.orders.transition_unless_paid(42, PaymentStatus.FAILED) is False

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
    assert order.payment_status == PaymentStatus.PAID
    assert order.transaction_id == "page_abc123"
    assert order.paid_at is not None


@pytest.mark.asyncio
async def test_transition_refuses_paid_target(uow_factory):
    with pytest.raises(ValueError):
        async with uow_factory() as uow:
            await uow.orders.transition_unless_paid(42, PaymentStatus.PAID)


@pytest.mark.asyncio
async def test_failed_then_paid(uow_factory):
    async with uow_factory() as uow:
        assert await uow.orders.transition_unless_paid(42, PaymentStatus.FAILED) is True
        assert await uow.orders.mark_paid_if_unpaid(42, None) is True

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
    assert order.payment_status == PaymentStatus.PAID
    assert order.transaction_id == ""


@pytest.mark.asyncio
async def test_rollback_discards_writes(uow_factory):
    with pytest.raises(RuntimeError):
        async with uow_factory() as uow:
            await uow.orders.add_note(42, "never stored")
            raise RuntimeError("boom")

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
    assert order.notes == []


@pytest.mark.asyncio
async def test_checkout_session_and_notes(uow_factory):
    async with uow_factory() as uow:
        assert await uow.orders.save_checkout_session(43, "cus_1", "page_9") is True
        await uow.orders.add_note(43, "Awaiting Breeze payment.")

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(43)
    assert order.breeze_customer_id == "cus_1"
    assert order.breeze_payment_page_id == "page_9"
    assert order.payment_status == PaymentStatus.PENDING_REMOTE
    assert [n.note for n in order.notes] == ["Awaiting Breeze payment."]


@pytest.mark.asyncio
async def test_customer_link_upsert(uow_factory):
    async with uow_factory() as uow:
        assert await uow.customers.get_remote_customer_id(7) is None
        await uow.customers.set_remote_customer_id(7, "cus_1")
        await uow.customers.set_remote_customer_id(7, "cus_2")

    async with uow_factory() as uow:
        assert await uow.customers.get_remote_customer_id(7) == "cus_2"


@pytest.mark.asyncio
async def test_purge_removes_breeze_data_only(uow_factory):
    async with uow_factory() as uow:
        await uow.customers.set_remote_customer_id(7, "cus_1")
        await uow.orders.set_return_token(42, "tok")
        await uow.orders.add_note(42, "kept")

    links, cleared = await purge(uow_factory)

    assert (links, cleared) == (1, 1)
    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
        assert await uow.customers.get_remote_customer_id(7) is None
    assert order.breeze_payment_page_id is None
    assert order.breeze_return_token is None
    assert order.payment_status == PaymentStatus.PENDING_REMOTE
    assert [n.note for n in order.notes] == ["kept"]


@pytest.mark.asyncio
async def test_checkout_session_never_overwrites_paid_order(uow_factory):
    async with uow_factory() as uow:
        assert await uow.orders.mark_paid_if_unpaid(42, "page_abc123") is True
        assert await uow.orders.save_checkout_session(42, "cus_9", "page_new") is False

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(42)
    assert order.payment_status == PaymentStatus.PAID
    assert order.breeze_payment_page_id == "page_abc123"
    assert order.breeze_customer_id is None
