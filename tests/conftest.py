"""
Test Suite Configuration
"""
import json
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.analytics.store import SqlEventStore
from src.database.models import (
    Base,
    Category,
    Company,
    ConversionEvent,
    Coupon,
    CouponType,
    CouponUsage,
    Customer,
    GuestCart,
    GuestOrder,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductVisit,
    StoreVisit,
    User,
)
from src.serving.api.dependencies import get_store
from src.serving.api.main import create_api_app

TENANT = "company-acme"
OTHER_TENANT = "company-other"


@pytest.fixture
def now() -> datetime:
    return datetime.now().replace(microsecond=0)


@pytest.fixture
async def test_engine(tmp_path):
    """File-backed SQLite engine; one database per test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def store(session_factory) -> SqlEventStore:
    return SqlEventStore(session_factory)


@pytest.fixture
async def seeded(session_factory, now) -> Dict[str, str]:
    """
    Two tenants; ``company-acme`` carries the dataset the integration tests
    assert against:

    - 5 store visits (4 in the last 30 days, 3 distinct sessions among them)
    - 4 product views, 2 add-to-carts, 1 checkout, 1 purchase worth 100
    - orders: DELIVERED COD 200 (+20 shipping), CANCELLED COD 50,
      RETURNED card 100, SHIPPED 200 without payment method
    - guest carts: expired, converted, active, and expired with broken items
    """
    def ago(**delta) -> datetime:
        return now - timedelta(**delta)

    async with session_factory() as session:
        session.add_all([
            Company(id=TENANT, name="Acme"),
            Company(id=OTHER_TENANT, name="Other"),
        ])
        await session.flush()

        shoes = Category(id="cat-shoes", company_id=TENANT, name="Shoes")
        runner = Product(
            id="prod-runner", company_id=TENANT, name="Runner", price=Decimal("100"),
            cost_price=Decimal("40"), stock=5, category=shoes,
        )
        sandal = Product(id="prod-sandal", company_id=TENANT, name="Sandal", price=Decimal("50"), stock=0)
        boot = Product(
            id="prod-boot", company_id=TENANT, name="Boot", price=Decimal("200"),
            cost_price=Decimal("120"), stock=100, category=shoes,
        )
        foreign = Product(id="prod-foreign", company_id=OTHER_TENANT, name="Foreign", price=Decimal("10"), stock=3)
        session.add_all([shoes, runner, sandal, boot, foreign])

        mona = Customer(id="cust-mona", company_id=TENANT, name="Mona", phone="010", governorate="Cairo", city="Nasr City")
        omar = Customer(id="cust-omar", company_id=TENANT, name="Omar", city="Alexandria")
        idle = Customer(id="cust-idle", company_id=TENANT, name="Idle")
        session.add_all([mona, omar, idle])

        session.add_all([
            User(id="user-sara", company_id=TENANT, name="Sara", email="sara@acme.test", role="ADMIN"),
            User(id="user-gone", company_id=TENANT, name="Gone", is_active=False),
        ])

        # tracking
        for session_id in ("s1", "s1", "s2", "s3"):
            session.add(StoreVisit(company_id=TENANT, session_id=session_id, visited_at=ago(days=2)))
        session.add(StoreVisit(company_id=TENANT, session_id="s-old", visited_at=ago(days=60)))
        session.add(StoreVisit(company_id=OTHER_TENANT, session_id="s-x", visited_at=ago(days=1)))

        for product_id in ("prod-runner", "prod-runner", "prod-runner", "prod-sandal"):
            session.add(ProductVisit(company_id=TENANT, product_id=product_id, session_id="s1", visited_at=ago(days=2)))

        session.add_all([
            ConversionEvent(company_id=TENANT, session_id="s1", event_type="add_to_cart",
                            product_id="prod-runner", created_at=ago(days=2)),
            ConversionEvent(company_id=TENANT, session_id="s2", event_type="add_to_cart",
                            product_id="prod-runner", created_at=ago(days=2)),
            ConversionEvent(company_id=TENANT, session_id="s1", event_type="checkout", created_at=ago(days=2)),
            ConversionEvent(company_id=TENANT, session_id="s1", event_type="purchase",
                            product_id="prod-runner", value=100.0, created_at=ago(days=2)),
        ])

        # orders
        delivered = Order(
            id="order-delivered", company_id=TENANT, customer=mona, total=Decimal("200"),
            shipping=Decimal("20"), payment_method="COD", created_by="user-sara",
            confirmed_by="user-sara", created_at=ago(days=5),
        )
        delivered.items.append(OrderItem(
            product=runner, product_name="Runner", product_color="red", product_size="42",
            price=Decimal("100"), quantity=2,
        ))
        delivered.record_status(OrderStatus.PENDING, at=ago(days=5))
        delivered.record_status(OrderStatus.CONFIRMED, at=ago(days=5) + timedelta(hours=2))
        delivered.record_status(OrderStatus.SHIPPED, at=ago(days=5) + timedelta(hours=26))
        delivered.record_status(OrderStatus.DELIVERED, at=ago(days=5) + timedelta(hours=74))

        cancelled = Order(
            id="order-cancelled", company_id=TENANT, customer=mona, total=Decimal("50"),
            payment_method="COD", created_by="user-sara", created_at=ago(days=4),
        )
        cancelled.items.append(OrderItem(product=sandal, product_name="Sandal", price=Decimal("50"), quantity=1))
        cancelled.record_status(OrderStatus.CANCELLED, at=ago(days=4))

        returned = Order(
            id="order-returned", company_id=TENANT, customer=omar, total=Decimal("100"),
            payment_method="CARD", governorate="Giza", created_at=ago(days=3),
        )
        returned.items.append(OrderItem(product=runner, product_name="Runner", price=Decimal("100"), quantity=1))
        returned.record_status(OrderStatus.RETURNED, at=ago(days=1))

        shipped = Order(
            id="order-shipped", company_id=TENANT, customer=omar, total=Decimal("200"),
            created_at=ago(days=2),
        )
        shipped.items.append(OrderItem(product=boot, product_name="Boot", price=Decimal("200"), quantity=1))
        shipped.record_status(OrderStatus.SHIPPED, at=ago(days=1))

        foreign_order = Order(
            id="order-foreign", company_id=OTHER_TENANT, total=Decimal("999"),
            status=OrderStatus.DELIVERED, payment_method="COD", created_at=ago(days=1),
        )
        foreign_order.items.append(OrderItem(product=foreign, product_name="Foreign", price=Decimal("999"), quantity=1))
        session.add_all([delivered, cancelled, returned, shipped, foreign_order])

        # coupons
        save10 = Coupon(
            id="coupon-save10", company_id=TENANT, code="SAVE10", type=CouponType.PERCENTAGE,
            value=Decimal("10"), is_active=True,
        )
        save10.usages.extend([CouponUsage(used_at=ago(days=3)), CouponUsage(used_at=ago(days=90))])
        idle_coupon = Coupon(
            id="coupon-idle", company_id=TENANT, code="IDLE", type=CouponType.FIXED,
            value=Decimal("25"), is_active=False,
        )
        session.add_all([save10, idle_coupon])

        # guest carts
        runner_line = json.dumps([{"productName": "Runner", "category": "Shoes", "price": 100, "quantity": 1}])
        session.add_all([
            GuestCart(company_id=TENANT, cart_id="cart-abandoned", items=runner_line, total=Decimal("100"),
                      updated_at=ago(days=3), expires_at=ago(days=1)),
            GuestCart(company_id=TENANT, cart_id="cart-converted", items=runner_line, total=Decimal("100"),
                      updated_at=ago(days=3), expires_at=ago(days=1)),
            GuestCart(company_id=TENANT, cart_id="cart-active", items=runner_line, total=Decimal("100"),
                      updated_at=ago(hours=1), expires_at=now + timedelta(days=1)),
            GuestCart(company_id=TENANT, cart_id="cart-broken", items="not json", total=Decimal("40"),
                      updated_at=ago(days=2), expires_at=ago(hours=2)),
            GuestOrder(company_id=TENANT, guest_cart_id="cart-converted"),
        ])

        await session.commit()

    return {
        "tenant": TENANT,
        "other_tenant": OTHER_TENANT,
        "runner": "prod-runner",
        "sandal": "prod-sandal",
        "boot": "prod-boot",
        "foreign_product": "prod-foreign",
        "delivered_order": "order-delivered",
        "foreign_order": "order-foreign",
    }


@pytest.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the test store injected"""
    app = create_api_app()
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
def tenant_headers() -> Dict[str, str]:
    return {"X-Company-Id": TENANT}
