"""
Event Store Reader

Tenant-scoped read contract used by every analyzer, plus the three tracking
inserts. ``SqlEventStore`` implements it over the async SQLAlchemy models.

Each read opens its own short-lived session from the injected session
factory, so reads that do not depend on each other can be awaited
concurrently (``asyncio.gather``) without sharing an ``AsyncSession``.
"""

from abc import ABC, abstractmethod
from enum import Enum
import asyncio
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence, Set

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.analytics.records import (
    CouponRecord,
    CustomerRecord,
    EventCounts,
    GuestCartRecord,
    OrderItemRecord,
    OrderRecord,
    ProductEventCounts,
    ProductRecord,
    StatusChange,
    TrackedEvent,
    UserRecord,
)
from src.analytics.windows import TimeWindow
from src.database.models import (
    Company,
    ConversionEvent,
    Coupon,
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

logger = structlog.get_logger(__name__)

ADD_TO_CART = "add_to_cart"
CHECKOUT = "checkout"
PURCHASE = "purchase"


class EventStoreReader(ABC):
    """
    Read/insert contract over the tenant-partitioned store.

    Every method filters by ``tenant_id``. A ``window`` of ``None`` means
    no time bound.
    """

    concurrent_reads: bool = True

    async def gather(self, *reads: Awaitable) -> List[Any]:
        """Await independent reads, concurrently when enabled."""
        if self.concurrent_reads:
            return list(await asyncio.gather(*reads))
        return [await read for read in reads]

    # -- existence checks --------------------------------------------------

    @abstractmethod
    async def company_exists(self, tenant_id: str) -> bool: ...

    @abstractmethod
    async def get_product(self, tenant_id: str, product_id: str) -> Optional[ProductRecord]: ...

    @abstractmethod
    async def order_exists(self, tenant_id: str, order_id: str) -> bool: ...

    # -- tracking counters -------------------------------------------------

    @abstractmethod
    async def event_counts(self, tenant_id: str, window: Optional[TimeWindow]) -> EventCounts: ...

    @abstractmethod
    async def product_event_counts(
        self, tenant_id: str, window: TimeWindow, product_id: Optional[str] = None
    ) -> List[ProductEventCounts]: ...

    @abstractmethod
    async def tracked_events(self, tenant_id: str, window: TimeWindow) -> List[TrackedEvent]: ...

    # -- business rows -----------------------------------------------------

    @abstractmethod
    async def products(
        self,
        tenant_id: str,
        ids: Optional[Iterable[str]] = None,
        active_only: bool = False,
    ) -> List[ProductRecord]: ...

    @abstractmethod
    async def orders(
        self,
        tenant_id: str,
        window: Optional[TimeWindow] = None,
        statuses: Optional[Sequence[str]] = None,
        payment_method: Optional[str] = None,
        include_items: bool = False,
        include_history: bool = False,
        include_customer: bool = False,
    ) -> List[OrderRecord]: ...

    @abstractmethod
    async def count_orders(
        self,
        tenant_id: str,
        window: Optional[TimeWindow] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> int: ...

    @abstractmethod
    async def items_for_orders(self, tenant_id: str, order_ids: Sequence[str]) -> List[OrderItemRecord]: ...

    @abstractmethod
    async def customers(self, tenant_id: str) -> List[CustomerRecord]: ...

    @abstractmethod
    async def active_users(self, tenant_id: str) -> List[UserRecord]: ...

    @abstractmethod
    async def coupons(self, tenant_id: str, window: Optional[TimeWindow] = None) -> List[CouponRecord]: ...

    @abstractmethod
    async def guest_carts(self, tenant_id: str, window: Optional[TimeWindow] = None) -> List[GuestCartRecord]: ...

    @abstractmethod
    async def converted_cart_ids(self, tenant_id: str, cart_ids: Sequence[str]) -> Set[str]: ...

    # -- tracking inserts --------------------------------------------------

    @abstractmethod
    async def add_store_visit(self, tenant_id: str, session_id: str, **fields: Any) -> str: ...

    @abstractmethod
    async def add_product_visit(
        self, tenant_id: str, product_id: str, session_id: str, source: Optional[str] = None
    ) -> str: ...

    @abstractmethod
    async def add_conversion_event(self, tenant_id: str, session_id: str, event_type: str, **fields: Any) -> str: ...


# =============================================================================
# ROW PROJECTIONS
# =============================================================================

def _money(value) -> float:
    return float(value or 0)


def _enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def product_record(product: Product, with_category: bool = True) -> ProductRecord:
    category = product.category.name if with_category and product.category else None
    return ProductRecord(
        id=product.id,
        name=product.name,
        price=_money(product.price),
        cost_price=float(product.cost_price) if product.cost_price is not None else None,
        stock=product.stock or 0,
        is_active=bool(product.is_active),
        category=category,
    )


def customer_record(customer: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=customer.id,
        name=customer.name,
        phone=customer.phone,
        governorate=customer.governorate,
        city=customer.city,
    )


def item_record(item: OrderItem, with_product: bool = False) -> OrderItemRecord:
    return OrderItemRecord(
        id=item.id,
        order_id=item.order_id,
        product_id=item.product_id,
        product_name=item.product_name,
        price=_money(item.price),
        quantity=item.quantity or 0,
        color=item.product_color,
        size=item.product_size,
        product=product_record(item.product) if with_product and item.product else None,
    )


def order_record(
    order: Order,
    include_items: bool = False,
    include_history: bool = False,
    include_customer: bool = False,
) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        status=_enum_value(order.status),
        total=_money(order.total),
        shipping=_money(order.shipping),
        created_at=order.created_at,
        payment_method=order.payment_method,
        governorate=order.governorate,
        city=order.city,
        customer_id=order.customer_id,
        created_by=order.created_by,
        confirmed_by=order.confirmed_by,
        customer=customer_record(order.customer) if include_customer and order.customer else None,
        items=tuple(item_record(i, with_product=True) for i in order.items) if include_items else (),
        history=tuple(
            StatusChange(status=h.status, at=h.created_at) for h in order.status_history
        ) if include_history else (),
    )


def _between(column, window: Optional[TimeWindow]) -> List:
    if window is None:
        return []
    return [column >= window.start, column <= window.end]


# =============================================================================
# SQL IMPLEMENTATION
# =============================================================================

class SqlEventStore(EventStoreReader):
    """
    SQLAlchemy-backed store reader.

    Args:
        session_factory: ``async_sessionmaker`` producing sessions bound to
            the analytics database
        concurrent_reads: Await independent reads together when True,
            one after another when False
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        concurrent_reads: bool = True,
    ):
        self._session_factory = session_factory
        self.concurrent_reads = concurrent_reads

    async def _scalar(self, stmt) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar()

    async def _scalars(self, stmt) -> List[Any]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _rows(self, stmt) -> List[Any]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.all())

    async def _insert(self, row) -> str:
        async with self._session_factory() as session:
            session.add(row)
            await session.flush()
            row_id, table, tenant_id = row.id, row.__tablename__, row.company_id
            await session.commit()
        logger.debug("Tracking row inserted", table=table, tenant_id=tenant_id)
        return row_id

    # -- existence checks --------------------------------------------------

    async def company_exists(self, tenant_id: str) -> bool:
        found = await self._scalar(select(Company.id).where(Company.id == tenant_id))
        return found is not None

    async def get_product(self, tenant_id: str, product_id: str) -> Optional[ProductRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Product)
                .options(selectinload(Product.category))
                .where(and_(Product.id == product_id, Product.company_id == tenant_id))
            )
            product = result.scalar_one_or_none()
            return product_record(product) if product else None

    async def order_exists(self, tenant_id: str, order_id: str) -> bool:
        found = await self._scalar(
            select(Order.id).where(and_(Order.id == order_id, Order.company_id == tenant_id))
        )
        return found is not None

    # -- tracking counters -------------------------------------------------

    def _event_count(self, tenant_id: str, window: Optional[TimeWindow], event_type: str):
        return self._scalar(
            select(func.count(ConversionEvent.id)).where(
                ConversionEvent.company_id == tenant_id,
                ConversionEvent.event_type == event_type,
                *_between(ConversionEvent.created_at, window),
            )
        )

    async def event_counts(self, tenant_id: str, window: Optional[TimeWindow]) -> EventCounts:
        visits, unique_visitors, views, carts, checkouts, purchases, revenue = await self.gather(
            self._scalar(
                select(func.count(StoreVisit.id)).where(
                    StoreVisit.company_id == tenant_id,
                    *_between(StoreVisit.visited_at, window),
                )
            ),
            self._scalar(
                select(func.count(func.distinct(StoreVisit.session_id))).where(
                    StoreVisit.company_id == tenant_id,
                    *_between(StoreVisit.visited_at, window),
                )
            ),
            self._scalar(
                select(func.count(ProductVisit.id)).where(
                    ProductVisit.company_id == tenant_id,
                    *_between(ProductVisit.visited_at, window),
                )
            ),
            self._event_count(tenant_id, window, ADD_TO_CART),
            self._event_count(tenant_id, window, CHECKOUT),
            self._event_count(tenant_id, window, PURCHASE),
            self._scalar(
                select(func.coalesce(func.sum(ConversionEvent.value), 0)).where(
                    ConversionEvent.company_id == tenant_id,
                    ConversionEvent.event_type == PURCHASE,
                    *_between(ConversionEvent.created_at, window),
                )
            ),
        )
        return EventCounts(
            total_visits=visits or 0,
            unique_visitors=unique_visitors or 0,
            product_views=views or 0,
            add_to_carts=carts or 0,
            checkouts=checkouts or 0,
            purchases=purchases or 0,
            revenue=_money(revenue),
        )

    def _grouped_events(self, tenant_id: str, window: TimeWindow, event_type: str, product_id: Optional[str]):
        filters = [
            ConversionEvent.company_id == tenant_id,
            ConversionEvent.event_type == event_type,
            ConversionEvent.product_id.is_not(None),
            *_between(ConversionEvent.created_at, window),
        ]
        if product_id:
            filters.append(ConversionEvent.product_id == product_id)
        return self._rows(
            select(
                ConversionEvent.product_id,
                func.count(ConversionEvent.id),
                func.coalesce(func.sum(ConversionEvent.value), 0),
            )
            .where(*filters)
            .group_by(ConversionEvent.product_id)
        )

    async def product_event_counts(
        self, tenant_id: str, window: TimeWindow, product_id: Optional[str] = None
    ) -> List[ProductEventCounts]:
        view_filters = [
            ProductVisit.company_id == tenant_id,
            *_between(ProductVisit.visited_at, window),
        ]
        if product_id:
            view_filters.append(ProductVisit.product_id == product_id)

        views, carts, purchases = await self.gather(
            self._rows(
                select(ProductVisit.product_id, func.count(ProductVisit.id))
                .where(*view_filters)
                .group_by(ProductVisit.product_id)
            ),
            self._grouped_events(tenant_id, window, ADD_TO_CART, product_id),
            self._grouped_events(tenant_id, window, PURCHASE, product_id),
        )

        counters: Dict[str, Dict[str, Any]] = {}

        def slot(pid: str) -> Dict[str, Any]:
            return counters.setdefault(pid, {"views": 0, "add_to_carts": 0, "purchases": 0, "revenue": 0.0})

        for pid, count in views:
            slot(pid)["views"] = count
        for pid, count, _ in carts:
            slot(pid)["add_to_carts"] = count
        for pid, count, value in purchases:
            slot(pid)["purchases"] = count
            slot(pid)["revenue"] = _money(value)

        return [ProductEventCounts(product_id=pid, **values) for pid, values in counters.items()]

    async def tracked_events(self, tenant_id: str, window: TimeWindow) -> List[TrackedEvent]:
        visits, views, conversions = await self.gather(
            self._rows(
                select(StoreVisit.session_id, StoreVisit.visited_at).where(
                    StoreVisit.company_id == tenant_id,
                    *_between(StoreVisit.visited_at, window),
                )
            ),
            self._rows(
                select(ProductVisit.session_id, ProductVisit.visited_at).where(
                    ProductVisit.company_id == tenant_id,
                    *_between(ProductVisit.visited_at, window),
                )
            ),
            self._rows(
                select(
                    ConversionEvent.event_type,
                    ConversionEvent.session_id,
                    ConversionEvent.created_at,
                    ConversionEvent.value,
                ).where(
                    ConversionEvent.company_id == tenant_id,
                    *_between(ConversionEvent.created_at, window),
                )
            ),
        )
        events = [TrackedEvent(kind="store_visit", at=at, session_id=sid) for sid, at in visits]
        events.extend(TrackedEvent(kind="product_view", at=at, session_id=sid) for sid, at in views)
        events.extend(
            TrackedEvent(kind=kind, at=at, session_id=sid, value=_money(value))
            for kind, sid, at, value in conversions
        )
        return events

    # -- business rows -----------------------------------------------------

    async def products(
        self,
        tenant_id: str,
        ids: Optional[Iterable[str]] = None,
        active_only: bool = False,
    ) -> List[ProductRecord]:
        filters = [Product.company_id == tenant_id]
        if ids is not None:
            ids = list(ids)
            if not ids:
                return []
            filters.append(Product.id.in_(ids))
        if active_only:
            filters.append(Product.is_active.is_(True))

        async with self._session_factory() as session:
            result = await session.execute(
                select(Product).options(selectinload(Product.category)).where(*filters)
            )
            return [product_record(p) for p in result.scalars().all()]

    async def orders(
        self,
        tenant_id: str,
        window: Optional[TimeWindow] = None,
        statuses: Optional[Sequence[str]] = None,
        payment_method: Optional[str] = None,
        include_items: bool = False,
        include_history: bool = False,
        include_customer: bool = False,
    ) -> List[OrderRecord]:
        stmt = select(Order).where(
            Order.company_id == tenant_id,
            *_between(Order.created_at, window),
        )
        if statuses:
            stmt = stmt.where(Order.status.in_([OrderStatus(s) for s in statuses]))
        if payment_method is not None:
            stmt = stmt.where(Order.payment_method == payment_method)
        if include_items:
            stmt = stmt.options(
                selectinload(Order.items).selectinload(OrderItem.product).selectinload(Product.category)
            )
        if include_history:
            stmt = stmt.options(selectinload(Order.status_history))
        if include_customer:
            stmt = stmt.options(selectinload(Order.customer))
        stmt = stmt.order_by(Order.created_at.desc(), Order.id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                order_record(o, include_items, include_history, include_customer)
                for o in result.scalars().all()
            ]

    async def count_orders(
        self,
        tenant_id: str,
        window: Optional[TimeWindow] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> int:
        stmt = select(func.count(Order.id)).where(
            Order.company_id == tenant_id,
            *_between(Order.created_at, window),
        )
        if statuses:
            stmt = stmt.where(Order.status.in_([OrderStatus(s) for s in statuses]))
        return await self._scalar(stmt) or 0

    async def items_for_orders(self, tenant_id: str, order_ids: Sequence[str]) -> List[OrderItemRecord]:
        if not order_ids:
            return []
        items = await self._scalars(
            select(OrderItem)
            .join(Order, OrderItem.order_id == Order.id)
            .where(
                Order.company_id == tenant_id,
                OrderItem.order_id.in_(list(order_ids)),
                OrderItem.product_id.is_not(None),
            )
        )
        return [item_record(i) for i in items]

    async def customers(self, tenant_id: str) -> List[CustomerRecord]:
        rows = await self._scalars(select(Customer).where(Customer.company_id == tenant_id))
        return [customer_record(c) for c in rows]

    async def active_users(self, tenant_id: str) -> List[UserRecord]:
        rows = await self._scalars(
            select(User).where(User.company_id == tenant_id, User.is_active.is_(True))
        )
        return [UserRecord(id=u.id, name=u.name, email=u.email, role=u.role) for u in rows]

    async def coupons(self, tenant_id: str, window: Optional[TimeWindow] = None) -> List[CouponRecord]:
        uses = (
            select(CouponUsage.coupon_id, func.count(CouponUsage.id).label("uses"))
            .where(*_between(CouponUsage.used_at, window))
            .group_by(CouponUsage.coupon_id)
            .subquery()
        )
        rows = await self._rows(
            select(Coupon, func.coalesce(uses.c.uses, 0))
            .outerjoin(uses, uses.c.coupon_id == Coupon.id)
            .where(Coupon.company_id == tenant_id)
        )
        return [
            CouponRecord(
                id=coupon.id,
                code=coupon.code,
                name=coupon.name,
                type=_enum_value(coupon.type),
                value=_money(coupon.value),
                usage_limit=coupon.usage_limit,
                is_active=bool(coupon.is_active),
                valid_from=coupon.valid_from,
                valid_to=coupon.valid_to,
                uses=count or 0,
            )
            for coupon, count in rows
        ]

    async def guest_carts(self, tenant_id: str, window: Optional[TimeWindow] = None) -> List[GuestCartRecord]:
        rows = await self._scalars(
            select(GuestCart)
            .where(GuestCart.company_id == tenant_id, *_between(GuestCart.updated_at, window))
            .order_by(GuestCart.updated_at.desc())
        )
        return [
            GuestCartRecord(
                cart_id=c.cart_id,
                items_raw=c.items,
                total=_money(c.total),
                created_at=c.created_at,
                updated_at=c.updated_at,
                expires_at=c.expires_at,
            )
            for c in rows
        ]

    async def converted_cart_ids(self, tenant_id: str, cart_ids: Sequence[str]) -> Set[str]:
        if not cart_ids:
            return set()
        found = await self._scalars(
            select(GuestOrder.guest_cart_id).where(
                GuestOrder.company_id == tenant_id,
                GuestOrder.guest_cart_id.in_(list(cart_ids)),
            )
        )
        return {cid for cid in found if cid}

    # -- tracking inserts --------------------------------------------------

    async def add_store_visit(self, tenant_id: str, session_id: str, **fields: Any) -> str:
        return await self._insert(StoreVisit(
            company_id=tenant_id,
            session_id=session_id,
            ip_address=fields.get("ip_address"),
            user_agent=fields.get("user_agent"),
            referrer=fields.get("referrer"),
            landing_page=fields.get("landing_page"),
        ))

    async def add_product_visit(
        self, tenant_id: str, product_id: str, session_id: str, source: Optional[str] = None
    ) -> str:
        return await self._insert(ProductVisit(
            company_id=tenant_id,
            product_id=product_id,
            session_id=session_id,
            source=source,
        ))

    async def add_conversion_event(self, tenant_id: str, session_id: str, event_type: str, **fields: Any) -> str:
        return await self._insert(ConversionEvent(
            company_id=tenant_id,
            session_id=session_id,
            event_type=event_type,
            product_id=fields.get("product_id"),
            order_id=fields.get("order_id"),
            value=fields.get("value"),
            event_metadata=fields.get("metadata"),
        ))
