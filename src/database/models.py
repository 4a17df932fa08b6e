"""
Database Models - Storefront and Order Store

Tenant-partitioned relational schema read by the analytics engine:

Tracking tables (insert-only):
- StoreVisit: one row per storefront session entry
- ProductVisit: product page views
- ConversionEvent: add_to_cart / checkout / purchase funnel events

Business tables (owned by the CRUD side of the platform):
- Company, User, Category, Product, Customer
- Order, OrderStatusHistory, OrderItem
- Coupon, CouponUsage
- GuestCart, GuestOrder

Every row carrying ``company_id`` belongs to exactly one tenant.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order lifecycle status"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"


class CouponType(str, Enum):
    """Coupon discount type"""
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


# =============================================================================
# TENANT AND CATALOG
# =============================================================================

class Company(Base):
    """Tenant account"""
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class User(Base):
    """Staff member of a tenant; referenced by orders they create or confirm"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200))
    role: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("ix_users_company", "company_id"),
    )


class Category(Base):
    """Product category"""
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class Product(Base):
    """
    Product catalog entry.

    ``cost_price`` is optional; profit computations estimate it from the
    selling price when absent.
    """
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    stock: Mapped[int] = mapped_column(Integer, default=0)
    category_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("categories.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    category: Mapped[Optional["Category"]] = relationship()

    __table_args__ = (
        Index("ix_products_company_active", "company_id", "is_active"),
    )


class Customer(Base):
    """Storefront customer"""
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    governorate: Mapped[Optional[str]] = mapped_column(String(100))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    orders: Mapped[List["Order"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index("ix_customers_company", "company_id"),
    )


# =============================================================================
# TRACKING EVENTS
# =============================================================================

class StoreVisit(Base):
    """Storefront session entry. Immutable once written."""
    __tablename__ = "store_visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    referrer: Mapped[Optional[str]] = mapped_column(String(2000))
    landing_page: Mapped[Optional[str]] = mapped_column(String(2000))
    visited_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("ix_store_visits_company_time", "company_id", "visited_at"),
        Index("ix_store_visits_session", "session_id"),
    )


class ProductVisit(Base):
    """Product page view"""
    __tablename__ = "product_visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(100))
    visited_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("ix_product_visits_company_time", "company_id", "visited_at"),
        Index("ix_product_visits_product", "product_id"),
    )


class ConversionEvent(Base):
    """
    Funnel event (add_to_cart, checkout, purchase, ...).

    ``order_id`` is only stored when it resolves to an order of the same
    tenant; ``product_id`` is informational and not enforced.
    """
    __tablename__ = "conversion_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(36))
    order_id: Mapped[Optional[str]] = mapped_column(String(36))
    value: Mapped[Optional[float]] = mapped_column(Float)
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("ix_conversion_events_company_type_time", "company_id", "event_type", "created_at"),
        Index("ix_conversion_events_product", "product_id"),
    )


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Customer order.

    ``status`` mirrors the latest ``status_history`` entry; use
    :meth:`record_status` to move an order forward so both stay in step.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    customer_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("customers.id"))
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status"), default=OrderStatus.PENDING
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    governorate: Mapped[Optional[str]] = mapped_column(String(100))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    created_by: Mapped[Optional[str]] = mapped_column(String(36))
    confirmed_by: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    customer: Mapped[Optional["Customer"]] = relationship(back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        back_populates="order", order_by="OrderStatusHistory.created_at"
    )

    __table_args__ = (
        Index("ix_orders_company_time", "company_id", "created_at"),
        Index("ix_orders_company_status", "company_id", "status"),
        Index("ix_orders_customer", "customer_id"),
    )

    def record_status(self, status: OrderStatus, at: Optional[datetime] = None) -> "OrderStatusHistory":
        """Append a history entry and make it the current status."""
        entry = OrderStatusHistory(status=status.value, created_at=at or datetime.now())
        self.status_history.append(entry)
        self.status = status
        return entry


class OrderStatusHistory(Base):
    """Append-only status transition log"""
    __tablename__ = "order_status_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    order: Mapped["Order"] = relationship(back_populates="status_history")

    __table_args__ = (
        Index("ix_order_status_history_order", "order_id"),
    )


class OrderItem(Base):
    """Order line item; product fields are denormalised at order time"""
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("products.id"))
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_color: Mapped[Optional[str]] = mapped_column(String(50))
    product_size: Mapped[Optional[str]] = mapped_column(String(50))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped[Optional["Product"]] = relationship()

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_product", "product_id"),
    )


# =============================================================================
# PROMOTIONS AND GUEST CARTS
# =============================================================================

class Coupon(Base):
    """Discount coupon"""
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(200))
    type: Mapped[CouponType] = mapped_column(SQLEnum(CouponType, name="coupon_type"), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime)
    valid_to: Mapped[Optional[datetime]] = mapped_column(DateTime)

    usages: Mapped[List["CouponUsage"]] = relationship(back_populates="coupon")


class CouponUsage(Base):
    """One row per coupon redemption"""
    __tablename__ = "coupon_usages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    coupon_id: Mapped[str] = mapped_column(String(36), ForeignKey("coupons.id"), nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    coupon: Mapped["Coupon"] = relationship(back_populates="usages")


class GuestCart(Base):
    """
    Anonymous storefront cart.

    ``items`` holds a JSON-encoded list of
    ``{productName, category?, price, quantity}`` objects.
    """
    __tablename__ = "guest_carts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    cart_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    items: Mapped[Optional[str]] = mapped_column(Text)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_guest_carts_company_updated", "company_id", "updated_at"),
    )


class GuestOrder(Base):
    """Marks a guest cart as converted"""
    __tablename__ = "guest_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id"), nullable=False)
    guest_cart_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("ix_guest_orders_cart", "guest_cart_id"),
    )
