"""
Engine-side Records

Immutable projections of store rows. The store reader builds these and the
analyzers fold over them, so no analyzer ever holds an ORM session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ProductRecord:
    id: str
    name: str
    price: float
    cost_price: Optional[float] = None
    stock: int = 0
    is_active: bool = True
    category: Optional[str] = None


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    name: str
    phone: Optional[str] = None
    governorate: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    email: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class OrderItemRecord:
    """Line item; ``product`` is the current catalog row when still linked"""
    id: str
    order_id: str
    product_name: str
    price: float
    quantity: int
    product_id: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    product: Optional[ProductRecord] = None

    @property
    def revenue(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class StatusChange:
    status: str
    at: datetime


@dataclass(frozen=True)
class OrderRecord:
    id: str
    status: str
    total: float
    created_at: datetime
    shipping: float = 0.0
    payment_method: Optional[str] = None
    governorate: Optional[str] = None
    city: Optional[str] = None
    customer_id: Optional[str] = None
    created_by: Optional[str] = None
    confirmed_by: Optional[str] = None
    customer: Optional[CustomerRecord] = None
    items: Tuple[OrderItemRecord, ...] = ()
    history: Tuple[StatusChange, ...] = ()

    def first_transition(self, status: str) -> Optional[datetime]:
        """Timestamp of the first history entry with ``status`` (case-insensitive)."""
        wanted = status.lower()
        for change in self.history:
            if change.status.lower() == wanted:
                return change.at
        return None


@dataclass(frozen=True)
class CouponRecord:
    id: str
    code: str
    type: str
    value: float
    name: Optional[str] = None
    usage_limit: Optional[int] = None
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    uses: int = 0


@dataclass(frozen=True)
class GuestCartRecord:
    cart_id: str
    items_raw: Optional[str]
    total: float
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class EventCounts:
    """Tracking counters for one tenant and window"""
    total_visits: int = 0
    unique_visitors: int = 0
    product_views: int = 0
    add_to_carts: int = 0
    checkouts: int = 0
    purchases: int = 0
    revenue: float = 0.0


@dataclass(frozen=True)
class ProductEventCounts:
    """Per-product tracking counters"""
    product_id: str
    views: int = 0
    add_to_carts: int = 0
    purchases: int = 0
    revenue: float = 0.0


@dataclass(frozen=True)
class TrackedEvent:
    """Raw tracking row used for per-day series"""
    kind: str
    at: datetime
    session_id: Optional[str] = None
    value: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)
