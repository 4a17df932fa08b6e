"""
Guest cart item payload.

Guest carts store their items as a JSON text column. Two layouts are read:

- version 1 (legacy): a bare list of item objects
- versioned: ``{"version": 1, "items": [...]}``

Each item is ``{productName, category?, price, quantity}``. A cart whose
payload cannot be parsed yields ``ok=False``; callers count it and carry on.
"""

from dataclasses import dataclass, field
import json
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.analytics.metrics import UNKNOWN_PRODUCT

CART_ITEMS_VERSION = 1


class CartItem(BaseModel):
    """One cart line"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("productName", "product_name", "name"),
    )
    category: Optional[str] = None
    price: float = 0.0
    quantity: int = 0

    @property
    def display_name(self) -> str:
        return self.product_name or UNKNOWN_PRODUCT

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


_ITEMS = TypeAdapter(List[CartItem])


@dataclass
class CartItemsParseResult:
    items: List[CartItem] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict):
        version = payload.get("version", CART_ITEMS_VERSION)
        if version != CART_ITEMS_VERSION:
            raise ValueError(f"unsupported cart items version: {version}")
        return payload.get("items", [])
    return payload


def parse_cart_items(raw: Optional[str]) -> CartItemsParseResult:
    """Parse a stored cart payload; never raises."""
    if raw is None or not str(raw).strip():
        return CartItemsParseResult()

    try:
        payload = _unwrap(json.loads(raw))
        if payload is None:
            return CartItemsParseResult()
        return CartItemsParseResult(items=_ITEMS.validate_python(payload))
    except (ValueError, TypeError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        return CartItemsParseResult(ok=False, error=f"{type(e).__name__}: {e}")

