from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from utils.money import round2


@dataclass(frozen=True)
class CartItem:
    product_id: int
    price: Decimal
    name: str = ""
    variant_id: Optional[int] = None


class Cart:
    """
    A shopper's in-memory cart.

    Entries are kept in insertion order, one entry per unit, so adding the
    same product twice yields two entries. Prices here are for display only;
    orders are always priced from the catalog.
    """

    def __init__(self):
        self._items: list[CartItem] = []

    def add(self, item: CartItem, quantity: int = 1) -> None:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        self._items.extend([item] * quantity)

    def remove(self, index: int) -> CartItem:
        return self._items.pop(index)

    def list(self) -> list[CartItem]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def subtotal(self) -> Decimal:
        return round2(sum((item.price for item in self._items), Decimal("0")))

    def order_lines(self) -> list[dict]:
        """Collapse unit entries into order lines, in first-seen order."""
        quantities: dict[tuple[int, Optional[int]], int] = {}
        for item in self._items:
            key = (item.product_id, item.variant_id)
            quantities[key] = quantities.get(key, 0) + 1

        return [
            {"product_id": product_id, "variant_id": variant_id, "quantity": quantity}
            for (product_id, variant_id), quantity in quantities.items()
        ]

    def __len__(self) -> int:
        return len(self._items)
