"""
In-memory shopping cart for a single storefront session.

Line items are keyed by product id and keep insertion order. Each line item
holds a copy of the product taken when it was first added, so later catalog
changes (price included) do not leak into the cart.
"""
from __future__ import annotations
import logging
from typing import Iterator, Optional
from pydantic import BaseModel, Field

from schemas import Product

logger = logging.getLogger(__name__)


class CartLineItem(BaseModel):
    product: Product
    quantity: int = Field(ge=1)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class Cart:
    def __init__(self) -> None:
        self._items: list[CartLineItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartLineItem]:
        return iter(tuple(self._items))

    @property
    def items(self) -> tuple[CartLineItem, ...]:
        return tuple(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get(self, product_id: str) -> Optional[CartLineItem]:
        for item in self._items:
            if item.product.id == product_id:
                return item
        return None

    def add(self, product: Product) -> CartLineItem:
        """Add one unit of ``product``; an existing line just gets quantity + 1."""
        existing = self.get(product.id)
        if existing is not None:
            existing.quantity += 1
            return existing
        item = CartLineItem(product=product.model_copy(deep=True), quantity=1)
        self._items.append(item)
        return item

    def set_quantity(self, product_id: str, quantity: int) -> None:
        """
        Overwrite the quantity of an existing line in place.

        Zero removes the line. Negative values are clamped to zero, so they
        remove the line as well. Unknown product ids are ignored.
        """
        item = self.get(product_id)
        if item is None:
            return
        if quantity < 0:
            logger.warning(
                "Negative cart quantity clamped to zero",
                extra={"product_id": product_id, "quantity": quantity},
            )
            quantity = 0
        if quantity == 0:
            self.remove(product_id)
            return
        item.quantity = quantity

    def remove(self, product_id: str) -> None:
        self._items = [i for i in self._items if i.product.id != product_id]

    def clear(self) -> None:
        self._items = []

    def total(self) -> float:
        return sum((i.line_total for i in self._items), 0.0)

    def item_count(self) -> int:
        return sum(i.quantity for i in self._items)
