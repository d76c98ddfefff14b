import asyncio
from typing import Optional

import pytest

from database import RemoteQueryError, RemoteWriteError
from schemas import OrderDraft, OrderHeader, OrderLineItem, Product


def make_product(pid: str, price: float = 100.0, category: str = "women", **kw) -> Product:
    data = {
        "id": pid,
        "brand": "Maison Test",
        "name": f"Perfume {pid}",
        "category": category,
        "price": price,
        "volume": 50,
        "in_stock": True,
        "popularity_score": 0,
    }
    data.update(kw)
    return Product(**data)


class FakeStore:
    """In-memory remote store that records every call."""

    def __init__(self, products=None):
        self.products = list(products or [])
        self.orders: dict[str, OrderHeader] = {}
        self.order_items: list[OrderLineItem] = []
        self.deleted: list[str] = []
        self.fetch_calls = 0
        self.create_order_calls = 0
        self.fail_fetch = False
        self.fail_order = False
        self.fail_items = False
        self.fail_delete = False
        self.order_exc: Optional[Exception] = None
        self.items_exc: Optional[Exception] = None
        self.order_gate: Optional[asyncio.Event] = None
        self.fetch_gate: Optional[asyncio.Event] = None

    async def fetch_products(self):
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fail_fetch:
            raise RemoteQueryError("connection refused")
        return sorted(self.products, key=lambda p: p.popularity_score, reverse=True)

    async def create_order(self, header):
        self.create_order_calls += 1
        if self.order_gate is not None:
            await self.order_gate.wait()
        if self.order_exc is not None:
            raise self.order_exc
        if self.fail_order:
            raise RemoteWriteError("insert failed")
        order_id = f"order-{self.create_order_calls}"
        self.orders[order_id] = header
        return order_id

    async def create_order_line_items(self, items):
        if self.items_exc is not None:
            raise self.items_exc
        if self.fail_items:
            raise RemoteWriteError("batch insert failed")
        self.order_items.extend(items)

    async def delete_order(self, order_id):
        if self.fail_delete:
            raise RemoteWriteError("delete failed")
        self.deleted.append(order_id)
        self.orders.pop(order_id, None)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def draft():
    return OrderDraft(
        customer_name="Іван Петренко",
        customer_phone="+380 50 123 45 67",
        delivery_address="Київ, відділення 12",
    )
