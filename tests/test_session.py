import asyncio

import pytest

from checkout import CheckoutState, EmptyCartError
from schemas import CategoryFilter
from session import OutOfStockError, SessionRegistry, StorefrontSession
from tests.conftest import make_product


async def test_products_loaded_once_and_filtered(store):
    store.products = [
        make_product("w1", category="women", popularity_score=5),
        make_product("m1", category="men", popularity_score=9),
    ]
    session = StorefrontSession(store)

    assert [p.id for p in await session.products()] == ["m1", "w1"]
    assert [p.id for p in await session.products(CategoryFilter.women)] == ["w1"]
    assert [p.id for p in await session.products()] == ["w1"]
    assert store.fetch_calls == 1


def test_out_of_stock_product_cannot_be_added(store):
    session = StorefrontSession(store)
    with pytest.raises(OutOfStockError):
        session.add_to_cart(make_product("p1", in_stock=False))
    assert session.cart.is_empty


def test_checkout_needs_items(store):
    session = StorefrontSession(store)
    with pytest.raises(EmptyCartError):
        session.open_checkout()


async def test_successful_checkout_clears_cart_and_dismisses(store, draft, monkeypatch):
    monkeypatch.setattr("session.settings.CHECKOUT_DISMISS_DELAY", 0.0)
    session = StorefrontSession(store)
    session.add_to_cart(make_product("p1", price=700))
    wf = session.open_checkout()
    assert session.open_checkout() is wf

    assert await wf.submit(draft, session.cart) is CheckoutState.succeeded
    assert session.cart.is_empty

    await asyncio.sleep(0.01)
    assert session.checkout is None


async def test_reopening_after_success_starts_new_flow(store, draft, monkeypatch):
    monkeypatch.setattr("session.settings.CHECKOUT_DISMISS_DELAY", 60.0)
    session = StorefrontSession(store)
    session.add_to_cart(make_product("p1"))
    first = session.open_checkout()
    await first.submit(draft, session.cart)

    session.add_to_cart(make_product("p2"))
    second = session.open_checkout()
    assert second is not first
    assert first.closed
    assert await second.submit(draft, session.cart) is CheckoutState.succeeded
    assert store.create_order_calls == 2
    second.close()


def test_registry_lifecycle(store):
    registry = SessionRegistry()
    session = registry.create(store)
    assert registry.get(session.id) is session
    assert len(registry) == 1
    assert registry.end(session.id)
    assert not registry.end(session.id)
    assert registry.get(session.id) is None


async def test_concurrent_first_loads_fetch_once(store):
    store.products = [make_product("p1")]
    store.fetch_gate = asyncio.Event()
    session = StorefrontSession(store)

    first = asyncio.create_task(session.products())
    second = asyncio.create_task(session.products())
    await asyncio.sleep(0)
    store.fetch_gate.set()

    assert [p.id for p in await first] == ["p1"]
    assert [p.id for p in await second] == ["p1"]
    assert store.fetch_calls == 1


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_idle_sessions_expire(store):
    clock = FakeClock()
    registry = SessionRegistry(ttl=60, clock=clock)
    idle = registry.create(store)
    active = registry.create(store)

    clock.now += 45
    assert registry.get(active.id) is active
    clock.now += 30

    assert registry.get(idle.id) is None
    assert registry.get(active.id) is active
    assert len(registry) == 1


async def test_session_with_submission_in_flight_is_kept(store, draft):
    clock = FakeClock()
    registry = SessionRegistry(ttl=60, clock=clock)
    session = registry.create(store)
    session.add_to_cart(make_product("p1"))
    store.order_gate = asyncio.Event()
    task = asyncio.create_task(session.open_checkout().submit(draft, session.cart))
    await asyncio.sleep(0)

    clock.now += 120
    assert registry.purge_expired() == 0
    assert registry.get(session.id) is session

    store.order_gate.set()
    assert await task is CheckoutState.succeeded
    session.close_checkout()
