from __future__ import annotations
import asyncio
import logging
import time
import uuid
from typing import Callable, Optional

from cart import Cart, CartLineItem
from catalog import Catalog
from checkout import CheckoutState, CheckoutWorkflow, EmptyCartError
from database import RemoteStore, settings
from schemas import CategoryFilter, Product

logger = logging.getLogger(__name__)


class OutOfStockError(Exception):
    pass


class StorefrontSession:
    """
    State owned by one shopper tab: catalog, selected category, cart and the
    open checkout flow. Created at session start and dropped at session end.
    """

    def __init__(self, store: RemoteStore, session_id: Optional[str] = None) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.store = store
        self.catalog = Catalog()
        self.cart = Cart()
        self.category = CategoryFilter.all
        self.checkout: Optional[CheckoutWorkflow] = None
        self._catalog_lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self.checkout is not None and self.checkout.busy

    async def products(self, category: Optional[CategoryFilter] = None) -> list[Product]:
        async with self._catalog_lock:
            if not self.catalog.loaded:
                await self.catalog.load(self.store)
        if category is not None:
            self.category = CategoryFilter(category)
        return self.catalog.visible(self.category)

    def add_to_cart(self, product: Product) -> CartLineItem:
        if not product.in_stock:
            raise OutOfStockError(f"{product.name} is out of stock")
        return self.cart.add(product)

    def open_checkout(self) -> CheckoutWorkflow:
        current = self.checkout
        if current is not None:
            if current.busy:
                return current
            if not current.closed and current.state is not CheckoutState.succeeded:
                return current
            current.close()
        if self.cart.is_empty:
            raise EmptyCartError("Cart is empty")
        workflow = CheckoutWorkflow(
            self.store,
            on_success=self.cart.clear,
            dismiss_delay=settings.CHECKOUT_DISMISS_DELAY,
            currency=settings.CURRENCY,
        )
        workflow.on_close = lambda: self._checkout_dismissed(workflow)
        self.checkout = workflow
        return workflow

    def close_checkout(self) -> None:
        if self.checkout is not None:
            self.checkout.close()
            if not self.checkout.busy:
                self.checkout = None

    def _checkout_dismissed(self, workflow: CheckoutWorkflow) -> None:
        if self.checkout is workflow:
            self.checkout = None


class SessionRegistry:
    """
    Live sessions by id. A session not touched for ``ttl`` seconds is ended
    on the next registry access, unless an order submission is still running.
    """

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = settings.SESSION_TTL if ttl is None else ttl
        self._clock = clock
        self._sessions: dict[str, StorefrontSession] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, store: RemoteStore) -> StorefrontSession:
        self.purge_expired()
        session = StorefrontSession(store)
        self._sessions[session.id] = session
        self._last_seen[session.id] = self._clock()
        logger.info("Session started", extra={"session_id": session.id})
        return session

    def get(self, session_id: str) -> Optional[StorefrontSession]:
        self.purge_expired()
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def end(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is None:
            return False
        session.close_checkout()
        logger.info("Session ended", extra={"session_id": session_id})
        return True

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff and not self._sessions[sid].busy]
        for sid in expired:
            self.end(sid)
        return len(expired)
