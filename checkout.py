"""
Order submission workflow.

States: IDLE -> SUBMITTING -> SUCCEEDED | FAILED. FAILED accepts another
submit; SUCCEEDED is final for the workflow instance.

An order is written in two steps: the order header first, then its line items
in one batch. The store offers no transaction across the two, so a failed line
item write is followed by a best-effort delete of the header.
"""
from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from cart import Cart
from database import RemoteStore
from schemas import OrderDraft, OrderHeader, OrderLineItem

logger = logging.getLogger(__name__)

ORDER_ERROR_MESSAGE = "Помилка при створенні замовлення. Спробуйте ще раз."


class EmptyCartError(Exception):
    pass


class CheckoutState(str, Enum):
    idle = "idle"
    submitting = "submitting"
    succeeded = "succeeded"
    failed = "failed"


class CheckoutWorkflow:
    def __init__(
        self,
        store: RemoteStore,
        on_success: Callable[[], None],
        on_close: Optional[Callable[[], None]] = None,
        dismiss_delay: float = 2.0,
        currency: str = "UAH",
    ) -> None:
        self.store = store
        self.on_success = on_success
        self.on_close = on_close
        self.dismiss_delay = dismiss_delay
        self.currency = currency
        self.state = CheckoutState.idle
        self.error: Optional[str] = None
        self.order_id: Optional[str] = None
        self.closed = False
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None

    @property
    def busy(self) -> bool:
        return self.state is CheckoutState.submitting

    async def submit(self, draft: OrderDraft, cart: Cart) -> CheckoutState:
        if self.state in (CheckoutState.submitting, CheckoutState.succeeded):
            logger.info("Ignoring checkout submit while %s", self.state.value)
            return self.state
        if cart.is_empty:
            raise EmptyCartError("Cannot submit an order for an empty cart")

        # Flip before the first await so a double submit sees SUBMITTING.
        self.state = CheckoutState.submitting
        self.error = None
        try:
            return await self._place(draft, cart)
        finally:
            # Cancelled or raised before reaching a final state.
            if self.state is CheckoutState.submitting:
                self._fail()

    async def _place(self, draft: OrderDraft, cart: Cart) -> CheckoutState:
        header = OrderHeader.from_draft(draft, total_amount=cart.total(), currency=self.currency)
        lines = [(i.product.id, i.product.name, i.quantity, i.product.price) for i in cart]

        try:
            order_id = await self.store.create_order(header)
        except Exception:
            logger.exception("Order creation error")
            return self._fail()

        try:
            items = [
                OrderLineItem(
                    order_id=order_id,
                    product_id=product_id,
                    product_name=name,
                    quantity=quantity,
                    price_at_order=price,
                )
                for product_id, name, quantity, price in lines
            ]
            await self.store.create_order_line_items(items)
        except Exception:
            logger.exception("Order items creation error", extra={"order_id": order_id})
            await self._discard_order(order_id)
            return self._fail()

        self.order_id = order_id
        self.state = CheckoutState.succeeded
        logger.info("Order created", extra={"order_id": order_id, "total_amount": header.total_amount})
        self.on_success()
        self._schedule_dismiss()
        return self.state

    def close(self) -> None:
        """Dismiss the flow. An in-flight submission still runs to completion."""
        self.closed = True
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None

    def _fail(self) -> CheckoutState:
        self.state = CheckoutState.failed
        self.error = ORDER_ERROR_MESSAGE
        return self.state

    async def _discard_order(self, order_id: str) -> None:
        try:
            await self.store.delete_order(order_id)
        except Exception:
            logger.exception("Could not remove orphaned order", extra={"order_id": order_id})

    def _schedule_dismiss(self) -> None:
        if self.closed:
            return
        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(self.dismiss_delay, self._dismiss)

    def _dismiss(self) -> None:
        self._dismiss_handle = None
        if self.closed:
            return
        self.closed = True
        if self.on_close is not None:
            self.on_close()
