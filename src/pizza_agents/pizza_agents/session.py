"""Per-conversation state: the shared order, the facade caches, the payment
ledger and which agent is currently active.

A process serving several conversations keeps one ``Session`` per
conversation id in a ``SessionStore``; nothing here is module-global.
"""

from collections.abc import Callable
from datetime import datetime, timezone

from loguru import logger

from .enums import AgentName, PaymentMethod, ResultStatus
from .gateway import option_codes
from .models import (
    Customer,
    FinalizedOrder,
    LineItem,
    Location,
    LookupFailure,
    OrderDraft,
    OrderState,
    PaymentConfirmation,
    PaymentDetails,
    Placement,
    ServiceResult,
    round_money,
)
from .service import DEFAULT_DELIVERY_TIME, FulfillmentService, new_payment_id

INITIAL_AGENT = AgentName.STORE_FINDER


class Session:
    """Everything one conversation's agents share."""

    def __init__(
        self,
        session_id: str,
        service: FulfillmentService,
        initial_agent: AgentName | None = INITIAL_AGENT,
    ) -> None:
        self.session_id = session_id
        self.service = service
        self.order = OrderState()
        self.active_agent = initial_agent
        self.finalized: dict[str, FinalizedOrder] = {}
        self.payments: dict[str, PaymentConfirmation] = {}
        self._drafts: dict[str, OrderDraft] = {}
        self._log = logger.bind(session_id=session_id)

    # --- location ---------------------------------------------------------

    async def select_location(
        self, store_id: str
    ) -> ServiceResult[Location] | LookupFailure:
        result = await self.service.get_location_details(store_id)
        if isinstance(result, LookupFailure):
            self._log.info("Store {} not found; selection unchanged", store_id)
            return result
        self.order.location_id = result.data.store_id
        self._log.info("Selected store {}", self.order.location_id)
        return result

    # --- order building ---------------------------------------------------

    async def add_line_item(
        self, code: str, quantity: int = 1, customizations: list[str] | None = None
    ) -> LineItem | LookupFailure:
        """Resolve ``code`` against the cached menus and append a line.

        If no menu has been fetched yet, the selected store's menu (or the
        nearest store's from the last search) is loaded first. The order is
        left untouched when the code cannot be resolved.
        """
        store_id = self.order.location_id or self.service.nearest_location_id
        if not self.service.cached_menus() and store_id is not None:
            await self.service.get_menu(store_id)

        menu_item = self.service.find_cached_item(code)
        if menu_item is None:
            self._log.info("add_line_item: {} not on any cached menu", code)
            return LookupFailure(
                error="ItemNotFound",
                message=f"No menu item with code '{code}'.",
            )

        customizations = list(customizations or [])
        line = LineItem(
            code=menu_item.code,
            name=menu_item.name,
            unit_price=menu_item.price,
            quantity=quantity,
            customizations=tuple(customizations),
            options=option_codes(customizations),
        )
        if self.order.location_id is None:
            self.order.location_id = store_id
        self.order.append(line)
        self._log.info(
            "add_line_item: {}x {} ({}); order total {}",
            quantity,
            line.name,
            line.code,
            self.order.total,
        )
        return line

    def view_order(self) -> dict:
        return {
            "order_items": [item.model_dump(mode="json") for item in self.order.items],
            "order_total": self.order.total,
            "item_count": sum(item.quantity for item in self.order.items),
            "location_id": self.order.location_id,
        }

    async def finalize_order(
        self, customer: Customer, delivery_instructions: str = ""
    ) -> FinalizedOrder | LookupFailure:
        """Register, validate and price the order, then clear the line items.

        Gateway trouble only downgrades the snapshot's status; the order is
        finalized locally either way. The conversation's customer is recorded
        on the first finalization only; each snapshot keeps its own delivery
        address.
        """
        if not self.order.items:
            return LookupFailure(
                error="EmptyOrder",
                message="The order has no items yet; add at least one item first.",
            )

        store_id = self.order.location_id
        draft = OrderDraft(
            customer=customer, store_id=store_id, items=tuple(self.order.items)
        )
        created = await self.service.create_order(customer, store_id)
        validation = await self.service.validate_order(draft)
        pricing = await self.service.price_order(draft)

        results = (created, validation, pricing)
        degraded = any(result.degraded for result in results)
        snapshot = FinalizedOrder(
            order_id=created.data.order_id,
            store_id=store_id,
            items=list(draft.items),
            pricing=pricing.data,
            delivery_address=customer.address,
            delivery_instructions=delivery_instructions,
            estimated_delivery_time=DEFAULT_DELIVERY_TIME,
            validation=validation.data,
            status=ResultStatus.DEGRADED if degraded else ResultStatus.AUTHORITATIVE,
            warnings=[result.warning for result in results if result.warning],
        )

        if self.order.customer is None:
            self.order.customer = customer
        self.order.order_id = snapshot.order_id
        self.finalized[snapshot.order_id] = snapshot
        self._drafts[snapshot.order_id] = draft
        self.order.clear_items()
        self._log.info(
            "Finalized order {} total {} ({})",
            snapshot.order_id,
            snapshot.pricing.total,
            snapshot.status,
        )
        return snapshot

    def _latest_finalized(self) -> FinalizedOrder | None:
        if self.order.order_id is None:
            return None
        return self.finalized.get(self.order.order_id)

    def order_summary(self, order_id: str | None = None) -> dict | LookupFailure:
        """Summary of a finalized order, or of the order still being built."""
        if order_id:
            snapshot = self.finalized.get(order_id)
            if snapshot is None:
                return LookupFailure(
                    error="OrderNotFound", message=f"No order with id '{order_id}'."
                )
            return {"state": "finalized", **snapshot.model_dump(mode="json")}

        if self.order.items:
            pricing = self.service.estimate_price(self.order.items)
            return {
                "state": "in_progress",
                "order_id": None,
                "items": [item.model_dump(mode="json") for item in self.order.items],
                "pricing": pricing.model_dump(mode="json"),
                "status": ResultStatus.DEGRADED,
                "warnings": ["Prices are estimated until the order is finalized."],
            }

        snapshot = self._latest_finalized()
        if snapshot is None:
            return LookupFailure(
                error="OrderNotFound", message="There is no order in this conversation yet."
            )
        return {"state": "finalized", **snapshot.model_dump(mode="json")}

    # --- payment ----------------------------------------------------------

    async def record_payment(
        self,
        method: PaymentMethod,
        tip: float = 0.0,
        order_id: str | None = None,
        card_number: str | None = None,
        expiry_date: str | None = None,
        cvv: str | None = None,
        postal_code: str | None = None,
    ) -> PaymentConfirmation | LookupFailure:
        """Confirm a payment. Never blocks on, or fails because of, the gateway.

        Pays the named finalized order, else the latest finalized order, else
        an estimate of the order still being built. An unknown ``order_id`` is
        OrderNotFound; nothing to pay for at all is EmptyOrder.
        """
        if order_id and order_id not in self.finalized:
            return LookupFailure(
                error="OrderNotFound", message=f"No order with id '{order_id}'."
            )
        snapshot = (
            self.finalized[order_id] if order_id else self._latest_finalized()
        )
        warnings: list[str] = []
        if snapshot is not None:
            order_total = snapshot.pricing.total
            paid_order_id = snapshot.order_id
        elif self.order.items:
            order_total = self.service.estimate_price(self.order.items).total
            paid_order_id = None
            warnings.append("Amount is based on an estimate of the current order.")
        else:
            return LookupFailure(
                error="EmptyOrder",
                message="There is nothing to pay for yet; add items to the order first.",
            )

        tip = round_money(tip)
        amount = round_money(order_total + tip)
        payment_id = new_payment_id()

        placement: Placement | None = None
        draft = self._drafts.get(snapshot.order_id) if snapshot else None
        if draft is not None:
            placed = await self.service.place_order(
                draft,
                PaymentDetails(
                    amount=amount,
                    method=method,
                    card_number=card_number,
                    expiry_date=expiry_date,
                    cvv=cvv,
                    postal_code=postal_code,
                    tip_amount=tip,
                ),
            )
            placement = placed.data
            if placed.warning:
                warnings.append(placed.warning)

        confirmation = PaymentConfirmation(
            payment_id=payment_id,
            order_id=paid_order_id,
            payment_method=method,
            amount=amount,
            tip=tip,
            order_total=order_total,
            timestamp=datetime.now(timezone.utc),
            receipt_url=f"https://example.com/receipts/{payment_id}",
            estimated_delivery_time=(
                placement.estimated_delivery_time if placement else DEFAULT_DELIVERY_TIME
            ),
            placement=placement,
            warnings=warnings,
        )
        self.payments[payment_id] = confirmation
        self._log.info(
            "Recorded payment {} for order {}: {} via {}",
            payment_id,
            paid_order_id,
            amount,
            method,
        )
        return confirmation

    def payment_confirmation(self, payment_id: str) -> PaymentConfirmation | LookupFailure:
        confirmation = self.payments.get(payment_id)
        if confirmation is None:
            return LookupFailure(
                error="PaymentNotFound", message=f"No payment with id '{payment_id}'."
            )
        return confirmation


class SessionStore:
    """Sessions keyed by conversation id, created on first use."""

    def __init__(
        self,
        service_factory: Callable[[], FulfillmentService],
        initial_agent: AgentName = INITIAL_AGENT,
    ) -> None:
        self._service_factory = service_factory
        self._initial_agent = initial_agent
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id, self._service_factory(), self._initial_agent)
            self._sessions[session_id] = session
            logger.info("Created session {}", session_id)
        return session

    def drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
