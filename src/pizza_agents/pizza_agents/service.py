"""Resilient facade over the fulfillment gateway.

Every operation returns a ``ServiceResult``. When the gateway answers, the
result is ``authoritative``; when it fails in any way the failure is logged,
swallowed, and replaced by synthesized data of the same shape flagged
``degraded`` with a short warning the agent may pass on to the customer.

Locations and menus are cached per facade instance (one per conversation) and
never invalidated, so a given store id reaches the gateway at most once.
"""

import uuid
from typing import TypeVar

from loguru import logger

from .address import parse_address
from .config import Settings, get_settings
from .enums import MenuCategoryName, ResultStatus
from .exceptions import GatewayError
from .gateway import CUSTOMIZATION_CODES, FulfillmentGateway
from .models import (
    Customer,
    LineItem,
    Location,
    LookupFailure,
    Menu,
    MenuCategory,
    MenuItem,
    OrderCreated,
    OrderDraft,
    PaymentDetails,
    Placement,
    PriceBreakdown,
    ServiceResult,
    ValidationOutcome,
    round_money,
)

T = TypeVar("T")

DEFAULT_DELIVERY_TIME = "30-45 minutes"

# ---------------------------------------------------------------------------
# Fallback data
# ---------------------------------------------------------------------------

FALLBACK_STORES: tuple[Location, ...] = (
    Location(
        store_id="store1",
        name="Pizza Paradise",
        address="123 Main St, Anytown, USA",
        phone="(555) 123-4567",
        distance="0.5 miles",
        hours="10:00 AM - 10:00 PM",
        estimated_delivery_time="20-30 minutes",
    ),
    Location(
        store_id="store2",
        name="Slice Haven",
        address="456 Oak Ave, Anytown, USA",
        phone="(555) 234-5678",
        distance="1.2 miles",
        hours="11:00 AM - 11:00 PM",
        estimated_delivery_time="25-35 minutes",
    ),
    Location(
        store_id="store3",
        name="Dough Delights",
        address="789 Pine Blvd, Anytown, USA",
        phone="(555) 345-6789",
        distance="1.8 miles",
        hours="10:30 AM - 10:30 PM",
        estimated_delivery_time="30-40 minutes",
    ),
)

FALLBACK_MENU_CATEGORIES: tuple[MenuCategory, ...] = (
    MenuCategory(
        name=MenuCategoryName.PIZZAS,
        items=(
            MenuItem(
                code="pizza1",
                name="Margherita",
                description="Classic pizza with tomato sauce, mozzarella, and basil",
                price=12.99,
                category=MenuCategoryName.PIZZAS,
                customizable=True,
                popular=True,
            ),
            MenuItem(
                code="pizza2",
                name="Pepperoni",
                description="Pizza with tomato sauce, mozzarella, and pepperoni",
                price=14.99,
                category=MenuCategoryName.PIZZAS,
                customizable=True,
                popular=True,
            ),
            MenuItem(
                code="pizza3",
                name="Vegetarian",
                description=(
                    "Pizza with tomato sauce, mozzarella, bell peppers, onions, "
                    "mushrooms, and olives"
                ),
                price=15.99,
                category=MenuCategoryName.PIZZAS,
                customizable=True,
                popular=False,
            ),
        ),
    ),
    MenuCategory(
        name=MenuCategoryName.SIDES,
        items=(
            MenuItem(
                code="side1",
                name="Garlic Bread",
                description="Freshly baked bread with garlic butter",
                price=5.99,
                category=MenuCategoryName.SIDES,
                customizable=False,
                popular=True,
            ),
            MenuItem(
                code="side2",
                name="Chicken Wings",
                description="Spicy chicken wings with blue cheese dip",
                price=8.99,
                category=MenuCategoryName.SIDES,
                customizable=False,
                popular=True,
            ),
        ),
    ),
    MenuCategory(
        name=MenuCategoryName.DRINKS,
        items=(
            MenuItem(
                code="drink1",
                name="Soda",
                description="Choice of Coke, Sprite, or Fanta",
                price=2.99,
                category=MenuCategoryName.DRINKS,
                customizable=False,
                popular=True,
            ),
            MenuItem(
                code="drink2",
                name="Bottled Water",
                description="500ml bottled water",
                price=1.99,
                category=MenuCategoryName.DRINKS,
                customizable=False,
                popular=False,
            ),
        ),
    ),
)


def new_order_id() -> str:
    return f"ORD{uuid.uuid4().hex[:8].upper()}"


def new_payment_id() -> str:
    return f"PAY{uuid.uuid4().hex[:8].upper()}"


def fallback_menu(store_id: str) -> Menu:
    return Menu(
        store_id=store_id,
        categories=FALLBACK_MENU_CATEGORIES,
        customization_options=tuple(CUSTOMIZATION_CODES),
    )


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class FulfillmentService:
    """Caching, never-failing front for a FulfillmentGateway."""

    def __init__(
        self, gateway: FulfillmentGateway, settings: Settings | None = None
    ) -> None:
        settings = settings or get_settings()
        self._gateway = gateway
        self._tax_rate = settings.tax_rate
        self._delivery_fee = settings.delivery_fee
        self._default_subtotal = settings.default_estimate_subtotal
        self._default_region = settings.default_region

        self._searches: dict[str, ServiceResult[list[Location]]] = {}
        self._locations: dict[str, ServiceResult[Location]] = {}
        self._menus: dict[str, ServiceResult[Menu]] = {}
        self._seen_locations: dict[str, Location] = {}
        self._nearest_id: str | None = None

    # --- cache views ------------------------------------------------------

    @property
    def nearest_location_id(self) -> str | None:
        """Closest store from the most recent nearby search, if any."""
        return self._nearest_id

    def cached_menus(self) -> list[Menu]:
        return [result.data for result in self._menus.values()]

    def find_cached_item(self, code: str) -> MenuItem | None:
        """Look a product code up in every menu fetched so far."""
        for menu in self.cached_menus():
            item = menu.find_item(code)
            if item is not None:
                return item
        return None

    # --- pricing ----------------------------------------------------------

    def estimate_price(self, items: list[LineItem] | tuple[LineItem, ...]) -> PriceBreakdown:
        """Subtotal of the lines (or the default when empty), 10% tax, flat fee."""
        subtotal = round_money(sum(item.total for item in items))
        if not items:
            subtotal = self._default_subtotal
        return PriceBreakdown.estimate(subtotal, self._tax_rate, self._delivery_fee)

    # --- helpers ----------------------------------------------------------

    def _degraded(
        self, action: str, exc: Exception, data: T, warning: str
    ) -> ServiceResult[T]:
        if isinstance(exc, GatewayError):
            logger.warning("Gateway failure in {}: {}, using fallback", action, exc)
        else:
            logger.opt(exception=exc).error(
                "Unexpected error in {}, using fallback", action
            )
        return ServiceResult(data=data, status=ResultStatus.DEGRADED, warning=warning)

    # --- operations -------------------------------------------------------

    async def find_nearby_locations(self, address: str) -> ServiceResult[list[Location]]:
        structured = parse_address(address, self._default_region)
        key = structured.one_line().lower()
        if key in self._searches:
            logger.debug("Nearby search cache hit: {}", key)
            return self._searches[key]

        try:
            stores = await self._gateway.find_nearby_stores(structured)
            result = ServiceResult[list[Location]](data=stores)
        except Exception as exc:
            result = self._degraded(
                "find_nearby_locations",
                exc,
                list(FALLBACK_STORES),
                "Live store search is unavailable; these stores come from a backup list.",
            )

        self._searches[key] = result
        for location in result.data:
            self._seen_locations.setdefault(location.store_id, location)
        if result.data:
            self._nearest_id = result.data[0].store_id
        logger.info(
            "Nearby search for {!r}: {} stores ({})",
            structured.one_line(),
            len(result.data),
            result.status,
        )
        return result

    async def get_location_details(
        self, store_id: str
    ) -> ServiceResult[Location] | LookupFailure:
        """Store details, or LocationNotFound when the platform fails and the id
        was never seen in a search or the backup list."""
        if store_id in self._locations:
            logger.debug("Location cache hit: {}", store_id)
            return self._locations[store_id]

        try:
            location = await self._gateway.get_store_details(store_id)
            result = ServiceResult[Location](data=location)
        except Exception as exc:
            known = self._seen_locations.get(store_id) or next(
                (store for store in FALLBACK_STORES if store.store_id == store_id),
                None,
            )
            if known is None:
                logger.warning("Unknown store {} and no live details: {}", store_id, exc)
                return LookupFailure(
                    error="LocationNotFound",
                    message=f"No store with id '{store_id}' could be found.",
                )
            result = self._degraded(
                "get_location_details",
                exc,
                known,
                "Store details could not be confirmed with the store.",
            )

        self._locations[store_id] = result
        return result

    async def get_menu(self, store_id: str) -> ServiceResult[Menu]:
        if store_id in self._menus:
            logger.debug("Menu cache hit: {}", store_id)
            return self._menus[store_id]

        try:
            menu = await self._gateway.get_menu(store_id)
            result = ServiceResult[Menu](data=menu)
        except Exception as exc:
            result = self._degraded(
                "get_menu",
                exc,
                fallback_menu(store_id),
                "The store's live menu is unavailable; showing our standard menu.",
            )

        self._menus[store_id] = result
        logger.info(
            "Menu for {}: {} items ({})", store_id, len(result.data.items), result.status
        )
        return result

    async def create_order(
        self, customer: Customer, store_id: str | None
    ) -> ServiceResult[OrderCreated]:
        fallback = OrderCreated(order_id=new_order_id())
        if store_id is None:
            return self._degraded(
                "create_order",
                GatewayError("createOrder", "no store selected"),
                fallback,
                "No store was selected, so the order was recorded locally.",
            )
        try:
            address = parse_address(customer.address, self._default_region)
            created = await self._gateway.create_order(customer, address, store_id)
            return ServiceResult[OrderCreated](data=created)
        except Exception as exc:
            return self._degraded(
                "create_order",
                exc,
                fallback,
                "The store could not register the order; it was recorded locally.",
            )

    async def validate_order(self, draft: OrderDraft) -> ServiceResult[ValidationOutcome]:
        try:
            address = parse_address(draft.customer.address, self._default_region)
            outcome = await self._gateway.validate_order(draft, address)
            return ServiceResult[ValidationOutcome](data=outcome)
        except Exception as exc:
            return self._degraded(
                "validate_order",
                exc,
                ValidationOutcome(
                    valid=bool(draft.items),
                    details={"validated_by": "local", "reason": str(exc)},
                ),
                "The store could not validate the order; it was checked locally.",
            )

    async def price_order(self, draft: OrderDraft) -> ServiceResult[PriceBreakdown]:
        try:
            address = parse_address(draft.customer.address, self._default_region)
            price = await self._gateway.price_order(draft, address)
            return ServiceResult[PriceBreakdown](data=price)
        except Exception as exc:
            return self._degraded(
                "price_order",
                exc,
                self.estimate_price(draft.items),
                "Prices are estimated; the store's final total may differ.",
            )

    async def place_order(
        self, draft: OrderDraft, payment: PaymentDetails
    ) -> ServiceResult[Placement]:
        try:
            address = parse_address(draft.customer.address, self._default_region)
            placement = await self._gateway.place_order(draft, address, payment)
            return ServiceResult[Placement](data=placement)
        except Exception as exc:
            return self._degraded(
                "place_order",
                exc,
                Placement(
                    order_id=new_order_id(),
                    estimated_delivery_time=DEFAULT_DELIVERY_TIME,
                ),
                "The order could not be sent to the store automatically.",
            )
