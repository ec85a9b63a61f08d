"""Shared pytest fixtures for pizza_agents tests."""

from collections import Counter

import pytest

from pizza_agents.config import Settings
from pizza_agents.dispatch import Dispatcher
from pizza_agents.enums import MenuCategoryName
from pizza_agents.exceptions import GatewayError
from pizza_agents.models import (
    Address,
    Customer,
    Location,
    Menu,
    MenuCategory,
    MenuItem,
    OrderCreated,
    OrderDraft,
    PaymentDetails,
    Placement,
    PriceBreakdown,
    ValidationOutcome,
)
from pizza_agents.service import FulfillmentService
from pizza_agents.session import Session, SessionStore

STORES = [
    Location(
        store_id="7890",
        name="Domino's Pizza #7890",
        address="500 Main St, Monterey, CA 93940",
        phone="(831) 555-0100",
        distance="0.4 miles",
        estimated_delivery_time="25 minutes",
    ),
    Location(
        store_id="7891",
        name="Domino's Pizza #7891",
        address="1200 Del Monte Ave, Monterey, CA 93940",
        phone="(831) 555-0101",
        distance="1.6 miles",
    ),
]

MENU_ITEMS = {
    "pizza1": MenuItem(
        code="pizza1", name="Margherita", price=12.99, category=MenuCategoryName.PIZZAS
    ),
    "pizza2": MenuItem(
        code="pizza2", name="Pepperoni", price=14.99, category=MenuCategoryName.PIZZAS
    ),
    "side1": MenuItem(
        code="side1", name="Garlic Bread", price=5.99, category=MenuCategoryName.SIDES
    ),
}


class FakeGateway:
    """FulfillmentGateway double that counts calls and can simulate outages.

    ``fail`` holds the method names that should raise GatewayError; ``"*"``
    fails everything.
    """

    def __init__(self, fail: set[str] | None = None) -> None:
        self.calls: Counter[str] = Counter()
        self.fail = fail or set()
        self.addresses: list[Address] = []

    def _record(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.fail or "*" in self.fail:
            raise GatewayError(method, "simulated outage")

    async def find_nearby_stores(self, address: Address) -> list[Location]:
        self.addresses.append(address)
        self._record("find_nearby_stores")
        return list(STORES)

    async def get_store_details(self, store_id: str) -> Location:
        self._record("get_store_details")
        store = next((s for s in STORES if s.store_id == store_id), None)
        if store is None:
            raise GatewayError("get_store_details", f"unknown store {store_id}")
        return store.model_copy(update={"hours": "10:00 AM - 11:00 PM"})

    async def get_menu(self, store_id: str) -> Menu:
        self._record("get_menu")
        pizzas = tuple(i for i in MENU_ITEMS.values() if i.category == MenuCategoryName.PIZZAS)
        sides = tuple(i for i in MENU_ITEMS.values() if i.category == MenuCategoryName.SIDES)
        return Menu(
            store_id=store_id,
            categories=(
                MenuCategory(name=MenuCategoryName.PIZZAS, items=pizzas),
                MenuCategory(name=MenuCategoryName.SIDES, items=sides),
            ),
            customization_options=("Extra Cheese", "Thin Crust"),
        )

    async def create_order(
        self, customer: Customer, address: Address, store_id: str
    ) -> OrderCreated:
        self.addresses.append(address)
        self._record("create_order")
        return OrderCreated(order_id="GW-1001")

    async def validate_order(
        self, draft: OrderDraft, address: Address
    ) -> ValidationOutcome:
        self._record("validate_order")
        return ValidationOutcome(valid=True, details={"Status": 1})

    async def price_order(self, draft: OrderDraft, address: Address) -> PriceBreakdown:
        self._record("price_order")
        return PriceBreakdown(
            subtotal=draft.subtotal,
            tax=2.0,
            delivery_fee=2.5,
            total=round(draft.subtotal + 4.5, 2),
        )

    async def place_order(
        self, draft: OrderDraft, address: Address, payment: PaymentDetails
    ) -> Placement:
        self._record("place_order")
        return Placement(order_id="GW-1001", tracking_url="https://track.example/GW-1001")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mistral_api_key="test-key",
        langfuse_public_key="",
        langfuse_secret_key="",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def down_gateway() -> FakeGateway:
    """A gateway whose every call fails."""
    return FakeGateway(fail={"*"})


@pytest.fixture
def service(gateway: FakeGateway, settings: Settings) -> FulfillmentService:
    return FulfillmentService(gateway, settings)


@pytest.fixture
def session(service: FulfillmentService) -> Session:
    return Session("test-session", service)


@pytest.fixture
def degraded_session(down_gateway: FakeGateway, settings: Settings) -> Session:
    return Session("degraded-session", FulfillmentService(down_gateway, settings))


@pytest.fixture
def session_store(gateway: FakeGateway, settings: Settings) -> SessionStore:
    return SessionStore(lambda: FulfillmentService(gateway, settings))


@pytest.fixture
def dispatcher() -> Dispatcher:
    return Dispatcher()
