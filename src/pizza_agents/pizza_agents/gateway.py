"""Request/response boundary to the pizza fulfillment platform.

The platform is reached through a single JSON endpoint that takes
``{"action": ..., "params": ...}`` and answers with one of the shapes below.
Every failure (timeout, transport error, HTTP error status, ``success: false``,
malformed payload) is raised as ``GatewayError``; deciding what to do about it
is the service facade's job, not this module's.
"""

import re
from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import ValidationError

from .enums import MenuCategoryName
from .exceptions import GatewayError
from .models import (
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

# Vendor topping/option codes for the customization labels agents offer.
CUSTOMIZATION_CODES: dict[str, str] = {
    "Extra Cheese": "C",
    "Extra Sauce": "X",
    "Thin Crust": "THIN",
    "Thick Crust": "HANDTOSS",
    "No Cheese": "C0",
    "Well Done": "WD",
    "Add Mushrooms": "M",
    "Add Pepperoni": "P",
    "Add Sausage": "S",
    "Add Bacon": "K",
    "Add Onions": "O",
    "Add Bell Peppers": "G",
    "Add Olives": "R",
}

CATEGORY_ORDER = (
    MenuCategoryName.PIZZAS,
    MenuCategoryName.SIDES,
    MenuCategoryName.DRINKS,
    MenuCategoryName.DESSERTS,
)

_PRICE_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def option_codes(customizations: list[str] | tuple[str, ...]) -> dict[str, str]:
    """Map known customization labels to vendor option codes (case-insensitive)."""
    by_lower = {label.lower(): code for label, code in CUSTOMIZATION_CODES.items()}
    return {
        label: by_lower[label.lower()]
        for label in customizations
        if label.lower() in by_lower
    }


def classify_product(code: str, size: str | None) -> MenuCategoryName:
    """Sort a raw product into a menu category by its code and size."""
    upper = code.upper()
    if size and "Liter" in size:
        return MenuCategoryName.DRINKS
    if any(key in upper for key in ("PIZZA", "SCREEN", "HAND")):
        return MenuCategoryName.PIZZAS
    if any(key in upper for key in ("WING", "BREAD", "CHICK")):
        return MenuCategoryName.SIDES
    if any(key in upper for key in ("LAVA", "BROWNIE", "COOKIE")):
        return MenuCategoryName.DESSERTS
    return MenuCategoryName.OTHER


def parse_price(value: Any) -> float | None:
    """Read a price from a number or a string like '$12.99'. None if unreadable."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _PRICE_PATTERN.search(value.replace(",", ""))
        if match:
            return float(match.group())
    return None


class FulfillmentGateway(Protocol):
    """What the service facade needs from the fulfillment platform."""

    async def find_nearby_stores(self, address: Address) -> list[Location]: ...

    async def get_store_details(self, store_id: str) -> Location: ...

    async def get_menu(self, store_id: str) -> Menu: ...

    async def create_order(
        self, customer: Customer, address: Address, store_id: str
    ) -> OrderCreated: ...

    async def validate_order(
        self, draft: OrderDraft, address: Address
    ) -> ValidationOutcome: ...

    async def price_order(
        self, draft: OrderDraft, address: Address
    ) -> PriceBreakdown: ...

    async def place_order(
        self, draft: OrderDraft, address: Address, payment: PaymentDetails
    ) -> Placement: ...


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def _customer_payload(customer: Customer, address: Address) -> dict[str, Any]:
    return {
        "address": address.one_line(),
        "street": address.street,
        "city": address.city,
        "region": address.region,
        "postalCode": address.postal_code,
        "firstName": customer.first_name,
        "lastName": customer.last_name,
        "phone": customer.phone,
        "email": customer.email,
    }


def _order_payload(draft: OrderDraft, address: Address) -> dict[str, Any]:
    return {
        "customer": _customer_payload(draft.customer, address),
        "store_id": draft.store_id,
        "items": [
            {
                "item_id": item.code,
                "quantity": item.quantity,
                "options": {code: {"1/1": "1"} for code in item.options.values()},
            }
            for item in draft.items
        ],
    }


# ---------------------------------------------------------------------------
# Response parsers
# ---------------------------------------------------------------------------


def _parse_location(action: str, raw: Any) -> Location:
    if not isinstance(raw, dict):
        raise GatewayError(action, "store record is not an object")
    record = {key: value for key, value in raw.items() if value is not None}
    if "store_id" in record:
        record["store_id"] = str(record["store_id"])
    if "name" not in record and "store_id" in record:
        record["name"] = f"Domino's Pizza #{record['store_id']}"
    try:
        return Location.model_validate(record)
    except ValidationError as exc:
        raise GatewayError(action, f"malformed store record: {exc}") from exc


def _parse_menu_item(raw: dict[str, Any], category: MenuCategoryName) -> MenuItem:
    return MenuItem(
        code=str(raw["code"]),
        name=raw.get("name") or str(raw["code"]),
        description=raw.get("description") or "",
        price=parse_price(raw.get("price")) or 0.0,
        category=category,
        size=raw.get("size"),
        customizable=bool(raw.get("customizable", category == MenuCategoryName.PIZZAS)),
        popular=bool(raw.get("popular", False)),
    )


def _parse_menu(store_id: str, payload: dict[str, Any]) -> Menu:
    categories: list[MenuCategory] = []
    try:
        if "menu_categories" in payload:
            for raw_category in payload["menu_categories"]:
                try:
                    name = MenuCategoryName(raw_category["name"])
                except ValueError:
                    name = MenuCategoryName.OTHER
                items = tuple(
                    _parse_menu_item(raw, name) for raw in raw_category["items"]
                )
                categories.append(MenuCategory(name=name, items=items))
        else:
            products = payload.get("menu", {}).get("preconfiguredProducts")
            if not isinstance(products, dict):
                raise GatewayError("getMenu", "response has no menu data")
            grouped: dict[MenuCategoryName, list[MenuItem]] = {}
            for code, product in products.items():
                category = classify_product(code, product.get("size"))
                if category == MenuCategoryName.OTHER:
                    continue
                raw = {"code": code, **product}
                grouped.setdefault(category, []).append(
                    _parse_menu_item(raw, category)
                )
            categories = [
                MenuCategory(name=name, items=tuple(grouped[name]))
                for name in CATEGORY_ORDER
                if grouped.get(name)
            ]
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        raise GatewayError("getMenu", f"malformed menu: {exc}") from exc

    options = payload.get("customization_options") or list(CUSTOMIZATION_CODES)
    return Menu(
        store_id=store_id,
        categories=tuple(categories),
        customization_options=tuple(options),
    )


def _parse_price(payload: dict[str, Any]) -> PriceBreakdown:
    raw = payload.get("price_result")
    if not isinstance(raw, dict):
        raise GatewayError("priceOrder", "response has no price_result")
    fields = {
        name: parse_price(raw.get(name))
        for name in ("subtotal", "tax", "delivery_fee", "total")
    }
    missing = [name for name, value in fields.items() if value is None]
    if missing:
        raise GatewayError("priceOrder", f"unparseable price fields: {missing}")
    return PriceBreakdown(**fields)


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------


class HttpFulfillmentGateway:
    """FulfillmentGateway over a single JSON POST endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFulfillmentGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _call(self, action: str, params: dict[str, Any]) -> dict[str, Any]:
        logger.debug("Gateway call: {}", action)
        try:
            response = await self._client.post(
                self.url, json={"action": action, "params": params}
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise GatewayError(action, "timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise GatewayError(action, f"HTTP {exc.response.status_code}") from exc
        except (httpx.RequestError, ValueError) as exc:
            raise GatewayError(action, f"request failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise GatewayError(action, "response is not a JSON object")
        if payload.get("success") is False or "error" in payload:
            detail = payload.get("error_details") or payload.get("error") or "rejected"
            raise GatewayError(action, str(detail))
        return payload

    async def find_nearby_stores(self, address: Address) -> list[Location]:
        payload = await self._call(
            "findNearbyStores",
            {
                "address": address.one_line(),
                "street": address.street,
                "city": address.city,
                "region": address.region,
                "postal_code": address.postal_code,
            },
        )
        stores = payload.get("stores")
        if not isinstance(stores, list):
            raise GatewayError("findNearbyStores", "response has no store list")
        return [_parse_location("findNearbyStores", raw) for raw in stores]

    async def get_store_details(self, store_id: str) -> Location:
        payload = await self._call("getStoreDetails", {"store_id": store_id})
        return _parse_location("getStoreDetails", payload.get("store"))

    async def get_menu(self, store_id: str) -> Menu:
        payload = await self._call("getMenu", {"store_id": store_id})
        return _parse_menu(store_id, payload)

    async def create_order(
        self, customer: Customer, address: Address, store_id: str
    ) -> OrderCreated:
        payload = await self._call(
            "createOrder",
            {
                "customer_info": _customer_payload(customer, address),
                "store_id": store_id,
            },
        )
        order = payload.get("order") or {}
        if not order.get("order_id"):
            raise GatewayError("createOrder", "response has no order_id")
        return OrderCreated(order_id=str(order["order_id"]))

    async def validate_order(
        self, draft: OrderDraft, address: Address
    ) -> ValidationOutcome:
        payload = await self._call(
            "validateOrder", {"order_data": _order_payload(draft, address)}
        )
        details = payload.get("validation_result") or {}
        if not isinstance(details, dict):
            raise GatewayError("validateOrder", "malformed validation_result")
        if details.get("Status") == -1:
            raise GatewayError("validateOrder", "order rejected by store")
        return ValidationOutcome(valid=True, details=details)

    async def price_order(self, draft: OrderDraft, address: Address) -> PriceBreakdown:
        payload = await self._call(
            "priceOrder", {"order_data": _order_payload(draft, address)}
        )
        return _parse_price(payload)

    async def place_order(
        self, draft: OrderDraft, address: Address, payment: PaymentDetails
    ) -> Placement:
        payload = await self._call(
            "placeOrder",
            {
                "order_data": _order_payload(draft, address),
                "payment_data": {
                    "amount": payment.amount,
                    "card_number": payment.card_number,
                    "expiry_date": payment.expiry_date,
                    "cvv": payment.cvv,
                    "postal_code": payment.postal_code or address.postal_code,
                    "tip_amount": payment.tip_amount,
                },
            },
        )
        result = payload.get("order_result") or {}
        if not result.get("order_id"):
            raise GatewayError("placeOrder", "response has no order_id")
        return Placement(
            order_id=str(result["order_id"]),
            tracking_url=result.get("tracking_url"),
            estimated_delivery_time=result.get("estimated_delivery_time")
            or "30-45 minutes",
        )
