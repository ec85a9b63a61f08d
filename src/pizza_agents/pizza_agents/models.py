from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .enums import MenuCategoryName, PaymentMethod, PaymentStatus, ResultStatus

T = TypeVar("T")


def round_money(value: float) -> float:
    """Round a currency amount to cents."""
    return round(value + 0.0, 2)


# ---------------------------------------------------------------------------
# Reference data (immutable once fetched)
# ---------------------------------------------------------------------------


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_id: str
    name: str
    address: str = "Address not available"
    phone: str = "Phone not available"
    distance: str | None = None
    hours: str | None = None
    estimated_delivery_time: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.store_id == other.store_id

    def __hash__(self) -> int:
        return hash(self.store_id)


class MenuItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    description: str = ""
    price: float = Field(default=0.0, ge=0)
    category: MenuCategoryName = MenuCategoryName.OTHER
    size: str | None = None
    customizable: bool = False
    popular: bool = False


class MenuCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: MenuCategoryName
    items: tuple[MenuItem, ...] = ()


class Menu(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_id: str
    categories: tuple[MenuCategory, ...] = ()
    customization_options: tuple[str, ...] = ()

    @property
    def items(self) -> list[MenuItem]:
        return [item for category in self.categories for item in category.items]

    def find_item(self, code: str) -> MenuItem | None:
        return next((item for item in self.items if item.code == code), None)


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    street: str
    city: str = ""
    region: str
    postal_code: str = ""

    def one_line(self) -> str:
        """Render as 'street, city, REGION postal' skipping empty parts."""
        tail = " ".join(part for part in (self.region, self.postal_code) if part)
        return ", ".join(part for part in (self.street, self.city, tail) if part)


# ---------------------------------------------------------------------------
# Order aggregate
# ---------------------------------------------------------------------------


class Customer(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""


class LineItem(BaseModel):
    """One order line. Replaced, never edited."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    customizations: tuple[str, ...] = ()
    options: dict[str, str] = Field(default_factory=dict)

    @computed_field
    @property
    def total(self) -> float:
        return round_money(self.unit_price * self.quantity)


class OrderState(BaseModel):
    """The in-progress order shared by every agent of one conversation."""

    customer: Customer | None = None
    location_id: str | None = None
    items: list[LineItem] = Field(default_factory=list)
    order_id: str | None = None

    @computed_field
    @property
    def total(self) -> float:
        # Recomputed on every read so it always matches the current items.
        return round_money(sum(item.total for item in self.items))

    def append(self, item: LineItem) -> None:
        self.items = [*self.items, item]

    def clear_items(self) -> None:
        self.items = []


class OrderDraft(BaseModel):
    customer: Customer
    store_id: str | None = None
    items: tuple[LineItem, ...] = ()

    @property
    def subtotal(self) -> float:
        return round_money(sum(item.total for item in self.items))


class PriceBreakdown(BaseModel):
    subtotal: float
    tax: float
    delivery_fee: float
    total: float

    @classmethod
    def estimate(
        cls, subtotal: float, tax_rate: float, delivery_fee: float
    ) -> "PriceBreakdown":
        """Local estimate: tax on the subtotal plus a flat delivery fee."""
        subtotal = round_money(subtotal)
        tax = round_money(subtotal * tax_rate)
        fee = round_money(delivery_fee)
        return cls(
            subtotal=subtotal,
            tax=tax,
            delivery_fee=fee,
            total=round_money(subtotal + tax + fee),
        )


class OrderCreated(BaseModel):
    order_id: str


class ValidationOutcome(BaseModel):
    valid: bool
    details: dict[str, Any] = Field(default_factory=dict)


class PaymentDetails(BaseModel):
    amount: float = Field(ge=0)
    method: PaymentMethod
    card_number: str | None = None
    expiry_date: str | None = None
    cvv: str | None = None
    postal_code: str | None = None
    tip_amount: float = Field(default=0.0, ge=0)


class Placement(BaseModel):
    order_id: str
    tracking_url: str | None = None
    estimated_delivery_time: str = "30-45 minutes"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ServiceResult(BaseModel, Generic[T]):
    """A facade result, flagged as authoritative or synthesized."""

    data: T
    status: ResultStatus = ResultStatus.AUTHORITATIVE
    warning: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status == ResultStatus.DEGRADED


class FinalizedOrder(BaseModel):
    order_id: str
    store_id: str | None = None
    items: list[LineItem]
    pricing: PriceBreakdown
    delivery_address: str
    delivery_instructions: str = ""
    estimated_delivery_time: str = "30-45 minutes"
    validation: ValidationOutcome
    status: ResultStatus = ResultStatus.AUTHORITATIVE
    warnings: list[str] = Field(default_factory=list)


class PaymentConfirmation(BaseModel):
    payment_id: str
    order_id: str | None = None
    payment_method: PaymentMethod
    amount: float
    tip: float = 0.0
    order_total: float
    timestamp: datetime
    status: PaymentStatus = PaymentStatus.COMPLETED
    receipt_url: str
    estimated_delivery_time: str = "30-45 minutes"
    placement: Placement | None = None
    warnings: list[str] = Field(default_factory=list)


class LookupFailure(BaseModel):
    """A not-found style result handed back to the agent as data."""

    success: bool = False
    error: str
    message: str
