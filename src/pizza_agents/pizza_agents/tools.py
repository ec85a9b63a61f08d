"""Tool implementations for the ordering agents.

Each tool is an argument model (the input schema published to the model) and
an async handler ``(session, args) -> dict``. Handlers return plain JSON-able
dicts; not-found conditions come back as ``{"success": False, "error": ...}``
rather than exceptions so the agent can tell the customer and retry.
"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentMethod
from .models import Customer, LookupFailure, ServiceResult
from .session import Session


class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _with_status(result: ServiceResult, payload: dict) -> dict:
    """Attach the degraded flag and warning of a facade result."""
    payload["status"] = result.status.value
    if result.warning:
        payload["warning"] = result.warning
    return payload


# ---------------------------------------------------------------------------
# Store finder
# ---------------------------------------------------------------------------


class FindNearbyLocationsArgs(ToolArgs):
    address: str = Field(
        min_length=1, description="The customer's address to find nearby stores."
    )


async def find_nearby_locations(session: Session, args: FindNearbyLocationsArgs) -> dict:
    try:
        result = await session.service.find_nearby_locations(args.address)
    except ValueError as exc:
        return LookupFailure(error="InvalidAddress", message=str(exc)).model_dump()
    return _with_status(
        result, {"stores": [store.model_dump(mode="json") for store in result.data]}
    )


class SelectLocationArgs(ToolArgs):
    store_id: str = Field(min_length=1, description="The ID of the selected store.")


async def select_location(session: Session, args: SelectLocationArgs) -> dict:
    result = await session.select_location(args.store_id)
    if isinstance(result, LookupFailure):
        return {**result.model_dump(), "selected_store": None}
    return _with_status(result, {"selected_store": result.data.model_dump(mode="json")})


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------


class GetMenuArgs(ToolArgs):
    store_id: str | None = Field(
        default=None,
        description="The ID of the store. Defaults to the selected store.",
    )


async def get_menu(session: Session, args: GetMenuArgs) -> dict:
    store_id = args.store_id or session.order.location_id
    if store_id is None:
        store_id = session.service.nearest_location_id
    if store_id is None:
        return LookupFailure(
            error="LocationNotSelected",
            message="No store has been selected yet.",
        ).model_dump()
    result = await session.service.get_menu(store_id)
    return _with_status(
        result,
        {
            "store_id": store_id,
            "menu_items": [item.model_dump(mode="json") for item in result.data.items],
            "customization_options": list(result.data.customization_options),
        },
    )


class AddItemToOrderArgs(ToolArgs):
    code: str = Field(min_length=1, description="The product code of the menu item.")
    quantity: int = Field(default=1, ge=1, description="How many to add.")
    customizations: list[str] = Field(
        default_factory=list, description="Customization labels for the item."
    )


async def add_item_to_order(session: Session, args: AddItemToOrderArgs) -> dict:
    outcome = await session.add_line_item(args.code, args.quantity, args.customizations)
    if isinstance(outcome, LookupFailure):
        return outcome.model_dump()
    return {
        "success": True,
        "added_item": outcome.model_dump(mode="json"),
        "order_total": session.order.total,
    }


class ViewCurrentOrderArgs(ToolArgs):
    pass


async def view_current_order(session: Session, args: ViewCurrentOrderArgs) -> dict:
    return session.view_order()


class FinalizeOrderArgs(ToolArgs):
    delivery_address: str = Field(
        min_length=1, description="The delivery address for the order."
    )
    delivery_instructions: str = Field(
        default="", description="Any special delivery instructions."
    )
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""


async def finalize_order(session: Session, args: FinalizeOrderArgs) -> dict:
    customer = Customer(
        address=args.delivery_address,
        first_name=args.first_name,
        last_name=args.last_name,
        phone=args.phone,
        email=args.email,
    )
    outcome = await session.finalize_order(customer, args.delivery_instructions)
    if isinstance(outcome, LookupFailure):
        return outcome.model_dump()
    return {"success": True, "finalized_order": outcome.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


class GetOrderSummaryArgs(ToolArgs):
    order_id: str | None = Field(
        default=None,
        description="The order to summarize. Defaults to the current order.",
    )


async def get_order_summary(session: Session, args: GetOrderSummaryArgs) -> dict:
    summary = session.order_summary(args.order_id)
    if isinstance(summary, LookupFailure):
        return summary.model_dump()
    return {"order_summary": summary}


class ProcessPaymentArgs(ToolArgs):
    payment_method: PaymentMethod = Field(description="The payment method to use.")
    order_id: str | None = Field(
        default=None, description="The order to pay. Defaults to the latest order."
    )
    card_number: str | None = Field(
        default=None, description="The credit/debit card number (if applicable)."
    )
    expiry_date: str | None = Field(
        default=None, description="The card expiry date in MM/YY format."
    )
    cvv: str | None = Field(default=None, description="The card CVV (if applicable).")
    postal_code: str | None = Field(
        default=None, description="The card's billing postal code."
    )
    tip_amount: float = Field(default=0.0, ge=0, description="Tip to add.")


async def process_payment(session: Session, args: ProcessPaymentArgs) -> dict:
    confirmation = await session.record_payment(
        args.payment_method,
        tip=args.tip_amount,
        order_id=args.order_id,
        card_number=args.card_number,
        expiry_date=args.expiry_date,
        cvv=args.cvv,
        postal_code=args.postal_code,
    )
    if isinstance(confirmation, LookupFailure):
        return confirmation.model_dump()
    return {"success": True, **confirmation.model_dump(mode="json")}


class GetPaymentConfirmationArgs(ToolArgs):
    payment_id: str = Field(
        min_length=1, description="The ID of the payment to get confirmation for."
    )


async def get_payment_confirmation(
    session: Session, args: GetPaymentConfirmationArgs
) -> dict:
    outcome = session.payment_confirmation(args.payment_id)
    if isinstance(outcome, LookupFailure):
        return outcome.model_dump()
    return {"payment_confirmation": outcome.model_dump(mode="json")}
