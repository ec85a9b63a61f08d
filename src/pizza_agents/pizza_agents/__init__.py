"""Pizza ordering agents: hand-off orchestration over a resilient fulfillment facade."""

from .agents import CATALOGUE, AgentCatalogue, AgentDescriptor, ToolSpec
from .dispatch import Dispatcher
from .enums import AgentName, MenuCategoryName, PaymentMethod, ResultStatus
from .gateway import FulfillmentGateway, HttpFulfillmentGateway
from .models import LineItem, Location, Menu, MenuItem, OrderState, ServiceResult
from .service import FulfillmentService
from .session import Session, SessionStore

__all__ = [
    "CATALOGUE",
    "AgentCatalogue",
    "AgentDescriptor",
    "AgentName",
    "Dispatcher",
    "FulfillmentGateway",
    "FulfillmentService",
    "HttpFulfillmentGateway",
    "LineItem",
    "Location",
    "Menu",
    "MenuCategoryName",
    "MenuItem",
    "OrderState",
    "PaymentMethod",
    "ResultStatus",
    "ServiceResult",
    "Session",
    "SessionStore",
    "ToolSpec",
]
