"""The agent catalogue and its transfer graph.

Four agents share one conversation. Each declares its own tools and the
agents it may hand the conversation to; the graph is complete (every agent
may transfer to every other), and the order of the hand-offs is left to the
agents' instructions. The catalogue is read-only after import and holds no
conversation state.
"""

from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from . import tools
from .enums import AgentName
from .prompts import FALLBACK_PROMPTS
from .session import INITIAL_AGENT, Session

TRANSFER_PREFIX = "transfer_to_"

Handler = Callable[[Session, Any], Awaitable[dict]]


def transfer_tool_name(target: AgentName) -> str:
    return f"{TRANSFER_PREFIX}{target.value}"


class TransferArgs(tools.ToolArgs):
    rationale_for_transfer: str = Field(
        default="", description="Why the conversation is being handed over."
    )
    conversation_context: str = Field(
        default="",
        description="Anything the next agent needs to know to continue.",
    )


class ToolSpec(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[tools.ToolArgs]
    handler: Handler | None = None

    def input_schema(self) -> dict[str, Any]:
        schema = self.args_schema.model_json_schema()
        schema.pop("title", None)
        return schema

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }


class AgentDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: AgentName
    description: str
    instructions: str
    tools: tuple[ToolSpec, ...] = ()
    downstream: tuple[AgentName, ...] = ()

    @model_validator(mode="after")
    def check_tools_and_targets(self) -> Self:
        if self.name in self.downstream:
            raise ValueError(f"Agent {self.name} lists itself as a transfer target")
        names = [tool.name for tool in self.tools]
        if len(names) != len(set(names)):
            raise ValueError(f"Agent {self.name} declares duplicate tool names")
        for name in names:
            if name.startswith(TRANSFER_PREFIX):
                raise ValueError(f"Tool name {name!r} is reserved for transfers")
        return self

    def tool(self, name: str) -> ToolSpec | None:
        return next((tool for tool in self.tools if tool.name == name), None)

    def transfer_tools(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                name=transfer_tool_name(target),
                description=f"Transfer the conversation to the {target} agent.",
                args_schema=TransferArgs,
            )
            for target in self.downstream
        ]


class AgentCatalogue:
    """Agents by name plus the (agent, tool name) -> tool registry."""

    def __init__(
        self, agents: Iterable[AgentDescriptor], initial: AgentName = INITIAL_AGENT
    ) -> None:
        self._agents: dict[AgentName, AgentDescriptor] = {}
        for agent in agents:
            if agent.name in self._agents:
                raise ValueError(f"Duplicate agent name: {agent.name}")
            self._agents[agent.name] = agent
        for agent in self._agents.values():
            unknown = [name for name in agent.downstream if name not in self._agents]
            if unknown:
                raise ValueError(f"Agent {agent.name} transfers to unknown {unknown}")
        if initial not in self._agents:
            raise ValueError(f"Initial agent {initial} is not in the catalogue")
        self.initial = initial
        self._registry: dict[tuple[AgentName, str], ToolSpec] = {
            (agent.name, tool.name): tool
            for agent in self._agents.values()
            for tool in agent.tools
        }

    def __getitem__(self, name: AgentName) -> AgentDescriptor:
        return self._agents[name]

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __iter__(self) -> Iterator[AgentDescriptor]:
        return iter(self._agents.values())

    def resolve(self, agent: AgentName, tool_name: str) -> ToolSpec | None:
        return self._registry.get((agent, tool_name))

    def can_transfer(self, source: AgentName, target: AgentName) -> bool:
        return target in self._agents[source].downstream


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

STORE_FINDER_TOOLS = (
    ToolSpec(
        name="find_nearby_locations",
        description="Finds pizza stores near the provided address and returns a list of options.",
        args_schema=tools.FindNearbyLocationsArgs,
        handler=tools.find_nearby_locations,
    ),
    ToolSpec(
        name="select_location",
        description="Selects a store from the list of nearby stores.",
        args_schema=tools.SelectLocationArgs,
        handler=tools.select_location,
    ),
)

MENU_TOOLS = (
    ToolSpec(
        name="get_menu",
        description="Gets the menu for the selected store.",
        args_schema=tools.GetMenuArgs,
        handler=tools.get_menu,
    ),
    ToolSpec(
        name="add_item_to_order",
        description="Adds an item to the customer's order by product code.",
        args_schema=tools.AddItemToOrderArgs,
        handler=tools.add_item_to_order,
    ),
    ToolSpec(
        name="view_current_order",
        description="Views the current order and its running total.",
        args_schema=tools.ViewCurrentOrderArgs,
        handler=tools.view_current_order,
    ),
    ToolSpec(
        name="finalize_order",
        description="Finalizes the order and prepares it for payment.",
        args_schema=tools.FinalizeOrderArgs,
        handler=tools.finalize_order,
    ),
)

PAYMENT_TOOLS = (
    ToolSpec(
        name="get_order_summary",
        description="Gets a summary of the order to be paid for.",
        args_schema=tools.GetOrderSummaryArgs,
        handler=tools.get_order_summary,
    ),
    ToolSpec(
        name="process_payment",
        description="Processes a payment for an order.",
        args_schema=tools.ProcessPaymentArgs,
        handler=tools.process_payment,
    ),
    ToolSpec(
        name="get_payment_confirmation",
        description="Gets the confirmation details for a processed payment.",
        args_schema=tools.GetPaymentConfirmationArgs,
        handler=tools.get_payment_confirmation,
    ),
)

DESCRIPTIONS: dict[AgentName, str] = {
    AgentName.STORE_FINDER: (
        "Finds the nearest pizza store for the customer's address. Route here "
        "when the customer is starting an order or wants a different store."
    ),
    AgentName.MENU: (
        "Shows the selected store's menu and builds the order. Route here when "
        "the customer wants to see the menu or change what they are ordering."
    ),
    AgentName.PAYMENT: (
        "Takes payment for a finalized order. Route here when the customer is "
        "ready to pay."
    ),
    AgentName.SIMULATED_HUMAN: (
        "A simulated customer used to exercise the ordering flow in tests."
    ),
}

AGENT_TOOLS: dict[AgentName, tuple[ToolSpec, ...]] = {
    AgentName.STORE_FINDER: STORE_FINDER_TOOLS,
    AgentName.MENU: MENU_TOOLS,
    AgentName.PAYMENT: PAYMENT_TOOLS,
    AgentName.SIMULATED_HUMAN: (),
}


def build_catalogue() -> AgentCatalogue:
    """The four ordering agents, each allowed to transfer to all the others."""
    return AgentCatalogue(
        [
            AgentDescriptor(
                name=name,
                description=DESCRIPTIONS[name],
                instructions=FALLBACK_PROMPTS[name],
                tools=AGENT_TOOLS[name],
                downstream=tuple(other for other in AgentName if other != name),
            )
            for name in AgentName
        ]
    )


CATALOGUE = build_catalogue()
