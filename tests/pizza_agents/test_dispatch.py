"""Tests for the agent catalogue, transfers and tool dispatch."""

import pytest

from pizza_agents.agents import (
    CATALOGUE,
    AgentCatalogue,
    AgentDescriptor,
    ToolSpec,
    transfer_tool_name,
)
from pizza_agents.dispatch import Dispatcher
from pizza_agents.enums import AgentName
from pizza_agents.exceptions import (
    InvalidToolArgumentsError,
    NoActiveAgentError,
    TransferNotAllowedError,
    UnknownToolError,
)
from pizza_agents.tools import ToolArgs


class TestCatalogue:
    def test_four_agents(self):
        assert {agent.name for agent in CATALOGUE} == set(AgentName)

    def test_transfer_graph_is_complete(self):
        for agent in CATALOGUE:
            assert set(agent.downstream) == set(AgentName) - {agent.name}

    def test_initial_agent_is_store_finder(self):
        assert CATALOGUE.initial == AgentName.STORE_FINDER

    def test_agent_tools(self):
        assert [t.name for t in CATALOGUE[AgentName.STORE_FINDER].tools] == [
            "find_nearby_locations",
            "select_location",
        ]
        assert [t.name for t in CATALOGUE[AgentName.MENU].tools] == [
            "get_menu",
            "add_item_to_order",
            "view_current_order",
            "finalize_order",
        ]
        assert [t.name for t in CATALOGUE[AgentName.PAYMENT].tools] == [
            "get_order_summary",
            "process_payment",
            "get_payment_confirmation",
        ]
        assert CATALOGUE[AgentName.SIMULATED_HUMAN].tools == ()

    def test_self_transfer_is_rejected(self):
        with pytest.raises(ValueError):
            AgentDescriptor(
                name=AgentName.MENU,
                description="menu",
                instructions="",
                downstream=(AgentName.MENU,),
            )

    def test_unknown_downstream_is_rejected(self):
        with pytest.raises(ValueError):
            AgentCatalogue(
                [
                    AgentDescriptor(
                        name=AgentName.STORE_FINDER,
                        description="finder",
                        instructions="",
                        downstream=(AgentName.PAYMENT,),
                    )
                ]
            )

    def test_reserved_tool_name_is_rejected(self):
        with pytest.raises(ValueError):
            AgentDescriptor(
                name=AgentName.MENU,
                description="menu",
                instructions="",
                tools=(
                    ToolSpec(
                        name="transfer_to_payment",
                        description="sneaky",
                        args_schema=ToolArgs,
                    ),
                ),
            )


class TestToolCatalogue:
    def test_active_agent_catalogue_includes_transfers(self, dispatcher, session):
        names = [tool["name"] for tool in dispatcher.tool_catalogue(session)]
        assert names == [
            "find_nearby_locations",
            "select_location",
            "transfer_to_menu",
            "transfer_to_payment",
            "transfer_to_simulated_human",
        ]

    def test_input_schema_is_json_schema(self, dispatcher, session):
        spec = dispatcher.tool_catalogue(session)[0]
        assert spec["input_schema"]["type"] == "object"
        assert spec["input_schema"]["required"] == ["address"]
        assert "address" in spec["input_schema"]["properties"]

    def test_bindable_tools_format(self, dispatcher, session):
        tool = dispatcher.bindable_tools(session)[0]
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "find_nearby_locations"
        assert "parameters" in tool["function"]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_transfer_switches_active_agent(self, dispatcher, session):
        result = await dispatcher.call(session, "transfer_to_menu", {})
        assert result["result"]["active_agent"] == "menu"
        assert session.active_agent == AgentName.MENU

    @pytest.mark.asyncio
    async def test_tools_follow_the_active_agent(self, dispatcher, session):
        await dispatcher.call(session, "find_nearby_locations", {"address": "500 Main St"})
        await dispatcher.call(session, "transfer_to_menu", {})

        view = await dispatcher.call(session, "view_current_order", {})
        assert view["result"]["order_items"] == []

        with pytest.raises(UnknownToolError):
            await dispatcher.call(session, "find_nearby_locations", {"address": "500 Main St"})

    @pytest.mark.asyncio
    async def test_transfer_keeps_order_state(self, dispatcher, session):
        await dispatcher.call(session, "find_nearby_locations", {"address": "500 Main St"})
        await dispatcher.call(session, "transfer_to_menu", {})
        await dispatcher.call(session, "add_item_to_order", {"code": "pizza1", "quantity": 1})
        before = session.order.model_dump()

        await dispatcher.call(
            session,
            "transfer_to_payment",
            {"rationale_for_transfer": "Customer is ready to pay"},
        )

        assert session.active_agent == AgentName.PAYMENT
        assert session.order.model_dump() == before

    @pytest.mark.asyncio
    async def test_transfer_to_self_is_not_allowed(self, dispatcher, session):
        with pytest.raises(TransferNotAllowedError):
            await dispatcher.call(session, transfer_tool_name(AgentName.STORE_FINDER))
        assert session.active_agent == AgentName.STORE_FINDER

    @pytest.mark.asyncio
    async def test_transfer_to_unknown_agent(self, dispatcher, session):
        with pytest.raises(UnknownToolError):
            await dispatcher.call(session, "transfer_to_kitchen", {})

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher, session):
        with pytest.raises(UnknownToolError) as excinfo:
            await dispatcher.call(session, "bake_pizza", {})
        assert excinfo.value.agent == AgentName.STORE_FINDER

    @pytest.mark.asyncio
    async def test_no_active_agent(self, dispatcher, session):
        session.active_agent = None
        with pytest.raises(NoActiveAgentError):
            await dispatcher.call(session, "find_nearby_locations", {"address": "x"})

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_menu", {})
        with pytest.raises(InvalidToolArgumentsError) as excinfo:
            await dispatcher.call(session, "finalize_order", {})
        assert "delivery_address" in excinfo.value.details

    @pytest.mark.asyncio
    async def test_blank_address_is_rejected(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_menu", {})
        with pytest.raises(InvalidToolArgumentsError):
            await dispatcher.call(session, "finalize_order", {"delivery_address": "   "})

    @pytest.mark.asyncio
    async def test_unexpected_argument_is_rejected(self, dispatcher, session):
        with pytest.raises(InvalidToolArgumentsError):
            await dispatcher.call(
                session, "find_nearby_locations", {"address": "x", "radius": 5}
            )

    @pytest.mark.asyncio
    async def test_quantity_must_be_positive(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_menu", {})
        with pytest.raises(InvalidToolArgumentsError):
            await dispatcher.call(session, "add_item_to_order", {"code": "pizza1", "quantity": 0})

    @pytest.mark.asyncio
    async def test_lookup_errors_come_back_as_data(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_payment", {})
        result = await dispatcher.call(
            session, "get_payment_confirmation", {"payment_id": "PAY-NOPE"}
        )
        assert result["result"]["success"] is False
        assert result["result"]["error"] == "PaymentNotFound"

    @pytest.mark.asyncio
    async def test_unknown_store_selection_comes_back_as_data(self, dispatcher, session):
        result = await dispatcher.call(session, "select_location", {"store_id": "no-such-store"})
        assert result["result"]["success"] is False
        assert result["result"]["error"] == "LocationNotFound"
        assert result["result"]["selected_store"] is None
        assert session.order.location_id is None

    @pytest.mark.asyncio
    async def test_payment_tools_agree_on_unknown_order(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_payment", {})
        summary = await dispatcher.call(session, "get_order_summary", {"order_id": "ORD-NOPE"})
        paid = await dispatcher.call(
            session, "process_payment", {"payment_method": "cash", "order_id": "ORD-NOPE"}
        )
        assert summary["result"]["error"] == "OrderNotFound"
        assert paid["result"]["success"] is False
        assert paid["result"]["error"] == "OrderNotFound"
        assert session.payments == {}

    @pytest.mark.asyncio
    async def test_unparseable_address_comes_back_as_data(self, dispatcher, session, gateway):
        result = await dispatcher.call(session, "find_nearby_locations", {"address": " , "})
        assert result["result"]["error"] == "InvalidAddress"
        assert gateway.calls["find_nearby_stores"] == 0

    @pytest.mark.asyncio
    async def test_simulated_human_only_transfers(self, dispatcher, session):
        await dispatcher.call(session, "transfer_to_simulated_human", {})
        names = [tool["name"] for tool in dispatcher.tool_catalogue(session)]
        assert all(name.startswith("transfer_to_") for name in names)
        await dispatcher.call(session, "transfer_to_store_finder", {})
        assert session.active_agent == AgentName.STORE_FINDER


class EchoArgs(ToolArgs):
    pass


def _echo(label: str):
    async def handler(session, args):
        return {"handled_by": label}

    return handler


class TestToolNameCollisions:
    @pytest.fixture
    def colliding_dispatcher(self) -> Dispatcher:
        def agent(name: AgentName, label: str) -> AgentDescriptor:
            return AgentDescriptor(
                name=name,
                description=label,
                instructions="",
                tools=(
                    ToolSpec(
                        name="lookup",
                        description=label,
                        args_schema=EchoArgs,
                        handler=_echo(label),
                    ),
                ),
                downstream=tuple(
                    other
                    for other in (AgentName.STORE_FINDER, AgentName.MENU)
                    if other != name
                ),
            )

        return Dispatcher(
            AgentCatalogue(
                [agent(AgentName.STORE_FINDER, "finder"), agent(AgentName.MENU, "menu")]
            )
        )

    @pytest.mark.asyncio
    async def test_same_name_resolves_to_active_agent(self, colliding_dispatcher, session):
        first = await colliding_dispatcher.call(session, "lookup", {})
        await colliding_dispatcher.call(session, "transfer_to_menu", {})
        second = await colliding_dispatcher.call(session, "lookup", {})
        assert first["result"] == {"handled_by": "finder"}
        assert second["result"] == {"handled_by": "menu"}

    @pytest.mark.asyncio
    async def test_agent_outside_catalogue_is_unknown(self, colliding_dispatcher, session):
        with pytest.raises(UnknownToolError):
            await colliding_dispatcher.call(session, "transfer_to_payment", {})
