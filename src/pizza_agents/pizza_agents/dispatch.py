"""Routes tool calls to the active agent's tools and handles transfers.

Exactly one agent is active per session. The active agent exposes its own
tools plus ``transfer_to_<agent>`` for each declared downstream agent. A tool
name resolves only through the active agent's entry in the registry, so two
agents may use the same tool name without clashing. Transfers switch the
active agent and never touch the order.
"""

from typing import Any

from loguru import logger
from pydantic import ValidationError

from .agents import CATALOGUE, TRANSFER_PREFIX, AgentCatalogue, AgentDescriptor, TransferArgs
from .enums import AgentName
from .exceptions import (
    InvalidToolArgumentsError,
    NoActiveAgentError,
    TransferNotAllowedError,
    UnknownToolError,
)
from .session import Session
from .tools import ToolArgs


def _validate_args(
    tool_name: str, schema: type[ToolArgs], arguments: dict[str, Any] | None
) -> ToolArgs:
    try:
        return schema.model_validate(arguments or {})
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'arguments'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidToolArgumentsError(tool_name, details) from exc


class Dispatcher:
    """Executes `{tool_name, arguments}` requests against a session."""

    def __init__(self, catalogue: AgentCatalogue = CATALOGUE) -> None:
        self.catalogue = catalogue

    def active_agent(self, session: Session) -> AgentDescriptor:
        if session.active_agent is None or session.active_agent not in self.catalogue:
            raise NoActiveAgentError()
        return self.catalogue[session.active_agent]

    def tool_catalogue(self, session: Session) -> list[dict[str, Any]]:
        """The active agent's tools, transfers included, as name/description/schema."""
        agent = self.active_agent(session)
        return [tool.describe() for tool in (*agent.tools, *agent.transfer_tools())]

    def bindable_tools(self, session: Session) -> list[dict[str, Any]]:
        """The active agent's catalogue in function-calling format for chat models."""
        return [
            {
                "type": "function",
                "function": {
                    "name": spec["name"],
                    "description": spec["description"],
                    "parameters": spec["input_schema"],
                },
            }
            for spec in self.tool_catalogue(session)
        ]

    async def call(
        self,
        session: Session,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run one tool call and return ``{"result": ...}``.

        Raises:
            NoActiveAgentError: The session has no active agent.
            UnknownToolError: The active agent has no such tool.
            TransferNotAllowedError: The transfer target is not downstream.
            InvalidToolArgumentsError: The arguments fail the tool's schema.
        """
        agent = self.active_agent(session)
        log = logger.bind(session_id=session.session_id)

        if tool_name.startswith(TRANSFER_PREFIX):
            target = tool_name.removeprefix(TRANSFER_PREFIX)
            return {"result": self.transfer(session, target, arguments)}

        spec = self.catalogue.resolve(agent.name, tool_name)
        if spec is None or spec.handler is None:
            log.warning("Rejected tool {} for agent {}", tool_name, agent.name)
            raise UnknownToolError(agent.name, tool_name)

        args = _validate_args(tool_name, spec.args_schema, arguments)
        log.info("{} -> {}({})", agent.name, tool_name, args.model_dump(exclude_defaults=True))
        result = await spec.handler(session, args)
        return {"result": result}

    def transfer(
        self,
        session: Session,
        target: str,
        arguments: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        agent = self.active_agent(session)
        try:
            target_name = AgentName(target)
        except ValueError:
            raise UnknownToolError(agent.name, f"{TRANSFER_PREFIX}{target}") from None
        if target_name not in self.catalogue:
            raise UnknownToolError(agent.name, f"{TRANSFER_PREFIX}{target}")
        if not self.catalogue.can_transfer(agent.name, target_name):
            raise TransferNotAllowedError(agent.name, target_name)

        args = _validate_args(f"{TRANSFER_PREFIX}{target}", TransferArgs, arguments)
        session.active_agent = target_name
        logger.bind(session_id=session.session_id).info(
            "Transfer {} -> {}{}",
            agent.name,
            target_name,
            f" ({args.rationale_for_transfer})" if args.rationale_for_transfer else "",
        )
        return {
            "transferred": True,
            "from_agent": agent.name.value,
            "active_agent": target_name.value,
            "message": f"Active agent changed to {target_name.value}",
        }
