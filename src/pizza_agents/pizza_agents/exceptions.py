"""Exception hierarchy for the pizza ordering agents.

Gateway failures never leave the service facade; dispatch errors are terminal
for the single tool call that raised them.
"""


class PizzaAgentsError(Exception):
    """Base class for all package errors."""


class GatewayError(PizzaAgentsError):
    """The fulfillment platform failed, timed out, or answered nonsense."""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        super().__init__(f"{action}: {message}")


class DispatchError(PizzaAgentsError):
    """A tool-call request could not be routed."""


class NoActiveAgentError(DispatchError):
    def __init__(self) -> None:
        super().__init__("No agent is active for this conversation")


class UnknownToolError(DispatchError):
    def __init__(self, agent: str, tool_name: str) -> None:
        self.agent = agent
        self.tool_name = tool_name
        super().__init__(f"Agent '{agent}' has no tool named '{tool_name}'")


class TransferNotAllowedError(DispatchError):
    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"Agent '{source}' may not transfer to '{target}'")


class InvalidToolArgumentsError(DispatchError):
    def __init__(self, tool_name: str, details: str) -> None:
        self.tool_name = tool_name
        self.details = details
        super().__init__(f"Invalid arguments for '{tool_name}': {details}")
