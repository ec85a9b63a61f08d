"""LangGraph hand-off graph for the pizza ordering agents.

2-node graph: agent -> tools -> agent (loop) until the model answers without
tool calls. The agent node binds the *active* agent's tool catalogue (its own
tools plus its transfer tools) to a Mistral chat model; the tools node runs
every requested call through the Dispatcher, one at a time.

Conversation state lives in a Session, looked up per run from the
SessionStore passed as ``config["configurable"]["session_store"]`` under the
LangGraph ``thread_id``.
"""

import asyncio
import json
import operator
import re
from functools import lru_cache
from typing import Annotated, Any

from langchain_core.messages import AIMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_mistralai import ChatMistralAI
from langgraph.graph import END, START, MessagesState, StateGraph
from loguru import logger

from .config import get_settings
from .dispatch import Dispatcher
from .exceptions import DispatchError
from .prompts import get_prompt_template, render_prompt
from .session import Session, SessionStore

# ---------------------------------------------------------------------------
# State Schema
# ---------------------------------------------------------------------------


class HandoffState(MessagesState):
    """State for the hand-off graph.

    Inherits `messages` from MessagesState (with add-message reducer).
    The order itself stays in the Session; `active_agent` mirrors it for
    tracing and tests.
    """

    active_agent: str
    reasoning: Annotated[list[str], operator.add]  # LLM decision rationale log


# ---------------------------------------------------------------------------
# Session / LLM access
# ---------------------------------------------------------------------------

_dispatcher = Dispatcher()


def _session_from_config(config: RunnableConfig) -> Session:
    configurable = config.get("configurable", {})
    store: SessionStore | None = configurable.get("session_store")
    if store is None:
        raise RuntimeError("config['configurable']['session_store'] is required")
    return store.get(configurable.get("thread_id", "default"))


@lru_cache(maxsize=1)
def _get_chat_model() -> ChatMistralAI:
    """Create the chat model on first use, not at import time.

    This allows graph.py to be imported without MISTRAL_API_KEY being set
    (important for tests).
    """
    settings = get_settings()
    logger.info(
        "Initializing LLM: model={}, temperature={}",
        settings.mistral_model,
        settings.mistral_temperature,
    )
    return ChatMistralAI(
        model=settings.mistral_model,
        temperature=settings.mistral_temperature,
        api_key=settings.mistral_api_key,
    )


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

_REASONING_PATTERN = re.compile(r"<reasoning>(.*?)</reasoning>", re.DOTALL)


def _extract_reasoning(content: str) -> tuple[str, str]:
    """Extract and strip <reasoning> tags from LLM response content.

    Returns:
        (reasoning_text, cleaned_content). reasoning_text is the extracted
        reasoning (empty string if no tag found), cleaned_content is the
        original content with the <reasoning> tag removed.
    """
    match = _REASONING_PATTERN.search(content)
    if not match:
        return "", content
    reasoning_text = match.group(1).strip()
    cleaned = _REASONING_PATTERN.sub("", content).strip()
    return reasoning_text, cleaned


def _format_order(session: Session) -> str:
    lines = [
        f"- {item.quantity}x {item.name} [{item.code}] ${item.total:.2f}"
        + (f" ({', '.join(item.customizations)})" if item.customizations else "")
        for item in session.order.items
    ]
    if lines:
        lines.append(f"Total: ${session.order.total:.2f}")
        return "\n".join(lines)
    if session.order.order_id:
        return f"Empty (last finalized order: {session.order.order_id})"
    return "Empty"


def _reasoning_entry(agent: str, response: AIMessage, raw_reasoning: str) -> str:
    if response.tool_calls:
        tool_names = ", ".join(tc["name"] for tc in response.tool_calls)
        if raw_reasoning:
            return f"[{agent}] [TOOL_CALL] {tool_names}: {raw_reasoning}"
        args_summary = "; ".join(
            f"{tc['name']}({', '.join(f'{k}={v!r}' for k, v in tc['args'].items())})"
            for tc in response.tool_calls
        )
        return f"[{agent}] [TOOL_CALL] {tool_names}: {args_summary}"
    if raw_reasoning:
        return f"[{agent}] [DIRECT] {raw_reasoning}"
    return f"[{agent}] [DIRECT] {(response.content or '')[:80]}"


async def agent_node(state: HandoffState, config: RunnableConfig) -> dict:
    """Invoke the active agent's model with its prompt and tool catalogue."""
    session = _session_from_config(config)
    agent = _dispatcher.active_agent(session)

    # First fetch may hit Langfuse over HTTP; keep it off the event loop.
    template = await asyncio.to_thread(get_prompt_template, agent.name)
    system_content = render_prompt(
        template,
        selected_store=session.order.location_id or "None selected",
        current_order=_format_order(session),
    )
    messages = [SystemMessage(content=system_content)] + state["messages"]

    llm = _get_chat_model().bind_tools(_dispatcher.bindable_tools(session))
    logger.debug("Invoking {} with {} messages", agent.name, len(messages))
    response = await llm.ainvoke(messages)

    raw_reasoning, cleaned_content = _extract_reasoning(response.content or "")
    if cleaned_content != (response.content or ""):
        response.content = cleaned_content

    entry = _reasoning_entry(agent.name.value, response, raw_reasoning)
    logger.debug("Reasoning: {}", entry)
    return {
        "messages": [response],
        "reasoning": [entry],
        "active_agent": agent.name.value,
    }


async def tools_node(state: HandoffState, config: RunnableConfig) -> dict:
    """Run the latest tool calls through the dispatcher, in order."""
    session = _session_from_config(config)
    last_message = state["messages"][-1]

    tool_messages: list[ToolMessage] = []
    for tool_call in last_message.tool_calls:
        payload: Any
        try:
            outcome = await _dispatcher.call(
                session, tool_call["name"], tool_call.get("args")
            )
            payload, status = outcome["result"], "success"
        except DispatchError as exc:
            logger.warning("Tool call {} failed: {}", tool_call["name"], exc)
            payload = {"success": False, "error": type(exc).__name__, "message": str(exc)}
            status = "error"
        tool_messages.append(
            ToolMessage(
                content=json.dumps(payload, default=str),
                name=tool_call["name"],
                tool_call_id=tool_call["id"],
                status=status,
            )
        )

    active = session.active_agent.value if session.active_agent else ""
    return {"messages": tool_messages, "active_agent": active}


def should_continue(state: HandoffState) -> str:
    """Route to the tools node if the model asked for tools, else finish the turn."""
    last_message = state["messages"][-1]
    if getattr(last_message, "tool_calls", None):
        logger.debug(
            "should_continue -> tools ({} calls)", len(last_message.tool_calls)
        )
        return "tools"
    logger.debug("should_continue -> respond")
    return "respond"


# ---------------------------------------------------------------------------
# Graph Construction
# ---------------------------------------------------------------------------

_builder = StateGraph(HandoffState)
_builder.add_node("agent", agent_node)
_builder.add_node("tools", tools_node)

_builder.add_edge(START, "agent")
_builder.add_conditional_edges(
    "agent",
    should_continue,
    {
        "tools": "tools",
        "respond": END,
    },
)
_builder.add_edge("tools", "agent")

# Compiled without a checkpointer for tests; main.py compiles from _builder
# with a MemorySaver.
graph = _builder.compile()
