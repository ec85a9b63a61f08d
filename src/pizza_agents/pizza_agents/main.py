"""CLI entry point for the pizza ordering agents.

Usage:
    uv run python -m pizza_agents.main
"""

import asyncio
import uuid

from langchain_core.messages import HumanMessage
from langgraph.checkpoint.memory import MemorySaver
from loguru import logger

from .config import get_settings
from .enums import AgentName
from .gateway import HttpFulfillmentGateway
from .graph import _builder
from .logging import setup_logging
from .prompts import get_prompt_template
from .service import FulfillmentService
from .session import SessionStore


def _create_langfuse_handler():
    """Create a Langfuse callback handler if credentials are configured.

    Returns None if Langfuse is not configured.
    """
    settings = get_settings()
    if not settings.langfuse_public_key or not settings.langfuse_secret_key:
        return None

    from langfuse import Langfuse
    from langfuse.langchain import CallbackHandler

    # Initialize the Langfuse singleton client with credentials
    Langfuse(
        public_key=settings.langfuse_public_key,
        secret_key=settings.langfuse_secret_key,
        host=settings.langfuse_base_url,
    )

    return CallbackHandler()


def _read_user_input() -> str:
    """Prompt until the user types something."""
    while True:
        user_input = input("You: ").strip()
        if user_input:
            return user_input


async def run_chat() -> None:
    """Run the ordering conversation in the terminal."""
    settings = get_settings()

    # Initialize logging first (stderr + rotating file)
    setup_logging(level=settings.log_level)
    logger.info("Starting pizza ordering CLI (gateway={})", settings.gateway_url)

    async with HttpFulfillmentGateway(
        settings.gateway_url, timeout=settings.gateway_timeout_seconds
    ) as gateway:
        sessions = SessionStore(lambda: FulfillmentService(gateway, settings))
        graph = _builder.compile(checkpointer=MemorySaver())
        await asyncio.gather(
            *(asyncio.to_thread(get_prompt_template, agent) for agent in AgentName)
        )

        session_id = f"cli-{uuid.uuid4()}"
        config = {"configurable": {"thread_id": session_id, "session_store": sessions}}
        logger.info("Session started (session_id={})", session_id)

        langfuse_handler = _create_langfuse_handler()
        if langfuse_handler:
            config["callbacks"] = [langfuse_handler]
            config["metadata"] = {"langfuse_session_id": session_id}
            print(f"Langfuse tracing: enabled (session_id={session_id})")
        else:
            print("Langfuse tracing: disabled (no credentials)")

        print("-" * 50)
        print("Pizza ordering assistant ready! Type 'quit' to exit.")
        print("-" * 50)
        print()

        user_input = "Hi"
        while True:
            logger.debug("User input: {}", user_input)
            result = await graph.ainvoke(
                {"messages": [HumanMessage(content=user_input)]}, config=config
            )
            agent = result.get("active_agent", "")
            print(f"Bot [{agent}]: {result['messages'][-1].content}")
            print()

            try:
                user_input = _read_user_input()
            except (EOFError, KeyboardInterrupt):
                print("\nGoodbye!")
                break
            if user_input.lower() in ("quit", "exit", "q"):
                print("Goodbye!")
                break

        session = sessions.get(session_id)
        if session.payments:
            print(f"Payments recorded: {', '.join(session.payments)}")

    if langfuse_handler:
        from langfuse import get_client

        get_client().flush()

    logger.info("Chatbot session ended (session_id={})", session_id)


def main() -> None:
    asyncio.run(run_chat())


if __name__ == "__main__":
    main()
