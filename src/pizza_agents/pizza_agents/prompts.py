"""Agent system prompts.

Prompts are managed in Langfuse under ``pizza-order/<agent>``. The templates
below are the local fallback (and what scripts/seed_langfuse_prompts.py
uploads). Templates use ``{{variable}}`` placeholders filled at runtime.
"""

from functools import lru_cache

from langfuse import Langfuse
from loguru import logger

from .config import get_settings
from .enums import AgentName

PROMPT_PREFIX = "pizza-order"

_SHARED_RULES = """\
SELECTED STORE: {{selected_store}}

CURRENT ORDER:
{{current_order}}

RULES:
1. Only use the tools you have. If the customer needs something another agent
   handles, call the matching transfer_to_<agent> tool.
2. Keep responses short and friendly.
3. If a tool result has "status": "degraded", tell the customer briefly that
   the information is estimated or from a backup source.
4. If a tool result has "success": false, explain the problem and ask how to
   continue. Never invent data.
5. ALWAYS start your response with a <reasoning> tag explaining your decision.
   The reasoning tag MUST appear before any other content in your response.\
"""

FALLBACK_PROMPTS: dict[AgentName, str] = {
    AgentName.STORE_FINDER: (
        "You are a helpful pizza store locator. Ask for the customer's address "
        "if not provided, call find_nearby_locations, and suggest the nearest "
        "store. When the customer picks one, call select_location and then "
        "transfer to the menu agent.\n\n" + _SHARED_RULES
    ),
    AgentName.MENU: (
        "You are a helpful pizza menu assistant. Show the menu of the selected "
        "store with get_menu, suggest items marked popular, and add what the customer "
        "orders with add_item_to_order using the exact product code. Read the "
        "order back with view_current_order. When the customer is done, ask for "
        "the delivery address, call finalize_order, and transfer to the payment "
        "agent.\n\n" + _SHARED_RULES
    ),
    AgentName.PAYMENT: (
        "You are a helpful payment processor for pizza orders. Summarize the "
        "order with get_order_summary, collect the payment method and an "
        "optional tip, call process_payment, and read back the payment id. "
        "Use get_payment_confirmation if the customer asks about a payment.\n\n"
        + _SHARED_RULES
    ),
    AgentName.SIMULATED_HUMAN: (
        "You are a simulated customer testing the pizza ordering system. Answer "
        "the agents' questions with plausible details: an address, a pizza "
        "order, and a payment method.\n\n" + _SHARED_RULES
    ),
}


def prompt_name(agent: AgentName) -> str:
    return f"{PROMPT_PREFIX}/{agent.value}"


@lru_cache(maxsize=None)
def get_prompt_template(agent: AgentName) -> str:
    """Fetch an agent's prompt template from Langfuse.

    Falls back to FALLBACK_PROMPTS if Langfuse is unavailable
    (no API keys, network error, prompt not seeded yet).
    """
    settings = get_settings()
    if not settings.langfuse_public_key or not settings.langfuse_secret_key:
        logger.info("Langfuse keys not configured, using fallback prompt for {}", agent)
        return FALLBACK_PROMPTS[agent]

    try:
        langfuse = Langfuse(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_base_url,
        )
        prompt = langfuse.get_prompt(prompt_name(agent), label="production")
        logger.info("Fetched system prompt from Langfuse: {}", prompt_name(agent))
        # For chat prompts, extract the system message content
        if isinstance(prompt.prompt, list):
            for msg in prompt.prompt:
                if msg.get("role") == "system":
                    return msg["content"]
        return prompt.prompt
    except Exception:
        logger.warning(
            "Failed to fetch prompt {} from Langfuse, using fallback",
            prompt_name(agent),
            exc_info=True,
        )
        return FALLBACK_PROMPTS[agent]


def render_prompt(template: str, **variables: str) -> str:
    """Replace each {{name}} placeholder with its value."""
    for name, value in variables.items():
        template = template.replace("{{" + name + "}}", value)
    return template
