"""One-time script to create the agent prompts in Langfuse.

Run from project root:
    python scripts/seed_langfuse_prompts.py

This creates one chat prompt per agent with the 'production' label.
If prompts already exist, Langfuse will create a new version.
"""

from langfuse import Langfuse

from pizza_agents.config import get_settings
from pizza_agents.enums import AgentName
from pizza_agents.prompts import FALLBACK_PROMPTS, prompt_name

# The simulated customer gets some variety; the ordering agents stay deterministic.
PROMPT_CONFIGS: dict[AgentName, dict] = {
    AgentName.STORE_FINDER: {"model": "mistral-small-latest", "temperature": 0.0},
    AgentName.MENU: {"model": "mistral-small-latest", "temperature": 0.0},
    AgentName.PAYMENT: {"model": "mistral-small-latest", "temperature": 0.0},
    AgentName.SIMULATED_HUMAN: {"model": "mistral-small-latest", "temperature": 0.9},
}

PROMPTS = [
    {
        "name": prompt_name(agent),
        "type": "chat",
        "prompt": [{"role": "system", "content": FALLBACK_PROMPTS[agent]}],
        "config": PROMPT_CONFIGS[agent],
    }
    for agent in AgentName
]


def main() -> None:
    settings = get_settings()
    langfuse = Langfuse(
        public_key=settings.langfuse_public_key,
        secret_key=settings.langfuse_secret_key,
        host=settings.langfuse_base_url,
    )

    for prompt_def in PROMPTS:
        langfuse.create_prompt(
            name=prompt_def["name"],
            type=prompt_def["type"],
            prompt=prompt_def["prompt"],
            config=prompt_def["config"],
            labels=["production"],
        )
        print(f"Created prompt: {prompt_def['name']}")

    langfuse.flush()
    print(f"\nDone. {len(PROMPTS)} prompts created with 'production' label.")


if __name__ == "__main__":
    main()
