"""Application configuration via pydantic-settings.

Reads from environment variables and .env file at project root.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root is 4 levels up from this file:
# src/pizza_agents/pizza_agents/config.py -> project root
PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- LLM ---
    mistral_api_key: str = ""
    mistral_model: str = "mistral-small-latest"
    mistral_temperature: float = 0.0

    # --- Fulfillment gateway ---
    gateway_url: str = "http://localhost:3000/api/dominos"
    gateway_timeout_seconds: float = 10.0

    # --- Pricing estimate (used whenever the gateway cannot price) ---
    tax_rate: float = 0.10
    delivery_fee: float = 3.99
    default_estimate_subtotal: float = 26.96

    # --- Address normalization ---
    default_region: str = "CA"

    # --- Logging ---
    log_level: str = "DEBUG"

    # --- Langfuse ---
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_base_url: str = "https://cloud.langfuse.com"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance (created once)."""
    return Settings()
