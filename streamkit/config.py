"""
Configuration constants and Pydantic models for streamkit.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from streamkit.errors import ConfigurationError


# ─────────────────────────────────────────────────────────────────────
# WIRE CONSTANTS
# ─────────────────────────────────────────────────────────────────────

DONE_SENTINEL: str = "[DONE]"
DEFAULT_ENCODING: str = "utf-8"


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS - Overridable via environment
# ─────────────────────────────────────────────────────────────────────

DEFAULT_BASE_URL: str = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_SECONDS: float = 600.0  # 10 minutes, streams are long-lived
DEFAULT_MODEL: str = "gpt-4o-mini"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_base_url() -> str:
    """
    Get provider base URL from environment or default.

    Set STREAMKIT_BASE_URL in .env to point at any OpenAI-compatible server
    (LM Studio, vLLM, Together, ...).
    """
    value = os.environ.get("STREAMKIT_BASE_URL", "").strip()
    return value or DEFAULT_BASE_URL


def get_api_key() -> Optional[str]:
    """Get API key from STREAMKIT_API_KEY, falling back to OPENAI_API_KEY."""
    return os.environ.get("STREAMKIT_API_KEY") or os.environ.get("OPENAI_API_KEY")


def get_timeout_seconds() -> float:
    """
    Get request timeout in seconds.

    Set STREAMKIT_TIMEOUT_SECONDS in .env (default: 600).
    """
    try:
        return float(os.environ.get("STREAMKIT_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def get_default_model() -> str:
    """Get default model ID from STREAMKIT_MODEL or fallback."""
    return os.environ.get("STREAMKIT_MODEL") or DEFAULT_MODEL


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class ProviderConfig(BaseModel):
    """Connection settings for one OpenAI-compatible provider."""
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)
    query_params: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def model_post_init(self, __context) -> None:
        if not self.base_url.strip():
            raise ConfigurationError("No base URL configured")
        self.base_url = self.base_url.rstrip("/")

    def build_url(self, path: str) -> str:
        """Join base URL and path. Query params are attached by the client."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def build_headers(self, additional: Optional[dict[str, str]] = None) -> dict[str, str]:
        """
        Build request headers including authentication.

        Order: configured headers, then Authorization (when a key is set),
        then per-call additions. Content-Type defaults to JSON.
        """
        headers = dict(self.headers)
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if additional:
            headers.update(additional)
        headers.setdefault("Content-Type", "application/json")
        return headers


def load_provider_config() -> ProviderConfig:
    """Build a ProviderConfig from environment variables."""
    return ProviderConfig(
        base_url=get_base_url(),
        api_key=get_api_key(),
        timeout_seconds=get_timeout_seconds(),
    )
