"""Thin LiteLLM wrapper shared by the summarizer, answer orchestrator and drafter.

Every model call goes through ``complete()``. The caller picks ``num_retries``:
answer and draft generation lean on LiteLLM's retry with backoff, while the
summarizer passes 0 and treats a failed chunk as missing.

Keys are read from the environment only. ``validate_api_key()`` is called
before any generating request so a missing key is reported up front (HTTP 503)
instead of as a provider error halfway through a batch.
"""

from __future__ import annotations

import logging
import os
import time

import litellm

from rfpdesk.errors import RfpDeskError

# LiteLLM prints request dumps to stdout unless told otherwise
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 8_192

# provider prefix -> environment variable holding its key (None: local, no key)
_KEY_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "cohere": "COHERE_API_KEY",
    "perplexity": "PERPLEXITYAI_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
    "ollama_chat": None,
}

# Used when litellm has no metadata for the model
_KNOWN_WINDOWS: dict[str, int] = {
    "openai/gpt-4o": 128_000,
    "openai/gpt-4o-mini": 128_000,
    "openai/gpt-4-turbo": 128_000,
    "anthropic/claude-3-5-sonnet-20241022": 200_000,
    "anthropic/claude-3-5-haiku-20241022": 200_000,
}


class MissingApiKeyError(RfpDeskError, EnvironmentError):
    """The provider's API key environment variable is not set."""

    status_code = 503


def provider_of(model: str) -> str:
    """Provider prefix of a LiteLLM model string; bare names are OpenAI models."""
    return model.split("/", 1)[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Raise MissingApiKeyError if *model*'s provider key is not in the environment.

    Local providers and providers not listed here are not checked.
    """
    provider = provider_of(model)
    env_var = _KEY_ENV.get(provider)
    if env_var and not os.getenv(env_var):
        raise MissingApiKeyError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    temperature: float = 0.0,
    num_retries: int = 3,
) -> str:
    """Run one chat completion and return the first choice's text ("" if none).

    Args:
        model: LiteLLM model string (provider/model).
        messages: OpenAI-style message list.
        max_tokens: Output token limit.
        temperature: Sampling temperature.
        num_retries: LiteLLM retries on transient errors; 0 disables retrying.

    Raises:
        Whatever LiteLLM raises once its retries are exhausted.
    """
    started = time.monotonic()
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
    )
    logger.debug("%s completion in %.1fs", model, time.monotonic() - started)
    return response.choices[0].message.content or ""


def count_tokens(model: str, text: str) -> int:
    """Token count of *text* for *model*; roughly len/4 when LiteLLM cannot count it."""
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, len(text) // 4)


def get_context_window(model: str) -> int:
    """Input context size of *model* in tokens.

    Asks LiteLLM's model registry first, then a short table of common models,
    and finally assumes ``DEFAULT_CONTEXT_WINDOW``.
    """
    try:
        info = litellm.get_model_info(model)
    except Exception:
        return _KNOWN_WINDOWS.get(model, DEFAULT_CONTEXT_WINDOW)
    return info.get("max_input_tokens") or info.get("max_tokens") or DEFAULT_CONTEXT_WINDOW
