"""Provider-specific endpoints, headers and message shapes for probing."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

from llm_capability_probe.exceptions import ProviderException
from llm_capability_probe.probing.types import CompletionShape, MessageShape

logger = logging.getLogger(__name__)

ContentType = Literal["text", "image", "pdf"]

HOSTED_PROVIDERS: tuple[str, ...] = (
    "openai",
    "anthropic",
    "gemini",
    "xai",
    "openrouter",
    "fireworks",
    "minimax",
)

SELF_HOSTED_PROVIDERS: tuple[str, ...] = (
    "ollama",
    "lmstudio",
    "vllm",
    "local-openai-compatible",
)

KNOWN_PROVIDERS: tuple[str, ...] = HOSTED_PROVIDERS + SELF_HOSTED_PROVIDERS

PROVIDER_ENDPOINTS: dict[str, str] = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "anthropic": "https://api.anthropic.com/v1/messages",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions",
    "xai": "https://api.x.ai/v1/chat/completions",
    "openrouter": "https://openrouter.ai/api/v1/chat/completions",
    "fireworks": "https://api.fireworks.ai/inference/v1/chat/completions",
    "minimax": "https://api.minimax.chat/v1/text/chatcompletion_v2",
}

API_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "xai": "XAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "fireworks": "FIREWORKS_API_KEY",
    "ollama": "OLLAMA_API_KEY",
    "lmstudio": "LMSTUDIO_API_KEY",
    "vllm": "VLLM_API_KEY",
    "minimax": "MINIMAX_API_KEY",
    "local-openai-compatible": "LOCAL_OPENAI_API_KEY",
}

ANTHROPIC_VERSION = "2023-06-01"
OPENROUTER_REFERER = "https://llm-sv-tabs.local"
OPENROUTER_TITLE = "LLM-SV-Tabs Probe"

_CHAT_COMPLETIONS_PATH = "/chat/completions"
_MESSAGES_PATH = "/messages"


def is_valid_provider(value: str) -> bool:
    """Check whether ``value`` names a known provider."""
    return value in KNOWN_PROVIDERS


def provider_requires_api_key(provider: str) -> bool:
    """Hosted cloud providers need an API key; self-hosted ones do not."""
    return provider not in SELF_HOSTED_PROVIDERS


def provider_requires_endpoint(provider: str) -> bool:
    """Self-hosted providers have no fixed URL and need a caller-supplied base."""
    return provider in SELF_HOSTED_PROVIDERS


def get_provider_endpoint(provider: str, custom_endpoint: str | None = None) -> str:
    """Resolve the chat endpoint URL for a provider.

    A custom endpoint may be a bare host (``http://localhost:11434``), a base
    with ``/v1``, or a full endpoint; the expected path is appended only when it
    is not already there, so resolving an already-resolved URL is a no-op.

    Args:
        provider: Provider name
        custom_endpoint: Caller-supplied base URL or full endpoint

    Returns:
        Full endpoint URL

    Raises:
        ProviderException: If a self-hosted provider has no custom endpoint,
            or the provider is unknown and no custom endpoint was given
    """
    if custom_endpoint:
        normalized = custom_endpoint.strip().rstrip("/")
        if normalized.endswith(_CHAT_COMPLETIONS_PATH) or normalized.endswith(
            _MESSAGES_PATH
        ):
            return normalized
        path = _MESSAGES_PATH if provider == "anthropic" else _CHAT_COMPLETIONS_PATH
        if normalized.endswith("/v1"):
            return f"{normalized}{path}"
        return f"{normalized}/v1{path}"

    if provider_requires_endpoint(provider):
        raise ProviderException(
            f"Provider '{provider}' is self-hosted; an endpoint URL is required",
            provider=provider,
        )
    if provider not in PROVIDER_ENDPOINTS:
        raise ProviderException(f"Unknown provider: {provider}", provider=provider)
    return PROVIDER_ENDPOINTS[provider]


def get_provider_headers(provider: str, api_key: str | None = None) -> dict[str, str]:
    """Build request headers for a provider.

    ``Content-Type: application/json`` is always present. Anthropic uses
    ``x-api-key`` plus a pinned ``anthropic-version``; everyone else uses a
    bearer token when a key is given. OpenRouter also gets attribution headers.
    """
    headers: dict[str, str] = {"Content-Type": "application/json"}

    if provider == "anthropic":
        if api_key:
            headers["x-api-key"] = api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return headers

    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    if provider == "openrouter":
        headers["HTTP-Referer"] = OPENROUTER_REFERER
        headers["X-Title"] = OPENROUTER_TITLE
    return headers


class MediaContent(BaseModel):
    """Media payload for an image or PDF probe.

    Either ``base64`` (with ``mime_type``) or a complete ``data_url`` is set.
    """

    base64: str | None = None
    data_url: str | None = None
    mime_type: str | None = None

    def as_data_url(self, default_mime: str) -> str:
        """Return the payload as a ``data:`` URL."""
        if self.data_url:
            return self.data_url
        return f"data:{self.mime_type or default_mime};base64,{self.base64 or ''}"

    def raw_base64(self) -> str:
        """Return the bare base64 payload."""
        if self.base64:
            return self.base64
        if self.data_url and "," in self.data_url:
            return self.data_url.split(",", 1)[1]
        return ""


def build_messages(
    provider: str,
    prompt: str,
    content_type: ContentType,
    media: MediaContent | None = None,
    images_first: bool = False,
) -> list[dict[str, Any]]:
    """Build the ``messages`` array for a probe request.

    Text probes are a single user message with string content for every
    provider. Image and PDF probes carry a two-part content array whose part
    shape depends on the provider family and whose order follows
    ``images_first``.
    """
    if content_type == "text" or media is None:
        return [{"role": "user", "content": prompt}]

    if provider == "anthropic":
        text_part, media_part = _anthropic_parts(prompt, content_type, media)
    else:
        # Gemini is probed through its OpenAI-compatible endpoint
        text_part, media_part = _openai_parts(prompt, content_type, media)

    parts = [media_part, text_part] if images_first else [text_part, media_part]
    return [{"role": "user", "content": parts}]


def _openai_parts(
    prompt: str, content_type: ContentType, media: MediaContent
) -> tuple[dict[str, Any], dict[str, Any]]:
    text_part = {"type": "text", "text": prompt}
    if content_type == "image":
        media_part = {
            "type": "image_url",
            "image_url": {"url": media.as_data_url("image/png")},
        }
    else:
        media_part = {
            "type": "file",
            "file": {
                "url": media.as_data_url("application/pdf"),
                "type": media.mime_type or "application/pdf",
            },
        }
    return text_part, media_part


def _anthropic_parts(
    prompt: str, content_type: ContentType, media: MediaContent
) -> tuple[dict[str, Any], dict[str, Any]]:
    text_part = {"type": "text", "text": prompt}
    default_mime = "image/png" if content_type == "image" else "application/pdf"
    media_part = {
        "type": "image" if content_type == "image" else "document",
        "source": {
            "type": "base64",
            "media_type": media.mime_type or default_mime,
            "data": media.raw_base64(),
        },
    }
    return text_part, media_part


def build_request_body(
    provider: str,
    model: str,
    messages: list[dict[str, Any]],
    max_tokens: int = 50,
    stream: bool = False,
) -> dict[str, Any]:
    """Build a minimal completion request body.

    OpenAI's newer models reject ``max_tokens`` and need
    ``max_completion_tokens``; every other provider takes ``max_tokens``.
    """
    limit_field = "max_completion_tokens" if provider == "openai" else "max_tokens"
    return {
        "model": model,
        "messages": messages,
        limit_field: max_tokens,
        "stream": stream,
    }


def get_api_key_from_env(provider: str) -> str | None:
    """Look up the provider's API key environment variable.

    Returns:
        The key, or None when the variable is unset or the provider unknown
    """
    env_var = API_KEY_ENV_VARS.get(provider)
    if env_var is None:
        return None
    return os.getenv(env_var) or None


def load_api_keys_from_file(file_path: str | Path) -> dict[str, str]:
    """Load API keys from a JSON file of the form ``{"openai": "sk-..."}``.

    Unknown providers and non-string values are ignored. A missing or
    unreadable file yields an empty mapping.
    """
    path = Path(file_path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read API keys file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("API keys file %s is not a JSON object", path)
        return {}

    return {
        provider: value
        for provider, value in data.items()
        if is_valid_provider(provider) and isinstance(value, str)
    }


def infer_message_shape(provider: str) -> MessageShape:
    """Message format a provider family is known to accept."""
    if provider == "anthropic":
        return "anthropic.content"
    if provider == "gemini":
        return "gemini.parts"
    if provider == "minimax":
        return "openai.string"
    if provider in KNOWN_PROVIDERS:
        return "openai.parts"
    return "unknown"


def infer_completion_shape(provider: str) -> CompletionShape:
    """Streaming response format a provider family is known to produce."""
    if provider == "anthropic":
        return "anthropic.sse"
    if provider == "gemini":
        return "gemini.streaming"
    if provider in KNOWN_PROVIDERS:
        return "openai.streaming"
    return "unknown"
