"""Read-only capability knowledge: static model overrides and provider defaults."""

import re
from dataclasses import dataclass

from llm_capability_probe.probing.inference import get_default_capabilities
from llm_capability_probe.probing.types import PartialCapabilities, ProbedCapabilities


@dataclass(frozen=True)
class StaticCapabilityOverride:
    """Known capabilities for models whose id matches ``pattern``.

    Args:
        pattern: Regular expression searched in the model id
        capabilities: Fields to set; unset fields fall through to defaults
        provider: Only apply to this provider when set
    """

    pattern: re.Pattern[str]
    capabilities: PartialCapabilities
    provider: str | None = None

    def matches(self, provider: str, model: str) -> bool:
        if self.provider is not None and self.provider != provider:
            return False
        return self.pattern.search(model) is not None


STATIC_OVERRIDES: tuple[StaticCapabilityOverride, ...] = (
    StaticCapabilityOverride(
        pattern=re.compile(r"^gpt-4o"),
        provider="openai",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_native=False,
            supports_pdf_as_images=True,
            requires_base64_images=False,
            requires_images_first=False,
            message_shape="openai.parts",
        ),
    ),
    StaticCapabilityOverride(
        pattern=re.compile(r"^gpt-4-vision"),
        provider="openai",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_native=False,
            supports_pdf_as_images=True,
            requires_base64_images=False,
            message_shape="openai.parts",
        ),
    ),
    StaticCapabilityOverride(
        pattern=re.compile(r"^claude-3"),
        provider="anthropic",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_native=True,
            supports_pdf_as_images=True,
            requires_base64_images=True,
            requires_images_first=False,
            message_shape="anthropic.content",
        ),
    ),
    StaticCapabilityOverride(
        pattern=re.compile(r"^gemini"),
        provider="gemini",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_native=False,
            supports_pdf_as_images=True,
            requires_base64_images=False,
            message_shape="gemini.parts",
        ),
    ),
    StaticCapabilityOverride(
        pattern=re.compile(r"^grok"),
        provider="xai",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_native=False,
            supports_pdf_as_images=True,
            message_shape="openai.parts",
        ),
    ),
    StaticCapabilityOverride(
        pattern=re.compile(r"llava|vision|bakllava", re.IGNORECASE),
        provider="ollama",
        capabilities=PartialCapabilities(
            supports_vision=True,
            supports_pdf_as_images=True,
            message_shape="openai.parts",
        ),
    ),
)


def get_static_override(provider: str, model: str) -> PartialCapabilities | None:
    """Return the first static override matching the pair, if any."""
    for override in STATIC_OVERRIDES:
        if override.matches(provider, model):
            return override.capabilities
    return None


def _openai_compatible(
    requires_base64_images: bool = False,
    message_shape: str = "openai.parts",
) -> ProbedCapabilities:
    return ProbedCapabilities(
        supports_vision=False,
        supports_pdf_native=False,
        supports_pdf_as_images=False,
        requires_base64_images=requires_base64_images,
        requires_images_first=False,
        message_shape=message_shape,
        completion_shape="openai.streaming",
    )


PROVIDER_DEFAULTS: dict[str, ProbedCapabilities] = {
    # Vision depends on the model; static overrides or probes turn it on
    "openai": _openai_compatible(),
    "anthropic": ProbedCapabilities(
        supports_vision=True,
        supports_pdf_native=True,
        supports_pdf_as_images=True,
        requires_base64_images=True,
        requires_images_first=False,
        message_shape="anthropic.content",
        completion_shape="anthropic.sse",
    ),
    "gemini": ProbedCapabilities(
        supports_vision=True,
        supports_pdf_native=False,
        supports_pdf_as_images=True,
        requires_base64_images=False,
        requires_images_first=False,
        message_shape="gemini.parts",
        completion_shape="gemini.streaming",
    ),
    "xai": ProbedCapabilities(
        supports_vision=True,
        supports_pdf_native=False,
        supports_pdf_as_images=True,
        requires_base64_images=False,
        requires_images_first=False,
        message_shape="openai.parts",
        completion_shape="openai.streaming",
    ),
    "openrouter": _openai_compatible(),
    "fireworks": _openai_compatible(),
    "ollama": _openai_compatible(requires_base64_images=True),
    "lmstudio": _openai_compatible(requires_base64_images=True),
    "vllm": _openai_compatible(requires_base64_images=True),
    "minimax": _openai_compatible(message_shape="openai.string"),
    "local-openai-compatible": _openai_compatible(requires_base64_images=True),
}


def get_provider_defaults(provider: str) -> ProbedCapabilities:
    """Full baseline vector for a provider family.

    Unknown providers get the conservative defaults.
    """
    defaults = PROVIDER_DEFAULTS.get(provider)
    if defaults is None:
        return get_default_capabilities()
    return defaults.model_copy()
