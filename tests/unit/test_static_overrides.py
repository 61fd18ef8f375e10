"""Unit tests for the static override table and provider defaults."""

import pytest

from llm_capability_probe.cache.static_overrides import (
    PROVIDER_DEFAULTS,
    get_provider_defaults,
    get_static_override,
)
from llm_capability_probe.probing.inference import get_default_capabilities
from llm_capability_probe.providers.adapters import KNOWN_PROVIDERS


class TestStaticOverrides:
    """Test regex-based static overrides."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "provider,model,shape",
        [
            ("openai", "gpt-4o-mini", "openai.parts"),
            ("openai", "gpt-4-vision-preview", "openai.parts"),
            ("anthropic", "claude-3-5-sonnet-20241022", "anthropic.content"),
            ("gemini", "gemini-1.5-pro", "gemini.parts"),
            ("xai", "grok-2-vision", "openai.parts"),
            ("ollama", "LLaVA:13b", "openai.parts"),
            ("ollama", "llama3.2-vision", "openai.parts"),
        ],
    )
    def test_known_families(self, provider: str, model: str, shape: str) -> None:
        override = get_static_override(provider, model)

        assert override is not None
        assert override.supports_vision is True
        assert override.message_shape == shape

    @pytest.mark.unit
    def test_provider_must_match(self) -> None:
        assert get_static_override("openrouter", "gpt-4o") is None
        assert get_static_override("lmstudio", "llava") is None

    @pytest.mark.unit
    def test_pattern_anchoring(self) -> None:
        assert get_static_override("openai", "gpt-3.5-turbo") is None
        assert get_static_override("openai", "ft:gpt-4o") is None

    @pytest.mark.unit
    def test_partial_override_leaves_fields_unset(self) -> None:
        override = get_static_override("xai", "grok-beta")

        assert override is not None
        assert override.requires_base64_images is None
        assert "requires_base64_images" not in override.set_fields()


class TestProviderDefaults:
    """Test per-provider baseline vectors."""

    @pytest.mark.unit
    def test_every_known_provider_has_defaults(self) -> None:
        assert set(PROVIDER_DEFAULTS) == set(KNOWN_PROVIDERS)

    @pytest.mark.unit
    def test_defaults_are_total(self) -> None:
        assert get_provider_defaults("not-a-provider") == get_default_capabilities()

    @pytest.mark.unit
    def test_self_hosted_require_base64(self) -> None:
        for provider in ("ollama", "lmstudio", "vllm", "local-openai-compatible"):
            assert get_provider_defaults(provider).requires_base64_images

    @pytest.mark.unit
    def test_returned_defaults_are_copies(self) -> None:
        defaults = get_provider_defaults("anthropic")
        defaults.supports_vision = False

        assert get_provider_defaults("anthropic").supports_vision is True
