"""Shared pytest configuration and fixtures for the test suite."""

import os
from typing import Any

import pytest

from llm_capability_probe.probing.transport import FakeTransport, json_response
from llm_capability_probe.probing.types import (
    MediaVariant,
    ModelProbeResult,
    ProbeAttemptResult,
    ProbeConfig,
    ProbedCapabilities,
    ProbeResponse,
    SubProbeResult,
)
from llm_capability_probe.probing.probes import ProbeTarget

IS_CI = os.getenv("CI", "false").lower() == "true"


def completion_response(text: str = "OK") -> ProbeResponse:
    """A successful OpenAI-style chat completion."""
    return json_response(200, {"choices": [{"message": {"content": text}}]})


def error_response(status: int, message: str, code: str | None = None) -> ProbeResponse:
    """An OpenAI-style error envelope."""
    error: dict[str, Any] = {"message": message, "type": "invalid_request_error"}
    if code is not None:
        error["code"] = code
    return json_response(status, {"error": error})


def is_media_request(body: Any, part_type: str) -> bool:
    """Whether a request body carries a content part of ``part_type``."""
    content = body["messages"][0]["content"]
    return isinstance(content, list) and any(
        part.get("type") == part_type for part in content
    )


def make_probe_result(
    provider: str = "openai",
    model: str = "gpt-4o",
    probed_at: int = 1_700_000_000_000,
    text_success: bool = True,
    text_error: str | None = None,
    **capabilities: Any,
) -> ModelProbeResult:
    """Build a ModelProbeResult with default capabilities overridden."""
    caps = {
        "supports_vision": False,
        "supports_pdf_native": False,
        "supports_pdf_as_images": False,
        "requires_base64_images": True,
        "requires_images_first": False,
        "message_shape": "openai.parts",
        "completion_shape": "openai.streaming",
    }
    caps.update(capabilities)
    sub = SubProbeResult(
        primary_result=ProbeAttemptResult(success=True, http_status=200),
        final_success=True,
        successful_variant=MediaVariant(use_base64=True, images_first=False),
    )
    return ModelProbeResult(
        provider=provider,
        model=model,
        probed_at=probed_at,
        text_probe=ProbeAttemptResult(
            success=text_success,
            http_status=200 if text_success else 404,
            error_message=text_error,
        ),
        image_probe=sub,
        pdf_probe=sub,
        capabilities=ProbedCapabilities(**caps),
        probe_version="1.0.0",
        total_probe_time_ms=10,
    )


@pytest.fixture
def fast_config() -> ProbeConfig:
    """Probe configuration with no retry delay and a short deadline."""
    return ProbeConfig(timeout_ms=2000, max_retries=2, retry_delay_ms=0)


@pytest.fixture
def openai_target() -> ProbeTarget:
    return ProbeTarget(provider="openai", model="gpt-4o", api_key="test-api-key-12345")


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Transport answering every request with a successful completion."""
    return FakeTransport(handler=lambda spec: completion_response())


@pytest.fixture
def sample_api_key() -> str:
    """Sample API key for testing."""
    return "test-api-key-12345"


@pytest.fixture
def isolated_home(tmp_path: Any, monkeypatch: Any) -> Any:
    """Point the config home at a temporary directory."""
    monkeypatch.setenv("LLM_PROBE_HOME", str(tmp_path))
    return tmp_path


class SecureTestConfig:
    """Test configuration that doesn't expose API keys in repr."""

    def __init__(self, openai_key: str | None, anthropic_key: str | None) -> None:
        self._openai_key = openai_key
        self._anthropic_key = anthropic_key

    def __getitem__(self, key: str) -> Any:
        if key == "openai_api_key":
            return self._openai_key
        elif key == "anthropic_api_key":
            return self._anthropic_key
        else:
            raise KeyError(key)

    def __repr__(self) -> str:
        return "SecureTestConfig(keys_available=True)"


@pytest.fixture
def integration_test_setup() -> SecureTestConfig:
    """Setup fixture for integration tests - requires real API keys."""
    openai_key = os.getenv("OPENAI_API_KEY")
    anthropic_key = os.getenv("ANTHROPIC_API_KEY")

    if not openai_key and not anthropic_key:
        pytest.skip(
            "Integration tests require real API keys. Set OPENAI_API_KEY or "
            "ANTHROPIC_API_KEY environment variables."
        )

    return SecureTestConfig(openai_key=openai_key, anthropic_key=anthropic_key)
