"""Unit tests for configuration utilities."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from llm_capability_probe.exceptions import ConfigurationException
from llm_capability_probe.utils.config import (
    get_available_providers,
    get_config_home,
    get_default_cache_path,
    get_default_keys_path,
    get_default_quick_list_path,
    get_probe_config,
    load_environment,
    resolve_api_keys,
)

_PROBE_ENV_VARS = (
    "LLM_PROBE_TIMEOUT_MS",
    "LLM_PROBE_MAX_RETRIES",
    "LLM_PROBE_RETRY_DELAY_MS",
    "LLM_PROBE_CONCURRENCY",
    "LLM_PROBE_SKIP_STREAMING",
)
_KEY_ENV_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "XAI_API_KEY",
    "OPENROUTER_API_KEY",
    "FIREWORKS_API_KEY",
    "MINIMAX_API_KEY",
    "OLLAMA_API_KEY",
    "LMSTUDIO_API_KEY",
    "VLLM_API_KEY",
    "LOCAL_OPENAI_API_KEY",
)


@pytest.fixture
def clean_env(monkeypatch: Any) -> Any:
    """Remove probe settings and API keys from the environment."""
    for name in _PROBE_ENV_VARS + _KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfigurationUtils:
    """Test configuration utility functions."""

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_load_environment(self, mock_load_dotenv: Any) -> None:
        """Test loading environment variables."""
        load_environment()
        mock_load_dotenv.assert_called_once()

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_probe_config_defaults(self, mock_load_dotenv: Any, clean_env: Any) -> None:
        config = get_probe_config()

        assert config.timeout_ms == 15000
        assert config.max_retries == 2
        assert config.retry_delay_ms == 500
        assert config.skip_streaming_probe is True
        assert config.verbose_logging is False
        assert config.concurrency == 4

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_probe_config_from_environment(
        self, mock_load_dotenv: Any, clean_env: Any
    ) -> None:
        clean_env.setenv("LLM_PROBE_TIMEOUT_MS", "5000")
        clean_env.setenv("LLM_PROBE_MAX_RETRIES", "0")
        clean_env.setenv("LLM_PROBE_CONCURRENCY", "8")
        clean_env.setenv("LLM_PROBE_SKIP_STREAMING", "false")

        config = get_probe_config()

        assert config.timeout_ms == 5000
        assert config.max_retries == 0
        assert config.concurrency == 8
        assert config.skip_streaming_probe is False

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_keyword_overrides_win(self, mock_load_dotenv: Any, clean_env: Any) -> None:
        clean_env.setenv("LLM_PROBE_TIMEOUT_MS", "5000")

        config = get_probe_config(timeout_ms=100, concurrency=None)

        assert config.timeout_ms == 100
        assert config.concurrency == 4

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    @pytest.mark.parametrize(
        "name,value",
        [
            ("LLM_PROBE_TIMEOUT_MS", "fast"),
            ("LLM_PROBE_MAX_RETRIES", "-1"),
            ("LLM_PROBE_SKIP_STREAMING", "maybe"),
        ],
    )
    def test_invalid_environment_value(
        self, mock_load_dotenv: Any, clean_env: Any, name: str, value: str
    ) -> None:
        clean_env.setenv(name, value)

        with pytest.raises(ConfigurationException) as exc_info:
            get_probe_config()

        assert exc_info.value.config_key == name
        assert exc_info.value.config_value == value

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_invalid_override(self, mock_load_dotenv: Any, clean_env: Any) -> None:
        with pytest.raises(ConfigurationException, match="Invalid probe configuration"):
            get_probe_config(concurrency=0)


class TestPaths:
    """Test default file locations."""

    @pytest.mark.unit
    def test_home_override(self, isolated_home: Path) -> None:
        assert get_config_home() == isolated_home
        assert get_default_cache_path() == isolated_home / "model-capabilities.probed.json"
        assert get_default_keys_path() == isolated_home / "keys.json"
        assert get_default_quick_list_path() == isolated_home / "quick-list.json"

    @pytest.mark.unit
    def test_default_home(self, monkeypatch: Any) -> None:
        monkeypatch.delenv("LLM_PROBE_HOME", raising=False)

        assert get_config_home() == Path.home() / ".llm-tabs"


class TestApiKeys:
    """Test API key discovery."""

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_environment_overrides_keys_file(
        self, mock_load_dotenv: Any, clean_env: Any, isolated_home: Path
    ) -> None:
        (isolated_home / "keys.json").write_text(
            json.dumps({"openai": "file-openai", "anthropic": "file-anthropic"}),
            encoding="utf-8",
        )
        clean_env.setenv("OPENAI_API_KEY", "env-openai")

        keys = resolve_api_keys()

        assert keys == {"openai": "env-openai", "anthropic": "file-anthropic"}

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_explicit_keys_file(
        self, mock_load_dotenv: Any, clean_env: Any, tmp_path: Path
    ) -> None:
        keys_file = tmp_path / "my-keys.json"
        keys_file.write_text(json.dumps({"xai": "xai-key"}), encoding="utf-8")

        assert resolve_api_keys(keys_file) == {"xai": "xai-key"}

    @pytest.mark.unit
    @patch("llm_capability_probe.utils.config.load_dotenv")
    def test_get_available_providers(
        self, mock_load_dotenv: Any, clean_env: Any, isolated_home: Path
    ) -> None:
        clean_env.setenv("ANTHROPIC_API_KEY", "test-anthropic-key")

        providers = get_available_providers()

        assert providers["anthropic"] is True
        assert providers["openai"] is False
        # Self-hosted providers need no key
        assert providers["ollama"] is True
