"""LLM Capability Probe - empirical vision and PDF capability detection."""

__version__ = "0.1.0"

# Custom exceptions
from .exceptions import (
    CacheFormatException,
    CapabilityProbeException,
    ConfigurationException,
    ProbeCancelledException,
    ProviderException,
)

# Probing
from .probing import (
    DEFAULT_PROBE_CONFIG,
    CancellationToken,
    FakeTransport,
    HttpTransport,
    ModelProbeResult,
    ProbeConfig,
    ProbedCapabilities,
    ProbeSummary,
    ProbeTarget,
    RequestsTransport,
    probe_model,
    probe_models,
    summarize_probe_result,
)

# Capability resolution
from .cache import (
    CapabilityCache,
    attach_file_persistence,
    get_provider_defaults,
    get_static_override,
    make_cache_key,
    parse_cache_key,
)

# Configuration utilities
from .utils import get_available_providers, get_probe_config, load_environment

__all__ = [
    "__version__",
    "CapabilityProbeException",
    "ProviderException",
    "ConfigurationException",
    "ProbeCancelledException",
    "CacheFormatException",
    "DEFAULT_PROBE_CONFIG",
    "ProbeConfig",
    "ProbeTarget",
    "ProbedCapabilities",
    "ModelProbeResult",
    "ProbeSummary",
    "CancellationToken",
    "HttpTransport",
    "RequestsTransport",
    "FakeTransport",
    "probe_model",
    "probe_models",
    "summarize_probe_result",
    "CapabilityCache",
    "attach_file_persistence",
    "get_provider_defaults",
    "get_static_override",
    "make_cache_key",
    "parse_cache_key",
    "get_available_providers",
    "get_probe_config",
    "load_environment",
]
