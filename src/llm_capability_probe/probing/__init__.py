"""Active capability probing: HTTP client, variant search and inference.

This package sends small test requests to a provider endpoint and turns the
outcomes into a ``ProbedCapabilities`` vector:
- ``client``: deadline-bounded requests, error classification, retry series
- ``transport``: pluggable HTTP transports and cancellation tokens
- ``probes``: text, image, PDF, schema and streaming probes
- ``inference``: full model runs, bulk runs and result summaries
"""

from .client import (
    SCHEMA_ERROR_RULES,
    ProbeError,
    RetryPolicy,
    SchemaErrorRule,
    attempt_from_response,
    detect_schema_error,
    execute_probe_with_retry,
    is_feature_not_supported_error,
    make_probe_request,
    match_schema_rule,
    parse_probe_error,
    response_has_content,
)
from .inference import (
    PROBE_VERSION,
    get_default_capabilities,
    infer_capabilities,
    probe_model,
    probe_models,
    summarize_probe_result,
)
from .probes import (
    DEFAULT_IMAGE_VARIANTS,
    DEFAULT_PDF_VARIANTS,
    ProbeTarget,
    detect_streaming_shape,
    probe_image,
    probe_pdf,
    probe_schema,
    probe_streaming,
    probe_text,
    search_variants,
)
from .transport import (
    CancellationToken,
    FakeTransport,
    HttpTransport,
    RequestsTransport,
    json_response,
)
from .types import (
    DEFAULT_PROBE_CONFIG,
    MediaVariant,
    ModelProbeResult,
    PartialCapabilities,
    ProbeAttemptResult,
    ProbeConfig,
    ProbedCapabilities,
    ProbeProgress,
    ProbeRequestSpec,
    ProbeResponse,
    ProbeSummary,
    RetrySeries,
    SubProbeResult,
)

__all__ = [
    # Client
    "SCHEMA_ERROR_RULES",
    "ProbeError",
    "RetryPolicy",
    "SchemaErrorRule",
    "attempt_from_response",
    "detect_schema_error",
    "execute_probe_with_retry",
    "is_feature_not_supported_error",
    "make_probe_request",
    "match_schema_rule",
    "parse_probe_error",
    "response_has_content",
    # Inference
    "PROBE_VERSION",
    "get_default_capabilities",
    "infer_capabilities",
    "probe_model",
    "probe_models",
    "summarize_probe_result",
    # Probes
    "DEFAULT_IMAGE_VARIANTS",
    "DEFAULT_PDF_VARIANTS",
    "ProbeTarget",
    "detect_streaming_shape",
    "probe_image",
    "probe_pdf",
    "probe_schema",
    "probe_streaming",
    "probe_text",
    "search_variants",
    # Transport
    "CancellationToken",
    "FakeTransport",
    "HttpTransport",
    "RequestsTransport",
    "json_response",
    # Types
    "DEFAULT_PROBE_CONFIG",
    "MediaVariant",
    "ModelProbeResult",
    "PartialCapabilities",
    "ProbeAttemptResult",
    "ProbeConfig",
    "ProbedCapabilities",
    "ProbeProgress",
    "ProbeRequestSpec",
    "ProbeResponse",
    "ProbeSummary",
    "RetrySeries",
    "SubProbeResult",
]
