"""Records exchanged by the probe client, variant search and capability cache.

Field names are snake_case in Python and camelCase on the wire and on disk
(``supportsVision``, ``probedAt``), matching the cache file format shared with
the desktop application.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageShape = Literal[
    "openai.parts",
    "openai.string",
    "anthropic.content",
    "gemini.parts",
    "provider.custom",
    "unknown",
]

CompletionShape = Literal[
    "openai.streaming",
    "openai.chunks",
    "anthropic.sse",
    "gemini.streaming",
    "raw.text",
    "unknown",
]

CapabilitySource = Literal[
    "local-override", "probed", "static-override", "provider-default"
]

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_FROZEN_CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel, populate_by_name=True, frozen=True
)


class ProbeConfig(BaseModel):
    """Settings for one probing session.

    Attributes:
        timeout_ms: Hard deadline for each HTTP exchange
        max_retries: Extra attempts per variant after the first one
        retry_delay_ms: Pause between attempts of one variant
        skip_streaming_probe: Infer the completion shape instead of probing it
        verbose_logging: Log every attempt at INFO instead of DEBUG
        concurrency: Maximum number of models probed at once
    """

    model_config = _CAMEL_CONFIG

    timeout_ms: int = Field(default=15000, gt=0, description="Per-request deadline")
    max_retries: int = Field(default=2, ge=0, description="Retries per variant")
    retry_delay_ms: int = Field(default=500, ge=0, description="Delay between tries")
    skip_streaming_probe: bool = Field(
        default=True, description="Skip the streaming probe to save API calls"
    )
    verbose_logging: bool = Field(default=False, description="Log every attempt")
    concurrency: int = Field(default=4, ge=1, description="Models probed at once")


DEFAULT_PROBE_CONFIG = ProbeConfig()


class ProbeRequestSpec(BaseModel):
    """Stateless prototype of one HTTP exchange."""

    model_config = _FROZEN_CAMEL_CONFIG

    url: str
    method: Literal["POST", "GET"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any | None = None
    stream: bool = False


class ProbeResponse(BaseModel):
    """Uniform response envelope returned by every transport.

    ``status`` is 0 when no HTTP response was received at all (deadline,
    cancellation or network failure); ``status_text`` then says which.
    """

    model_config = _CAMEL_CONFIG

    status: int
    status_text: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    body_json: Any | None = None
    stream_started: bool = False

    @property
    def ok(self) -> bool:
        """Whether the exchange produced a 2xx response."""
        return 200 <= self.status < 300


class ProbeAttemptResult(BaseModel):
    """One classified outcome of a single HTTP exchange."""

    model_config = _FROZEN_CAMEL_CONFIG

    success: bool
    http_status: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    schema_error: str | None = Field(
        default=None, description="Label of the matched schema error rule"
    )
    response_started: bool | None = None
    content_generated: bool | None = None
    latency_ms: int | None = None


class RetrySeries(BaseModel):
    """Bounded attempt sequence for one variant.

    ``results`` holds ``max_retries + 1`` entries unless an attempt succeeded
    early.
    """

    model_config = _FROZEN_CAMEL_CONFIG

    final_success: bool
    results: list[ProbeAttemptResult] = Field(default_factory=list)

    @property
    def last_result(self) -> ProbeAttemptResult:
        """The attempt that ended the series."""
        return self.results[-1]


class MediaVariant(BaseModel):
    """One request-encoding strategy for image or PDF content."""

    model_config = _FROZEN_CAMEL_CONFIG

    use_base64: bool
    images_first: bool
    as_pdf_images: bool | None = None


class SubProbeResult(BaseModel):
    """Aggregate of every variant tried for one capability dimension."""

    model_config = _FROZEN_CAMEL_CONFIG

    primary_result: ProbeAttemptResult
    retry_results: list[ProbeAttemptResult] = Field(default_factory=list)
    final_success: bool
    successful_variant: MediaVariant | None = None


class ProbedCapabilities(BaseModel):
    """Capability vector consumed by the request builder."""

    model_config = _CAMEL_CONFIG

    supports_vision: bool = Field(description="Can process image content")
    supports_pdf_native: bool = Field(description="Can process PDF files directly")
    supports_pdf_as_images: bool = Field(
        description="Can process PDFs rasterized as images"
    )
    requires_base64_images: bool = Field(description="Must use base64, not URLs")
    requires_images_first: bool = Field(
        description="Images must come before text in content"
    )
    message_shape: MessageShape = Field(description="Accepted message format")
    completion_shape: CompletionShape = Field(description="Response stream format")


class PartialCapabilities(BaseModel):
    """A capability vector where any field may be left unset.

    Used by local overrides and the static override table. Unset fields are
    ``None`` and never erase values coming from a lower precedence tier. Unknown
    keys are rejected so a misspelt override fails loudly.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid"
    )

    supports_vision: bool | None = None
    supports_pdf_native: bool | None = None
    supports_pdf_as_images: bool | None = None
    requires_base64_images: bool | None = None
    requires_images_first: bool | None = None
    message_shape: MessageShape | None = None
    completion_shape: CompletionShape | None = None

    def set_fields(self) -> dict[str, Any]:
        """Return only the fields that carry a value."""
        return self.model_dump(exclude_none=True)

    def is_empty(self) -> bool:
        """Whether no field carries a value."""
        return not self.set_fields()


class ModelProbeResult(BaseModel):
    """Immutable record of one full probing run for a (provider, model) pair."""

    model_config = _FROZEN_CAMEL_CONFIG

    provider: str
    model: str
    probed_at: int = Field(description="Unix timestamp in milliseconds")
    text_probe: ProbeAttemptResult
    image_probe: SubProbeResult
    pdf_probe: SubProbeResult
    schema_probe: ProbeAttemptResult | None = None
    streaming_probe: ProbeAttemptResult | None = None
    capabilities: ProbedCapabilities
    probe_version: str
    total_probe_time_ms: int


class ProbeSummary(BaseModel):
    """Human-oriented digest of a probe run."""

    model_config = _CAMEL_CONFIG

    success: bool
    vision: Literal["yes", "partial", "no"]
    pdf: Literal["native", "images", "no"]
    issues: list[str] = Field(default_factory=list)


class ProbeProgress(BaseModel):
    """Progress notification emitted while probing several models."""

    model_config = _CAMEL_CONFIG

    current: int
    total: int
    provider: str
    model: str
    status: Literal["probing", "done", "error", "cancelled"]
