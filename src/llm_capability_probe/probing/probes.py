"""Individual probes and the media variant search.

Each probe sends small, cheap requests built by the provider adapters. Image
and PDF support are found by trying an ordered list of ``MediaVariant``
encodings, each with its own full retry series, until one works.
"""

import json
import logging
import re
import time
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from llm_capability_probe.probing.client import (
    attempt_from_response,
    execute_probe_with_retry,
    is_definitive_failure,
    make_probe_request,
)
from llm_capability_probe.probing.fixtures import (
    PROBE_PROMPTS,
    TINY_PDF_BASE64,
    TINY_PDF_MIME_TYPE,
    TINY_PNG_BASE64,
    TINY_PNG_MIME_TYPE,
    get_tiny_pdf_data_url,
    get_tiny_png_data_url,
)
from llm_capability_probe.probing.transport import CancellationToken, HttpTransport
from llm_capability_probe.probing.types import (
    CompletionShape,
    MediaVariant,
    MessageShape,
    ProbeAttemptResult,
    ProbeConfig,
    ProbeRequestSpec,
    RetrySeries,
    SubProbeResult,
)
from llm_capability_probe.providers.adapters import (
    ContentType,
    MediaContent,
    build_messages,
    build_request_body,
    get_provider_endpoint,
    get_provider_headers,
    infer_completion_shape,
    infer_message_shape,
)

logger = logging.getLogger(__name__)

PROBE_MAX_TOKENS = 50

DEFAULT_IMAGE_VARIANTS: tuple[MediaVariant, ...] = (
    MediaVariant(use_base64=True, images_first=False),
    MediaVariant(use_base64=True, images_first=True),
    MediaVariant(use_base64=False, images_first=False),
    MediaVariant(use_base64=False, images_first=True),
)

DEFAULT_PDF_VARIANTS: tuple[MediaVariant, ...] = (
    MediaVariant(use_base64=True, images_first=False, as_pdf_images=False),
    MediaVariant(use_base64=True, images_first=False, as_pdf_images=True),
)


class ProbeTarget(BaseModel):
    """The (provider, model) pair being probed and how to reach it."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    api_key: str | None = Field(default=None, repr=False)
    endpoint: str | None = None

    @property
    def cache_key(self) -> str:
        return f"{self.provider}:{self.model}"


def _send(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None,
    token: CancellationToken | None,
    prompt: str,
    content_type: ContentType = "text",
    media: MediaContent | None = None,
    images_first: bool = False,
    stream: bool = False,
) -> tuple[ProbeAttemptResult, str]:
    spec = ProbeRequestSpec(
        url=get_provider_endpoint(target.provider, target.endpoint),
        method="POST",
        headers=get_provider_headers(target.provider, target.api_key),
        body=build_request_body(
            target.provider,
            target.model,
            build_messages(target.provider, prompt, content_type, media, images_first),
            max_tokens=PROBE_MAX_TOKENS,
            stream=stream,
        ),
        stream=stream,
    )
    start = time.monotonic()
    response = make_probe_request(spec, config, transport=transport, token=token)
    latency_ms = int((time.monotonic() - start) * 1000)
    result = attempt_from_response(response, latency_ms)

    log = logger.info if config.verbose_logging else logger.debug
    log(
        "%s %s probe: success=%s status=%s latency=%dms",
        target.cache_key,
        content_type,
        result.success,
        result.http_status,
        latency_ms,
    )
    return result, response.body


def _cancelled_result() -> ProbeAttemptResult:
    return ProbeAttemptResult(success=False, http_status=0, error_message="Cancelled")


def _final_attempt(series: RetrySeries) -> ProbeAttemptResult:
    return series.last_result if series.results else _cancelled_result()


def _retry_unless_definitive(result: ProbeAttemptResult) -> bool:
    return not result.success and not is_definitive_failure(result)


def probe_text(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
) -> ProbeAttemptResult:
    """Sanity probe: a plain text completion must work before anything else."""
    series = execute_probe_with_retry(
        lambda: _send(target, config, transport, token, PROBE_PROMPTS["text"])[0],
        config,
        token=token,
    )
    return _final_attempt(series)


def search_variants(
    variants: Sequence[MediaVariant],
    run_variant: Callable[[MediaVariant], ProbeAttemptResult],
    config: ProbeConfig,
    token: CancellationToken | None = None,
    should_retry: Callable[[ProbeAttemptResult], bool] | None = None,
) -> SubProbeResult:
    """Try each variant with a full retry series until one succeeds.

    Variants are tried in order, one complete series at a time, and every
    variant is tried before giving up. A definitive feature-absence error ends
    the current variant's series early but not the search.

    Args:
        variants: Ordered encoding strategies to try
        run_variant: Performs one attempt for a given variant
        config: Supplies the retry budget and delay
        token: Optional cancellation token
        should_retry: Overrides the per-attempt retry decision

    Returns:
        ``primary_result`` is the attempt that ended the first variant's
        series; ``retry_results`` holds every attempt made for later variants.
    """
    retry = should_retry or _retry_unless_definitive
    primary: ProbeAttemptResult | None = None
    retry_results: list[ProbeAttemptResult] = []

    for variant in variants:
        if token is not None and token.cancelled:
            break
        series = execute_probe_with_retry(
            lambda v=variant: run_variant(v), config, should_retry=retry, token=token
        )
        if not series.results:
            break

        if primary is None:
            primary = series.last_result
        else:
            retry_results.extend(series.results)

        if series.final_success:
            return SubProbeResult(
                primary_result=primary,
                retry_results=retry_results,
                final_success=True,
                successful_variant=variant,
            )

    if primary is None:
        primary = (
            _cancelled_result()
            if token is not None and token.cancelled
            else ProbeAttemptResult(success=False, error_message="No variants configured")
        )
    return SubProbeResult(
        primary_result=primary,
        retry_results=retry_results,
        final_success=False,
    )


def _image_media(variant: MediaVariant) -> MediaContent:
    if variant.use_base64:
        return MediaContent(base64=TINY_PNG_BASE64, mime_type=TINY_PNG_MIME_TYPE)
    return MediaContent(data_url=get_tiny_png_data_url())


def _pdf_media(variant: MediaVariant) -> MediaContent:
    if variant.use_base64:
        return MediaContent(base64=TINY_PDF_BASE64, mime_type=TINY_PDF_MIME_TYPE)
    return MediaContent(data_url=get_tiny_pdf_data_url(), mime_type=TINY_PDF_MIME_TYPE)


def probe_image(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
    variants: Sequence[MediaVariant] = DEFAULT_IMAGE_VARIANTS,
) -> SubProbeResult:
    """Find an image encoding the model accepts."""

    def run_variant(variant: MediaVariant) -> ProbeAttemptResult:
        result, _ = _send(
            target,
            config,
            transport,
            token,
            PROBE_PROMPTS["image"],
            "image",
            _image_media(variant),
            variant.images_first,
        )
        return result

    return search_variants(variants, run_variant, config, token=token)


def probe_pdf(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
    variants: Sequence[MediaVariant] = DEFAULT_PDF_VARIANTS,
) -> SubProbeResult:
    """Find a way to get a PDF to the model: natively or rasterized.

    The rasterized variant sends the PNG fixture as a stand-in for a rendered
    PDF page.
    """

    def run_variant(variant: MediaVariant) -> ProbeAttemptResult:
        if variant.as_pdf_images:
            result, _ = _send(
                target,
                config,
                transport,
                token,
                PROBE_PROMPTS["image"],
                "image",
                _image_media(variant),
                variant.images_first,
            )
        else:
            result, _ = _send(
                target,
                config,
                transport,
                token,
                PROBE_PROMPTS["pdf"],
                "pdf",
                _pdf_media(variant),
                variant.images_first,
            )
        return result

    return search_variants(variants, run_variant, config, token=token)


def probe_schema(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
) -> tuple[ProbeAttemptResult, MessageShape]:
    """Work out which message shape the model accepts.

    The provider family gives the starting guess; schema error wording such as
    "content must be a string" refines it.
    """
    series = execute_probe_with_retry(
        lambda: _send(target, config, transport, token, PROBE_PROMPTS["schema"])[0],
        config,
        token=token,
    )
    result = _final_attempt(series)

    shape = infer_message_shape(target.provider)
    if result.success and shape == "unknown":
        shape = "openai.parts"
    if result.schema_error:
        label = result.schema_error.lower()
        if "string" in label:
            shape = "openai.string"
        elif "array" in label:
            shape = "openai.parts"
    return result, shape


def probe_streaming(
    target: ProbeTarget,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
) -> tuple[ProbeAttemptResult, CompletionShape]:
    """Request a streamed completion and identify its wire shape."""
    bodies: list[str] = []

    def attempt() -> ProbeAttemptResult:
        result, body = _send(
            target, config, transport, token, PROBE_PROMPTS["text"], stream=True
        )
        bodies.append(body)
        return result

    series = execute_probe_with_retry(attempt, config, token=token)
    result = _final_attempt(series)
    if not result.success:
        return result, "unknown"
    return result, detect_streaming_shape(bodies[-1], target.provider)


_DATA_LINE = re.compile(r"data:\s*(\{.+\})")


def detect_streaming_shape(body: str, provider: str) -> CompletionShape:
    """Identify a completion stream format from its first chunk."""
    if "data:" not in body:
        return "raw.text"

    match = _DATA_LINE.search(body)
    if match is None:
        if "event:" in body:
            return "anthropic.sse"
        return infer_completion_shape(provider)

    try:
        payload = json.loads(match.group(1))
    except ValueError:
        return infer_completion_shape(provider)

    if isinstance(payload, dict):
        if payload.get("type") in ("content_block_delta", "message_start"):
            return "anthropic.sse"
        if isinstance(payload.get("choices"), list):
            return "openai.streaming"
    return infer_completion_shape(provider)
