"""Capability inference: run all probes for a model and interpret the results."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from llm_capability_probe.exceptions import ProbeCancelledException
from llm_capability_probe.probing.probes import (
    DEFAULT_IMAGE_VARIANTS,
    DEFAULT_PDF_VARIANTS,
    ProbeTarget,
    probe_image,
    probe_pdf,
    probe_schema,
    probe_streaming,
    probe_text,
)
from llm_capability_probe.probing.transport import (
    CancellationToken,
    HttpTransport,
    RequestsTransport,
)
from llm_capability_probe.probing.types import (
    DEFAULT_PROBE_CONFIG,
    CompletionShape,
    MediaVariant,
    MessageShape,
    ModelProbeResult,
    ProbeAttemptResult,
    ProbeConfig,
    ProbedCapabilities,
    ProbeProgress,
    ProbeSummary,
    SubProbeResult,
)
from llm_capability_probe.providers.adapters import infer_completion_shape

if TYPE_CHECKING:
    from llm_capability_probe.cache.capability_cache import CapabilityCache

logger = logging.getLogger(__name__)

PROBE_VERSION = "1.0.0"

ProgressCallback = Callable[[ProbeProgress], None]


def get_default_capabilities() -> ProbedCapabilities:
    """Conservative text-only capability vector."""
    return ProbedCapabilities(
        supports_vision=False,
        supports_pdf_native=False,
        supports_pdf_as_images=False,
        requires_base64_images=True,
        requires_images_first=False,
        message_shape="openai.parts",
        completion_shape="openai.streaming",
    )


def infer_capabilities(
    image_probe: SubProbeResult,
    pdf_probe: SubProbeResult,
    message_shape: MessageShape = "openai.parts",
    completion_shape: CompletionShape = "openai.streaming",
) -> ProbedCapabilities:
    """Derive the capability vector from completed image and PDF searches."""
    pdf_variant = pdf_probe.successful_variant
    image_variant = image_probe.successful_variant

    return ProbedCapabilities(
        supports_vision=image_probe.final_success,
        supports_pdf_native=pdf_probe.final_success
        and not (pdf_variant is not None and pdf_variant.as_pdf_images is True),
        supports_pdf_as_images=pdf_probe.final_success,
        requires_base64_images=(
            image_variant.use_base64 if image_variant is not None else True
        ),
        requires_images_first=(
            image_variant.images_first if image_variant is not None else False
        ),
        message_shape=message_shape,
        completion_shape=completion_shape,
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


def _skipped(reason: str) -> SubProbeResult:
    return SubProbeResult(
        primary_result=ProbeAttemptResult(success=False, error_message=reason),
        final_success=False,
    )


def _check_cancelled(token: CancellationToken | None, target: ProbeTarget) -> None:
    if token is not None and token.cancelled:
        raise ProbeCancelledException(
            f"Probe of {target.cache_key} was cancelled",
            provider=target.provider,
            model=target.model,
        )


def probe_model(
    target: ProbeTarget,
    config: ProbeConfig | None = None,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
    image_variants: Sequence[MediaVariant] = DEFAULT_IMAGE_VARIANTS,
    pdf_variants: Sequence[MediaVariant] = DEFAULT_PDF_VARIANTS,
) -> ModelProbeResult:
    """Run every probe for one model and infer its capabilities.

    Probes run strictly in sequence: text, then the image variant search, then
    the PDF variant search, then message-shape and (optionally) streaming
    detection. Media probes are skipped when the text probe fails.

    Args:
        target: Provider, model and credentials to probe
        config: Probe configuration (defaults to ``DEFAULT_PROBE_CONFIG``)
        transport: HTTP transport (a ``RequestsTransport`` if None)
        token: Cancellation token for the whole run
        image_variants: Image encodings to try, in order
        pdf_variants: PDF encodings to try, in order

    Returns:
        The completed probe result

    Raises:
        ProbeCancelledException: If ``token`` is cancelled before the run
            completes; the partial run is discarded
        ProviderException: If the provider cannot be addressed at all
    """
    config = config or DEFAULT_PROBE_CONFIG
    owns_transport = transport is None
    transport = transport or RequestsTransport()
    start = time.monotonic()

    try:
        text_probe = probe_text(target, config, transport, token)
        _check_cancelled(token, target)

        if not text_probe.success:
            logger.info(
                "Text probe failed for %s: %s",
                target.cache_key,
                text_probe.error_message,
            )
            return ModelProbeResult(
                provider=target.provider,
                model=target.model,
                probed_at=_now_ms(),
                text_probe=text_probe,
                image_probe=_skipped("Skipped: text probe failed"),
                pdf_probe=_skipped("Skipped: text probe failed"),
                capabilities=get_default_capabilities(),
                probe_version=PROBE_VERSION,
                total_probe_time_ms=int((time.monotonic() - start) * 1000),
            )

        image_probe = probe_image(target, config, transport, token, image_variants)
        _check_cancelled(token, target)

        pdf_probe = probe_pdf(target, config, transport, token, pdf_variants)
        _check_cancelled(token, target)

        schema_probe, message_shape = probe_schema(target, config, transport, token)
        _check_cancelled(token, target)

        streaming_probe: ProbeAttemptResult | None = None
        if config.skip_streaming_probe:
            completion_shape = infer_completion_shape(target.provider)
        else:
            streaming_probe, completion_shape = probe_streaming(
                target, config, transport, token
            )
            _check_cancelled(token, target)
    finally:
        if owns_transport:
            transport.close()

    result = ModelProbeResult(
        provider=target.provider,
        model=target.model,
        probed_at=_now_ms(),
        text_probe=text_probe,
        image_probe=image_probe,
        pdf_probe=pdf_probe,
        schema_probe=schema_probe,
        streaming_probe=streaming_probe,
        capabilities=infer_capabilities(
            image_probe, pdf_probe, message_shape, completion_shape
        ),
        probe_version=PROBE_VERSION,
        total_probe_time_ms=int((time.monotonic() - start) * 1000),
    )
    logger.info(
        "Probed %s in %dms: vision=%s pdf_native=%s",
        target.cache_key,
        result.total_probe_time_ms,
        result.capabilities.supports_vision,
        result.capabilities.supports_pdf_native,
    )
    return result


def _errored_result(target: ProbeTarget, error: Exception) -> ModelProbeResult:
    return ModelProbeResult(
        provider=target.provider,
        model=target.model,
        probed_at=_now_ms(),
        text_probe=ProbeAttemptResult(success=False, error_message=str(error)),
        image_probe=_skipped("Probe error"),
        pdf_probe=_skipped("Probe error"),
        capabilities=get_default_capabilities(),
        probe_version=PROBE_VERSION,
        total_probe_time_ms=0,
    )


def probe_models(
    targets: Sequence[ProbeTarget],
    config: ProbeConfig | None = None,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
    cache: CapabilityCache | None = None,
) -> list[ModelProbeResult]:
    """Probe several models concurrently.

    At most ``config.concurrency`` models are probed at once. A model whose run
    raises unexpectedly yields a failed result instead of aborting the batch.
    Cancelled runs are dropped and never committed.

    Args:
        targets: Models to probe
        config: Probe configuration
        transport: Shared transport; each run creates its own when None
        token: Cancels every in-flight attempt when cancelled
        on_progress: Receives ``ProbeProgress`` updates (serialized)
        cache: When given, each completed run is committed to it as soon as
            it finishes, including runs whose text probe failed

    Returns:
        Completed results in input order
    """
    config = config or DEFAULT_PROBE_CONFIG
    total = len(targets)
    progress_lock = threading.Lock()

    def report(index: int, target: ProbeTarget, status: str) -> None:
        if on_progress is None:
            return
        with progress_lock:
            on_progress(
                ProbeProgress(
                    current=index + 1,
                    total=total,
                    provider=target.provider,
                    model=target.model,
                    status=status,
                )
            )

    def run(index: int, target: ProbeTarget) -> ModelProbeResult | None:
        report(index, target, "probing")
        try:
            result = probe_model(target, config, transport, token)
        except ProbeCancelledException:
            report(index, target, "cancelled")
            return None
        except Exception as e:
            logger.warning("Probe of %s failed unexpectedly: %s", target.cache_key, e)
            report(index, target, "error")
            return _errored_result(target, e)

        if cache is not None:
            cache.update_cache_from_probe_result(result)
        report(index, target, "done")
        return result

    if not targets:
        return []

    with ThreadPoolExecutor(
        max_workers=min(config.concurrency, total), thread_name_prefix="probe-model"
    ) as executor:
        futures = [executor.submit(run, i, target) for i, target in enumerate(targets)]
        outcomes = [future.result() for future in futures]

    return [result for result in outcomes if result is not None]


def summarize_probe_result(result: ModelProbeResult) -> ProbeSummary:
    """Digest a probe run for display.

    Returns:
        ``vision`` is ``"yes"`` when images work without an ordering quirk,
        ``"partial"`` when they only work with images first, else ``"no"``.
        ``pdf`` prefers ``"native"`` over ``"images"``. ``issues`` lists the
        failure message of the text probe, then the primary attempt message of
        the image and PDF searches that found no working variant.
    """
    issues: list[str] = []
    if not result.text_probe.success:
        issues.append(
            f"Text probe failed: {result.text_probe.error_message or 'unknown error'}"
        )
    image_primary = result.image_probe.primary_result
    if not result.image_probe.final_success and image_primary.error_message:
        issues.append(f"Image: {image_primary.error_message}")
    pdf_primary = result.pdf_probe.primary_result
    if not result.pdf_probe.final_success and pdf_primary.error_message:
        issues.append(f"PDF: {pdf_primary.error_message}")

    capabilities = result.capabilities
    vision = "no"
    if capabilities.supports_vision:
        vision = "partial" if capabilities.requires_images_first else "yes"

    pdf = "no"
    if capabilities.supports_pdf_native:
        pdf = "native"
    elif capabilities.supports_pdf_as_images:
        pdf = "images"

    return ProbeSummary(
        success=result.text_probe.success,
        vision=vision,
        pdf=pdf,
        issues=issues,
    )
