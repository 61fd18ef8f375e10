"""Unit tests for capability inference, full model runs and summaries."""

import threading
import time
from typing import Any

import pytest

from conftest import (
    completion_response,
    error_response,
    is_media_request,
    make_probe_result,
)
from llm_capability_probe.cache.capability_cache import CapabilityCache
from llm_capability_probe.exceptions import ProbeCancelledException
from llm_capability_probe.probing.inference import (
    PROBE_VERSION,
    get_default_capabilities,
    infer_capabilities,
    probe_model,
    probe_models,
    summarize_probe_result,
)
from llm_capability_probe.probing.probes import ProbeTarget
from llm_capability_probe.probing.transport import CancellationToken, FakeTransport
from llm_capability_probe.probing.types import (
    MediaVariant,
    ProbeAttemptResult,
    ProbeConfig,
    ProbeProgress,
    ProbeRequestSpec,
    ProbeResponse,
    SubProbeResult,
)


def _sub(success: bool, variant: MediaVariant | None = None) -> SubProbeResult:
    return SubProbeResult(
        primary_result=ProbeAttemptResult(success=success),
        final_success=success,
        successful_variant=variant,
    )


class TestInferCapabilities:
    """Test derivation of the capability vector from probe results."""

    @pytest.mark.unit
    def test_default_capabilities_are_conservative(self) -> None:
        caps = get_default_capabilities()

        assert not caps.supports_vision
        assert not caps.supports_pdf_native
        assert not caps.supports_pdf_as_images
        assert caps.requires_base64_images
        assert not caps.requires_images_first

    @pytest.mark.unit
    def test_vision_with_url_and_images_first(self) -> None:
        caps = infer_capabilities(
            _sub(True, MediaVariant(use_base64=False, images_first=True)),
            _sub(False),
        )

        assert caps.supports_vision
        assert not caps.requires_base64_images
        assert caps.requires_images_first
        assert not caps.supports_pdf_native
        assert not caps.supports_pdf_as_images

    @pytest.mark.unit
    def test_native_pdf_implies_pdf_as_images(self) -> None:
        caps = infer_capabilities(
            _sub(False),
            _sub(True, MediaVariant(use_base64=True, images_first=False, as_pdf_images=False)),
        )

        assert caps.supports_pdf_native
        assert caps.supports_pdf_as_images
        # No successful image variant: conservative encoding
        assert caps.requires_base64_images
        assert not caps.requires_images_first

    @pytest.mark.unit
    def test_pdf_via_images_only(self) -> None:
        caps = infer_capabilities(
            _sub(True, MediaVariant(use_base64=True, images_first=False)),
            _sub(True, MediaVariant(use_base64=True, images_first=False, as_pdf_images=True)),
            message_shape="anthropic.content",
            completion_shape="anthropic.sse",
        )

        assert not caps.supports_pdf_native
        assert caps.supports_pdf_as_images
        assert caps.message_shape == "anthropic.content"
        assert caps.completion_shape == "anthropic.sse"


class TestProbeModel:
    """Test full single-model probe runs."""

    @pytest.mark.unit
    def test_fully_capable_model(
        self,
        openai_target: ProbeTarget,
        fast_config: ProbeConfig,
        fake_transport: FakeTransport,
    ) -> None:
        result = probe_model(openai_target, fast_config, fake_transport)

        assert result.provider == "openai"
        assert result.model == "gpt-4o"
        assert result.probe_version == PROBE_VERSION
        assert result.text_probe.success
        assert result.schema_probe is not None and result.schema_probe.success
        assert result.streaming_probe is None
        caps = result.capabilities
        assert caps.supports_vision
        assert caps.supports_pdf_native
        assert caps.requires_base64_images
        assert caps.message_shape == "openai.parts"
        assert caps.completion_shape == "openai.streaming"
        # text, image, pdf, schema
        assert len(fake_transport.requests) == 4

    @pytest.mark.unit
    def test_probe_order_is_text_image_pdf(
        self,
        openai_target: ProbeTarget,
        fast_config: ProbeConfig,
        fake_transport: FakeTransport,
    ) -> None:
        probe_model(openai_target, fast_config, fake_transport)

        bodies = [spec.body for spec in fake_transport.requests]
        assert isinstance(bodies[0]["messages"][0]["content"], str)
        assert is_media_request(bodies[1], "image_url")
        assert is_media_request(bodies[2], "file")

    @pytest.mark.unit
    def test_text_failure_skips_media_probes(
        self, openai_target: ProbeTarget, fast_config: ProbeConfig
    ) -> None:
        transport = FakeTransport(
            handler=lambda spec: error_response(404, "Model not found", "model_not_found")
        )

        result = probe_model(openai_target, fast_config, transport)

        assert not result.text_probe.success
        assert result.image_probe.primary_result.error_message == (
            "Skipped: text probe failed"
        )
        assert result.pdf_probe.primary_result.error_message == (
            "Skipped: text probe failed"
        )
        assert result.capabilities == get_default_capabilities()
        assert len(transport.requests) == fast_config.max_retries + 1

    @pytest.mark.unit
    def test_streaming_probe_when_enabled(self, openai_target: ProbeTarget) -> None:
        config = ProbeConfig(retry_delay_ms=0, skip_streaming_probe=False)

        def handler(spec: ProbeRequestSpec) -> ProbeResponse:
            if spec.stream:
                return ProbeResponse(
                    status=200,
                    body='data: {"choices": [{"delta": {}}]}\n\n',
                    stream_started=True,
                )
            return completion_response()

        result = probe_model(openai_target, config, FakeTransport(handler=handler))

        assert result.streaming_probe is not None
        assert result.streaming_probe.success
        assert result.capabilities.completion_shape == "openai.streaming"

    @pytest.mark.unit
    def test_cancellation_discards_run(
        self, openai_target: ProbeTarget, fast_config: ProbeConfig
    ) -> None:
        token = CancellationToken()

        def handler(spec: ProbeRequestSpec) -> ProbeResponse:
            token.cancel()
            return completion_response()

        with pytest.raises(ProbeCancelledException) as exc_info:
            probe_model(openai_target, fast_config, FakeTransport(handler=handler), token)

        assert exc_info.value.provider == "openai"
        assert exc_info.value.model == "gpt-4o"

    @pytest.mark.unit
    def test_custom_variants(
        self,
        openai_target: ProbeTarget,
        fast_config: ProbeConfig,
        fake_transport: FakeTransport,
    ) -> None:
        url_first = (MediaVariant(use_base64=False, images_first=True),)

        result = probe_model(
            openai_target, fast_config, fake_transport, image_variants=url_first
        )

        assert not result.capabilities.requires_base64_images
        assert result.capabilities.requires_images_first


class TestProbeModels:
    """Test bulk probing."""

    @pytest.mark.unit
    def test_results_in_input_order(
        self, fast_config: ProbeConfig, fake_transport: FakeTransport
    ) -> None:
        targets = [
            ProbeTarget(provider="openai", model=f"model-{i}", api_key="k")
            for i in range(5)
        ]

        results = probe_models(targets, fast_config, fake_transport)

        assert [r.model for r in results] == [t.model for t in targets]

    @pytest.mark.unit
    def test_concurrency_is_bounded(self) -> None:
        config = ProbeConfig(retry_delay_ms=0, concurrency=2)
        lock = threading.Lock()
        in_flight = 0
        peak = 0

        def slow(spec: ProbeRequestSpec) -> ProbeResponse:
            nonlocal in_flight, peak
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.02)
            with lock:
                in_flight -= 1
            return completion_response()

        targets = [
            ProbeTarget(provider="openai", model=f"m{i}", api_key="k") for i in range(5)
        ]

        probe_models(targets, config, FakeTransport(handler=lambda spec: slow))

        assert 1 <= peak <= 2

    @pytest.mark.unit
    def test_progress_reports(
        self, fast_config: ProbeConfig, fake_transport: FakeTransport
    ) -> None:
        events: list[ProbeProgress] = []
        targets = [
            ProbeTarget(provider="openai", model="a", api_key="k"),
            ProbeTarget(provider="openai", model="b", api_key="k"),
        ]

        probe_models(targets, fast_config, fake_transport, on_progress=events.append)

        assert len(events) == 4
        assert {e.total for e in events} == {2}
        assert sorted((e.model, e.status) for e in events) == [
            ("a", "done"),
            ("a", "probing"),
            ("b", "done"),
            ("b", "probing"),
        ]

    @pytest.mark.unit
    def test_unexpected_error_becomes_failed_result(
        self, fast_config: ProbeConfig, fake_transport: FakeTransport
    ) -> None:
        events: list[ProbeProgress] = []
        targets = [
            ProbeTarget(provider="ollama", model="llava"),  # no endpoint
            ProbeTarget(provider="openai", model="gpt-4o", api_key="k"),
        ]

        results = probe_models(
            targets, fast_config, fake_transport, on_progress=events.append
        )

        assert len(results) == 2
        assert not results[0].text_probe.success
        assert "endpoint" in (results[0].text_probe.error_message or "")
        assert results[1].text_probe.success
        assert any(e.model == "llava" and e.status == "error" for e in events)

    @pytest.mark.unit
    def test_cancelled_runs_are_dropped(
        self, fast_config: ProbeConfig, fake_transport: FakeTransport
    ) -> None:
        token = CancellationToken()
        token.cancel()
        cache = CapabilityCache()

        results = probe_models(
            [ProbeTarget(provider="openai", model="gpt-4o", api_key="k")],
            fast_config,
            fake_transport,
            token=token,
            cache=cache,
        )

        assert results == []
        assert len(cache) == 0
        assert fake_transport.requests == []

    @pytest.mark.unit
    def test_commits_every_completed_run(self, fast_config: ProbeConfig) -> None:
        def handler(spec: ProbeRequestSpec) -> Any:
            if spec.body["model"] == "missing":
                return error_response(404, "Model not found")
            return completion_response()

        cache = CapabilityCache()
        targets = [
            ProbeTarget(provider="openai", model="gpt-4o", api_key="k"),
            ProbeTarget(provider="openai", model="missing", api_key="k"),
        ]

        probe_models(targets, fast_config, FakeTransport(handler=handler), cache=cache)

        assert cache.get_cached_entry("openai", "gpt-4o") is not None
        missing = cache.get_cached_entry("openai", "missing")
        assert missing is not None
        assert missing.capabilities == get_default_capabilities()

    @pytest.mark.unit
    def test_empty_target_list(self, fast_config: ProbeConfig) -> None:
        assert probe_models([], fast_config) == []


class TestSummarizeProbeResult:
    """Test human-oriented summaries."""

    @pytest.mark.unit
    def test_text_failure(self) -> None:
        result = make_probe_result(text_success=False, text_error="Model not found")

        summary = summarize_probe_result(result)

        assert summary.success is False
        assert summary.vision == "no"
        assert summary.pdf == "no"
        assert "Model not found" in summary.issues[0]

    @pytest.mark.unit
    def test_vision_partial_with_images_first(self) -> None:
        result = make_probe_result(supports_vision=True, requires_images_first=True)

        assert summarize_probe_result(result).vision == "partial"

    @pytest.mark.unit
    def test_vision_yes_and_pdf_levels(self) -> None:
        native = make_probe_result(
            supports_vision=True, supports_pdf_native=True, supports_pdf_as_images=True
        )
        images = make_probe_result(supports_pdf_as_images=True)

        assert summarize_probe_result(native).vision == "yes"
        assert summarize_probe_result(native).pdf == "native"
        assert summarize_probe_result(images).pdf == "images"

    @pytest.mark.unit
    def test_no_issues_when_a_later_variant_works(self) -> None:
        image = SubProbeResult(
            primary_result=ProbeAttemptResult(
                success=False, http_status=400, error_message="image must come first"
            ),
            retry_results=[ProbeAttemptResult(success=True, http_status=200)],
            final_success=True,
            successful_variant=MediaVariant(use_base64=True, images_first=True),
        )
        pdf = SubProbeResult(
            primary_result=ProbeAttemptResult(
                success=False, http_status=400, error_message="PDF not supported"
            ),
            retry_results=[ProbeAttemptResult(success=True, http_status=200)],
            final_success=True,
            successful_variant=MediaVariant(
                use_base64=True, images_first=False, as_pdf_images=True
            ),
        )
        result = make_probe_result(
            supports_vision=True, requires_images_first=True, supports_pdf_as_images=True
        ).model_copy(update={"image_probe": image, "pdf_probe": pdf})

        summary = summarize_probe_result(result)

        assert summary.success
        assert summary.vision == "partial"
        assert summary.pdf == "images"
        assert summary.issues == []

    @pytest.mark.unit
    def test_issues_from_failed_media_searches(self) -> None:
        image = SubProbeResult(
            primary_result=ProbeAttemptResult(
                success=False, http_status=400, error_message="Invalid image"
            ),
            retry_results=[ProbeAttemptResult(success=False, http_status=400)],
            final_success=False,
        )
        pdf = SubProbeResult(
            primary_result=ProbeAttemptResult(
                success=False, http_status=400, error_message="PDF not supported"
            ),
            final_success=False,
        )
        result = make_probe_result().model_copy(
            update={"image_probe": image, "pdf_probe": pdf}
        )

        summary = summarize_probe_result(result)

        assert summary.success
        assert summary.issues == ["Image: Invalid image", "PDF: PDF not supported"]
