"""Probe HTTP client: deadlines, error classification and retry series.

Every expected failure (deadline, cancellation, network error, HTTP error) is
returned as data. Callers never need exception handling for these cases.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any

import requests
from pydantic import BaseModel

from llm_capability_probe.probing.transport import (
    CancellationToken,
    HttpTransport,
    RequestsTransport,
)
from llm_capability_probe.probing.types import (
    ProbeAttemptResult,
    ProbeConfig,
    ProbeRequestSpec,
    ProbeResponse,
    RetrySeries,
)

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.01


def make_probe_request(
    spec: ProbeRequestSpec,
    config: ProbeConfig,
    transport: HttpTransport | None = None,
    token: CancellationToken | None = None,
) -> ProbeResponse:
    """Issue one HTTP exchange under a hard deadline.

    The transport runs on a worker thread while this function waits at most
    ``config.timeout_ms``. When the deadline passes the attempt token is
    cancelled and a ``status=0`` response is returned, whether or not the
    transport honours the cancellation.

    Args:
        spec: Request prototype; ``Content-Type: application/json`` is added
        config: Probe configuration providing ``timeout_ms``
        transport: Transport to use (a fresh ``RequestsTransport`` if None)
        token: Parent token; cancelling it aborts this exchange

    Returns:
        The normalized response. ``status`` is 0 with ``status_text`` set to
        ``"Timeout"``, ``"Cancelled"``, ``"Network error: ..."`` or
        ``"Transport error: ..."`` when no usable HTTP response was received.
    """
    owns_transport = transport is None
    transport = transport or RequestsTransport()
    parent = token or CancellationToken()
    attempt_token = parent.child(timeout_s=config.timeout_ms / 1000.0)

    spec = spec.model_copy(
        update={"headers": {"Content-Type": "application/json", **spec.headers}}
    )

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe-request")
    try:
        future = executor.submit(transport.send, spec, attempt_token)
        while not future.done():
            if attempt_token.cancelled:
                reason = attempt_token.reason or "Cancelled"
                attempt_token.cancel(reason)
                logger.debug("Probe request to %s aborted: %s", spec.url, reason)
                return ProbeResponse(status=0, status_text=reason)
            wait([future], timeout=_POLL_INTERVAL_S)

        try:
            response = future.result()
        except (requests.RequestException, OSError) as e:
            logger.debug("Probe request to %s failed: %s", spec.url, e)
            return ProbeResponse(status=0, status_text=f"Network error: {e}")
        except Exception as e:
            logger.warning("Transport error for %s: %s", spec.url, e)
            return ProbeResponse(status=0, status_text=f"Transport error: {e}")
    finally:
        executor.shutdown(wait=False)
        if owns_transport:
            transport.close()

    if response.body_json is None and response.body and not spec.stream:
        response = response.model_copy(update={"body_json": _parse_json(response.body)})
    return response


def _parse_json(body: str) -> Any | None:
    try:
        return json.loads(body)
    except (ValueError, RecursionError):
        return None


class ProbeError(BaseModel):
    """Error code and message extracted from a failed response."""

    error_code: str | None = None
    error_message: str | None = None


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_probe_error(response: ProbeResponse) -> ProbeError:
    """Extract an error code and message from a provider error body.

    Tries an OpenAI-style envelope (``error.code`` / ``error.message``), then
    an Anthropic-style envelope (``type == "error"``), then a bare ``message``
    field, then falls back to the HTTP status text.
    """
    code: str | None = None
    message: str | None = None
    body = response.body_json

    if isinstance(body, dict):
        error = body.get("error")
        if body.get("type") == "error" and isinstance(error, dict):
            code = _text(error.get("type"))
            message = _text(error.get("message"))
        elif isinstance(error, dict):
            code = _text(error.get("code")) or _text(error.get("type"))
            message = _text(error.get("message"))
        elif isinstance(error, str):
            message = _text(error)
        elif "message" in body:
            message = _text(body.get("message"))

    if message is None and response.status_text and response.status_text != "OK":
        message = response.status_text

    return ProbeError(error_code=code, error_message=message)


@dataclass(frozen=True)
class SchemaErrorRule:
    """One ordered rule mapping error wording to a schema error label.

    Args:
        pattern: Regular expression matched against the lowercased message
        label: Human-readable label returned on match
        feature_absence: Whether the label means the feature is unsupported
    """

    pattern: re.Pattern[str]
    label: str
    feature_absence: bool = False

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(pattern: str, label: str, feature_absence: bool = False) -> SchemaErrorRule:
    return SchemaErrorRule(re.compile(pattern), label, feature_absence)


SCHEMA_ERROR_RULES: tuple[SchemaErrorRule, ...] = (
    _rule(r"invalid.*content.*type", "Invalid content type"),
    _rule(r"invalid.*message.*format", "Invalid message format"),
    _rule(r"invalid.*role", "Invalid role"),
    _rule(r"content.*must.*be.*string", "Content must be string"),
    _rule(r"content.*must.*be.*array", "Content must be array"),
    _rule(r"unsupported.*image", "Unsupported image format"),
    _rule(r"invalid.*image", "Invalid image"),
    _rule(r"image.*url.*required", "Image URL required"),
    _rule(r"base64.*required", "Base64 encoding required"),
    _rule(r"not.*support.*vision", "Vision not supported", feature_absence=True),
    _rule(r"not.*support.*image", "Images not supported", feature_absence=True),
    _rule(r"not.*support.*pdf", "PDF not supported", feature_absence=True),
    _rule(r"invalid.*media.*type", "Invalid media type"),
    _rule(r"unknown.*field", "Unknown field in request"),
    _rule(r"unexpected.*field", "Unexpected field in request"),
)


def match_schema_rule(
    message: str,
    rules: tuple[SchemaErrorRule, ...] = SCHEMA_ERROR_RULES,
) -> SchemaErrorRule | None:
    """Return the first rule whose pattern matches ``message``."""
    text = message.lower()
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def _error_text(response: ProbeResponse) -> str:
    message = parse_probe_error(response).error_message
    # A status-text fallback carries no wording; prefer the raw body then
    if response.body and (message is None or message == response.status_text):
        return response.body
    return message or ""


def _schema_rule_for(response: ProbeResponse) -> SchemaErrorRule | None:
    if response.ok:
        return None
    return match_schema_rule(_error_text(response))


def detect_schema_error(response: ProbeResponse) -> str | None:
    """Classify a failed response as a request-shape or feature problem.

    Returns:
        The label of the first matching rule, or None when the cause is
        unknown. None is not an error in itself.
    """
    rule = _schema_rule_for(response)
    return rule.label if rule else None


FEATURE_ABSENCE_STATUSES = frozenset({400, 422})


def is_feature_not_supported_error(response: ProbeResponse) -> bool:
    """Whether the response definitively says the model lacks a feature.

    Only client errors (400, and the 422 some gateways send instead) whose
    wording matches a feature-absence rule qualify. Auth, rate limit, network
    and timeout failures never do.
    """
    if response.status not in FEATURE_ABSENCE_STATUSES:
        return False
    rule = _schema_rule_for(response)
    return rule is not None and rule.feature_absence


def response_has_content(body_json: Any) -> bool:
    """Whether a completion body contains non-empty generated text."""
    if not isinstance(body_json, dict):
        return False

    choices = body_json.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            content = message.get("content")
            return isinstance(content, str) and len(content) > 0

    blocks = body_json.get("content")
    if isinstance(blocks, list) and blocks and isinstance(blocks[0], dict):
        block = blocks[0]
        if block.get("type") == "text":
            text = block.get("text")
            return isinstance(text, str) and len(text) > 0

    return False


def attempt_from_response(response: ProbeResponse, latency_ms: int) -> ProbeAttemptResult:
    """Classify a response into a ``ProbeAttemptResult``."""
    if response.ok:
        return ProbeAttemptResult(
            success=True,
            http_status=response.status,
            response_started=True,
            content_generated=response_has_content(response.body_json)
            or (response.stream_started and bool(response.body)),
            latency_ms=latency_ms,
        )

    error = parse_probe_error(response)
    return ProbeAttemptResult(
        success=False,
        http_status=response.status,
        error_code=error.error_code,
        error_message=error.error_message,
        schema_error=detect_schema_error(response),
        latency_ms=latency_ms,
    )


def is_definitive_failure(result: ProbeAttemptResult) -> bool:
    """Whether a failed attempt proves the feature is unsupported."""
    if result.success or result.http_status not in FEATURE_ABSENCE_STATUSES:
        return False
    return any(
        rule.label == result.schema_error and rule.feature_absence
        for rule in SCHEMA_ERROR_RULES
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay schedule for one retry series.

    Args:
        max_attempts: Total attempts including the first one
        delay_ms: Delay before the second attempt
        backoff: Multiplier applied to the delay after every further attempt;
            1.0 keeps the delay fixed
    """

    max_attempts: int
    delay_ms: int = 0
    backoff: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be non-negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be at least 1.0")

    @classmethod
    def from_config(cls, config: ProbeConfig) -> RetryPolicy:
        """Fixed-delay policy with ``max_retries + 1`` attempts."""
        return cls(max_attempts=config.max_retries + 1, delay_ms=config.retry_delay_ms)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (0-based)."""
        if attempt <= 0:
            return 0.0
        return self.delay_ms * (self.backoff ** (attempt - 1)) / 1000.0


def execute_probe_with_retry(
    make_request: Callable[[], ProbeAttemptResult],
    policy: RetryPolicy | ProbeConfig,
    should_retry: Callable[[ProbeAttemptResult], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    token: CancellationToken | None = None,
) -> RetrySeries:
    """Run ``make_request`` until it succeeds or the attempt budget is spent.

    Args:
        make_request: Performs one classified attempt
        policy: Retry policy, or a ``ProbeConfig`` to derive one from
        should_retry: Decides whether a result warrants another attempt;
            defaults to retrying every failure
        sleep: Sleep function used between attempts when no token is given
        token: Optional cancellation token; a cancelled token stops the series
            and interrupts the delay

    Returns:
        Every attempt's result. ``final_success`` is True iff the last attempt
        succeeded.
    """
    if isinstance(policy, ProbeConfig):
        policy = RetryPolicy.from_config(policy)
    if should_retry is None:
        should_retry = _retry_failures

    results: list[ProbeAttemptResult] = []
    for attempt in range(policy.max_attempts):
        if attempt > 0:
            delay = policy.delay_for(attempt)
            if token is not None:
                if token.wait(delay):
                    break
            elif delay > 0:
                sleep(delay)
        if token is not None and token.cancelled:
            break

        result = make_request()
        results.append(result)
        logger.debug(
            "Probe attempt %d/%d: success=%s status=%s",
            attempt + 1,
            policy.max_attempts,
            result.success,
            result.http_status,
        )

        if not should_retry(result):
            return RetrySeries(final_success=result.success, results=results)

    return RetrySeries(final_success=False, results=results)


def _retry_failures(result: ProbeAttemptResult) -> bool:
    return not result.success
