"""HTTP transports and cancellation tokens used by the probe client.

The probe client never talks to the network directly. It hands a
``ProbeRequestSpec`` and a ``CancellationToken`` to an ``HttpTransport``:
``RequestsTransport`` in production, ``FakeTransport`` in tests.
"""

from __future__ import annotations

import codecs
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

import requests

from llm_capability_probe.probing.types import ProbeRequestSpec, ProbeResponse

logger = logging.getLogger(__name__)

# Upper bound on how long a wait sleeps before re-checking parent tokens
_POLL_INTERVAL_S = 0.01


class CancellationToken:
    """Cooperative cancellation handle with an optional deadline.

    A token is cancelled when ``cancel()`` was called on it or on any of its
    parents, or when its own deadline (or a parent's) has passed. Child tokens
    let a bulk run hand one token to every in-flight attempt while each attempt
    still carries its own deadline.

    Example:
        ```python
        run_token = CancellationToken()
        attempt_token = run_token.child(timeout_s=15)
        run_token.cancel()
        assert attempt_token.cancelled
        assert attempt_token.reason == "Cancelled"
        ```
    """

    def __init__(
        self,
        timeout_s: float | None = None,
        parent: CancellationToken | None = None,
    ) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._parent = parent
        self._deadline = time.monotonic() + timeout_s if timeout_s is not None else None

    def child(self, timeout_s: float | None = None) -> CancellationToken:
        """Create a token cancelled together with this one."""
        return CancellationToken(timeout_s=timeout_s, parent=self)

    def cancel(self, reason: str = "Cancelled") -> None:
        """Cancel this token and every child created from it."""
        if self._reason is None:
            self._reason = reason
        self._event.set()

    @property
    def deadline_expired(self) -> bool:
        """Whether this token's own deadline has passed."""
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        """Whether work guarded by this token should stop."""
        if self._event.is_set() or self.deadline_expired:
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str | None:
        """Why the token was cancelled: ``"Timeout"``, ``"Cancelled"`` or None."""
        if self._parent is not None and self._parent.cancelled:
            return self._parent.reason
        if self._reason is not None:
            return self._reason
        if self.deadline_expired:
            return "Timeout"
        return None

    def remaining(self) -> float | None:
        """Seconds until the nearest deadline, or None when unbounded."""
        candidates: list[float] = []
        if self._deadline is not None:
            candidates.append(max(0.0, self._deadline - time.monotonic()))
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                candidates.append(parent_remaining)
        return min(candidates) if candidates else None

    def wait(self, timeout_s: float | None = None) -> bool:
        """Block until cancelled or ``timeout_s`` elapsed.

        Returns:
            True if the token was cancelled, False if the timeout elapsed first
        """
        end = time.monotonic() + timeout_s if timeout_s is not None else None
        while not self.cancelled:
            if end is not None:
                left = end - time.monotonic()
                if left <= 0:
                    return False
                self._event.wait(min(left, _POLL_INTERVAL_S))
            else:
                self._event.wait(_POLL_INTERVAL_S)
        return True


class HttpTransport(ABC):
    """Executes one HTTP exchange described by a ``ProbeRequestSpec``."""

    @abstractmethod
    def send(self, spec: ProbeRequestSpec, token: CancellationToken) -> ProbeResponse:
        """Send the request and collect the response.

        Implementations should stop work promptly once ``token`` is cancelled.
        They may raise ``requests.RequestException`` or ``OSError`` for network
        failures; the probe client turns those into data.

        Args:
            spec: The request to send
            token: Cancellation token carrying the attempt deadline

        Returns:
            The raw response; ``body_json`` may be left unset
        """
        pass

    def close(self) -> None:
        """Release pooled resources."""
        return None


class RequestsTransport(HttpTransport):
    """Production transport backed by a ``requests.Session``.

    The session's own timeouts are set from the token's remaining time, but the
    authoritative deadline is enforced by the probe client through the token.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        chunk_size: int = 8192,
    ) -> None:
        self._session = session or requests.Session()
        self._chunk_size = chunk_size

    def send(self, spec: ProbeRequestSpec, token: CancellationToken) -> ProbeResponse:
        remaining = token.remaining()
        data = json.dumps(spec.body) if spec.body is not None else None

        response = self._session.request(
            spec.method,
            spec.url,
            headers=spec.headers,
            data=data,
            timeout=remaining,
            stream=True,
        )
        try:
            chunks: list[bytes] = []
            stream_started = False
            for chunk in response.iter_content(chunk_size=self._chunk_size):
                if token.cancelled:
                    break
                if not chunk:
                    continue
                chunks.append(chunk)
                if spec.stream:
                    # The first chunk is enough to identify the stream shape
                    stream_started = True
                    break
            encoding = _usable_encoding(response.encoding)
            body = b"".join(chunks).decode(encoding, errors="replace")
        finally:
            response.close()

        return ProbeResponse(
            status=response.status_code,
            status_text=response.reason or "",
            headers={key.lower(): value for key, value in response.headers.items()},
            body=body,
            stream_started=stream_started,
        )

    def close(self) -> None:
        self._session.close()


def _usable_encoding(encoding: str | None) -> str:
    if not encoding:
        return "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        logger.debug("Unknown response charset %r, decoding as utf-8", encoding)
        return "utf-8"
    return encoding


FakeOutcome = ProbeResponse | Exception | Callable[[ProbeRequestSpec], ProbeResponse]


def json_response(
    status: int,
    payload: Any,
    status_text: str | None = None,
) -> ProbeResponse:
    """Build a JSON ``ProbeResponse``, mostly for transport doubles."""
    body = json.dumps(payload)
    return ProbeResponse(
        status=status,
        status_text=status_text if status_text is not None else _REASONS.get(status, ""),
        headers={"content-type": "application/json"},
        body=body,
    )


_REASONS = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


class FakeTransport(HttpTransport):
    """Deterministic transport double that never touches the network.

    Outcomes are served either from a queue (``responses``) or computed by a
    ``handler``. An outcome may be a ``ProbeResponse``, an exception instance to
    raise, or a callable receiving the request spec. ``delay_s`` makes every
    exchange take that long unless the token is cancelled first, which is how
    tests simulate endpoints that never answer.

    Attributes:
        requests: Every request spec received, in order
    """

    def __init__(
        self,
        responses: Iterable[FakeOutcome] | None = None,
        handler: Callable[[ProbeRequestSpec], FakeOutcome] | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._queue: deque[FakeOutcome] = deque(responses or [])
        self._handler = handler
        self._delay_s = delay_s
        self._lock = threading.Lock()
        self.requests: list[ProbeRequestSpec] = []

    def send(self, spec: ProbeRequestSpec, token: CancellationToken) -> ProbeResponse:
        with self._lock:
            self.requests.append(spec)
            outcome: FakeOutcome | None
            if self._handler is not None:
                outcome = self._handler(spec)
            elif self._queue:
                outcome = self._queue.popleft()
            else:
                outcome = None

        if self._delay_s and token.wait(self._delay_s):
            return ProbeResponse(status=0, status_text=token.reason or "Cancelled")

        if outcome is None:
            return json_response(500, {"error": {"message": "No scripted response"}})
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            outcome = outcome(spec)
            if isinstance(outcome, Exception):
                raise outcome
        return outcome
