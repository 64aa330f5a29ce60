"""Rate-limited HTTP client for the registry `documents/create` endpoint."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from crpt_api.document import Document, serialize_document
from crpt_api.errors import DocumentSerializationError
from crpt_api.observer import LoggingObserver, SubmissionObserver
from crpt_api.permit_gate import CancellationToken, PermitGate
from crpt_api.results import (
    HttpFailure,
    SerializationFailure,
    SubmissionResult,
    Success,
    TransportFailure,
)
from crpt_api.settings import Settings

Serializer = Callable[[Any], bytes]


def parse_retry_after(raw_value: str | None) -> float | None:
    """Parse a `Retry-After` header given as seconds or an HTTP date."""
    if not raw_value:
        return None
    try:
        return max(0.0, float(raw_value))
    except ValueError:
        try:
            date_value = parsedate_to_datetime(raw_value)
        except (TypeError, ValueError):
            return None
        if date_value.tzinfo is None:
            date_value = date_value.replace(tzinfo=UTC)
        now = datetime.now(UTC)
        return max(0.0, (date_value - now).total_seconds())


class RegistryClient:
    """Submits documents to the registry, at most N attempts per window.

    One permit is taken per attempt and is never handed back, whatever the
    outcome. The client does not retry.

    A gate passed in is never started or stopped here; its lifecycle belongs
    to whoever built it, so several clients can share one quota.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        gate: PermitGate | None = None,
        http: httpx.Client | None = None,
        observer: SubmissionObserver | None = None,
        serializer: Serializer = serialize_document,
        start_gate: bool = True,
    ) -> None:
        self.settings = settings
        self._url = settings.api_url
        self._owns_gate = gate is None
        if gate is None:
            gate = PermitGate(settings.request_limit, settings.window_s)
        self._gate = gate
        self._owns_http = http is None
        if http is None:
            limits = httpx.Limits(
                max_connections=settings.max_connections,
                max_keepalive_connections=settings.max_keepalive_connections,
            )
            http = httpx.Client(timeout=settings.timeout_s, limits=limits)
        self._http = http
        self._observer = observer or LoggingObserver()
        self._serializer = serializer
        self._started_gate = False
        # Injected gates may be shared; their owner starts and stops them.
        if start_gate and self._owns_gate and not self._gate.running:
            self._gate.start()
            self._started_gate = True

    @property
    def gate(self) -> PermitGate:
        return self._gate

    def close(self) -> None:
        if self._started_gate:
            self._gate.stop()
            self._started_gate = False
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def submit(
        self,
        document: Document | Mapping[str, Any],
        signature: str,
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> SubmissionResult:
        """Wait for a permit, then POST one document.

        Raises `PermitWaitCancelled` (or `PermitWaitTimeout`) if the wait is
        abandoned; every other failure comes back as a result.
        """
        self._gate.acquire(timeout=timeout, cancel=cancel)
        result = self._send(document, signature)
        self._observer.on_result(result)
        return result

    create_document = submit

    def _send(self, document: Document | Mapping[str, Any], signature: str) -> SubmissionResult:
        try:
            body = self._serializer(document)
        except (DocumentSerializationError, TypeError, ValueError) as exc:
            return SerializationFailure(detail=str(exc), cause=exc)

        headers = {"Signature": signature, "Content-Type": "application/json"}
        try:
            request = self._http.build_request("POST", self._url, content=body, headers=headers)
        except UnicodeEncodeError as exc:
            # Header values must be ASCII; nothing has been sent yet.
            detail = f"request headers not encodable: {exc}"
            return SerializationFailure(detail=detail, cause=exc)
        except httpx.InvalidURL as exc:
            return TransportFailure(detail=f"{type(exc).__name__}: {exc}", cause=exc)
        try:
            response = self._http.send(request)
        except httpx.HTTPError as exc:
            return TransportFailure(detail=f"{type(exc).__name__}: {exc}", cause=exc)

        if response.is_success:
            return Success(status_code=response.status_code, body=response.text)
        return HttpFailure(
            status_code=response.status_code,
            body=response.text,
            retry_after_s=parse_retry_after(response.headers.get("Retry-After")),
        )
