"""Caller-side retry policy for registry submissions."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_attempt

from crpt_api.client import RegistryClient
from crpt_api.document import Document
from crpt_api.permit_gate import CancellationToken
from crpt_api.results import HttpFailure, SubmissionResult, TransportFailure

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_RETRY_AFTER_S = 60.0
MAX_BACKOFF_S = 30.0


def is_retryable(result: SubmissionResult) -> bool:
    """Transport failures and throttling/server statuses are worth another attempt."""
    if isinstance(result, TransportFailure):
        return True
    if isinstance(result, HttpFailure):
        return result.status_code in RETRYABLE_STATUS_CODES
    return False


def _wait_for_retry(retry_state: RetryCallState) -> float:
    """Wait strategy for tenacity retries."""
    result = retry_state.outcome.result() if retry_state.outcome else None
    if isinstance(result, HttpFailure) and result.retry_after_s is not None:
        return min(result.retry_after_s, MAX_RETRY_AFTER_S)
    return min(2 ** (retry_state.attempt_number - 1), MAX_BACKOFF_S)


def _last_result(retry_state: RetryCallState) -> SubmissionResult:
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


def submit_with_retry(
    client: RegistryClient,
    document: Document | Mapping[str, Any],
    signature: str,
    *,
    attempts: int = 3,
    timeout: float | None = None,
    cancel: CancellationToken | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SubmissionResult:
    """Submit with bounded retries; each attempt takes its own permit.

    Returns the last result once attempts run out. Gate cancellation is raised,
    not retried.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(1, int(attempts))),
        retry=retry_if_result(is_retryable),
        wait=_wait_for_retry,
        retry_error_callback=_last_result,
        sleep=sleep,
    )
    return retrying(client.submit, document, signature, timeout=timeout, cancel=cancel)
