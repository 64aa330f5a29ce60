"""Reporting hooks for submission outcomes."""

from __future__ import annotations

import logging
from typing import Protocol

from crpt_api.results import HttpFailure, SubmissionResult, Success

logger = logging.getLogger(__name__)


class SubmissionObserver(Protocol):
    def on_result(self, result: SubmissionResult) -> None: ...


class LoggingObserver:
    """Writes one log line per submission outcome."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_result(self, result: SubmissionResult) -> None:
        if isinstance(result, Success):
            self._log.info("document created: status=%s body=%s", result.status_code, result.body)
        elif isinstance(result, HttpFailure):
            self._log.error(
                "document rejected: status=%s body=%s", result.status_code, result.body
            )
        else:
            self._log.error("document submission failed: kind=%s %s", result.kind, result.as_dict())
