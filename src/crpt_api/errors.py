"""Error types for registry submissions and the permit gate."""

from __future__ import annotations


class CrptAPIError(RuntimeError):
    """Base error for registry client operations."""


class ConfigError(CrptAPIError):
    """Raised when runtime configuration is missing or malformed."""


class PermitWaitCancelled(CrptAPIError):
    """Raised when a caller stops waiting before a permit was granted."""


class PermitWaitTimeout(PermitWaitCancelled):
    """Raised when the wait for a permit exceeds the caller's timeout."""


class SubmissionError(CrptAPIError):
    """Base error for a failed document submission."""


class DocumentSerializationError(SubmissionError):
    """Raised when a document cannot be encoded to its wire form."""


class RegistryTransportError(SubmissionError):
    """Raised on network or connection failures talking to the registry."""


class RegistryHTTPError(SubmissionError):
    """Raised when the registry answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"registry returned status {status_code}: {body}")
