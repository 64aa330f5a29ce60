"""Classified outcomes of one registry submission attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from crpt_api.errors import (
    DocumentSerializationError,
    RegistryHTTPError,
    RegistryTransportError,
)


class SubmissionResult:
    """Base class for submission outcomes."""

    kind: ClassVar[str] = ""

    @property
    def ok(self) -> bool:
        return False

    def as_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def raise_for_outcome(self) -> None:
        """Raise the typed error matching a failed outcome."""
        raise NotImplementedError


@dataclass(frozen=True)
class Success(SubmissionResult):
    kind: ClassVar[str] = "success"

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return True

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "status_code": self.status_code, "body": self.body}

    def raise_for_outcome(self) -> None:
        return None


@dataclass(frozen=True)
class HttpFailure(SubmissionResult):
    kind: ClassVar[str] = "http_failure"

    status_code: int
    body: str
    retry_after_s: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "status_code": self.status_code,
            "body": self.body,
            "retry_after_s": self.retry_after_s,
        }

    def raise_for_outcome(self) -> None:
        raise RegistryHTTPError(self.status_code, self.body)


@dataclass(frozen=True)
class TransportFailure(SubmissionResult):
    kind: ClassVar[str] = "transport_error"

    detail: str
    cause: BaseException | None = field(default=None, compare=False, repr=False)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail}

    def raise_for_outcome(self) -> None:
        raise RegistryTransportError(self.detail) from self.cause


@dataclass(frozen=True)
class SerializationFailure(SubmissionResult):
    kind: ClassVar[str] = "serialization_error"

    detail: str
    cause: BaseException | None = field(default=None, compare=False, repr=False)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail}

    def raise_for_outcome(self) -> None:
        raise DocumentSerializationError(self.detail) from self.cause
