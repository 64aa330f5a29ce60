"""Registry document model and its JSON wire encoding."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from crpt_api.errors import DocumentSerializationError

PRODUCT_FIELDS: tuple[str, ...] = (
    "certificate_document",
    "certificate_document_date",
    "certificate_document_number",
    "owner_inn",
    "producer_inn",
    "production_date",
    "tnved_code",
    "uit_code",
    "uitu_code",
)

DOCUMENT_STRING_FIELDS: tuple[str, ...] = (
    "doc_id",
    "doc_status",
    "doc_type",
    "owner_inn",
    "participant_inn",
    "producer_inn",
    "production_date",
    "production_type",
    "reg_date",
    "reg_number",
)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class Description:
    participant_inn: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"participantInn": self.participant_inn}


@dataclass(frozen=True)
class Product:
    certificate_document: str | None = None
    certificate_document_date: str | None = None
    certificate_document_number: str | None = None
    owner_inn: str | None = None
    producer_inn: str | None = None
    production_date: str | None = None
    tnved_code: str | None = None
    uit_code: str | None = None
    uitu_code: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in PRODUCT_FIELDS}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Product:
        return cls(**{name: _opt_str(payload.get(name)) for name in PRODUCT_FIELDS})


@dataclass(frozen=True)
class Document:
    """One document for the registry `documents/create` call.

    Field names match the wire format except `import_request` and
    `description.participant_inn`, which are sent as `importRequest` and
    `participantInn`.
    """

    description: Description | None = None
    doc_id: str | None = None
    doc_status: str | None = None
    doc_type: str | None = None
    import_request: bool = False
    owner_inn: str | None = None
    participant_inn: str | None = None
    producer_inn: str | None = None
    production_date: str | None = None
    production_type: str | None = None
    products: tuple[Product, ...] = field(default_factory=tuple)
    reg_date: str | None = None
    reg_number: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "description": self.description.to_payload() if self.description else None,
            "doc_id": self.doc_id,
            "doc_status": self.doc_status,
            "doc_type": self.doc_type,
            "importRequest": self.import_request,
            "owner_inn": self.owner_inn,
            "participant_inn": self.participant_inn,
            "producer_inn": self.producer_inn,
            "production_date": self.production_date,
            "production_type": self.production_type,
            "products": [product.to_payload() for product in self.products],
            "reg_date": self.reg_date,
            "reg_number": self.reg_number,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Document:
        """Build a document from its wire-format mapping."""
        if not isinstance(payload, Mapping):
            raise ValueError("document payload must be a JSON object")
        raw_description = payload.get("description")
        description = None
        if isinstance(raw_description, Mapping):
            description = Description(
                participant_inn=_opt_str(raw_description.get("participantInn"))
            )
        raw_products = payload.get("products") or []
        if not isinstance(raw_products, list):
            raise ValueError("document products must be a list")
        if not all(isinstance(item, Mapping) for item in raw_products):
            raise ValueError("document products must be objects")
        products = tuple(Product.from_payload(item) for item in raw_products)
        raw_import = payload.get("importRequest", False)
        if not isinstance(raw_import, bool):
            raise ValueError("importRequest must be a boolean")
        values = {name: _opt_str(payload.get(name)) for name in DOCUMENT_STRING_FIELDS}
        return cls(
            description=description,
            import_request=raw_import,
            products=products,
            **values,
        )


def serialize_document(document: Document | Mapping[str, Any]) -> bytes:
    """Encode a document to UTF-8 JSON bytes."""
    if isinstance(document, Document):
        payload: Any = document.to_payload()
    elif isinstance(document, Mapping):
        payload = dict(document)
    else:
        raise DocumentSerializationError(
            f"cannot serialize {type(document).__name__} as a registry document"
        )
    try:
        text = json.dumps(payload, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise DocumentSerializationError(f"document is not JSON-serializable: {exc}") from exc
    return text.encode("utf-8")
