"""CLI entrypoint for crpt-api."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from time import perf_counter
from typing import Any

from crpt_api.client import RegistryClient
from crpt_api.document import Document
from crpt_api.errors import ConfigError, CrptAPIError, PermitWaitCancelled
from crpt_api.logging_setup import configure_logging
from crpt_api.results import SubmissionResult
from crpt_api.retry import submit_with_retry
from crpt_api.runtime_config import load_runtime_config, set_current_runtime_config
from crpt_api.settings import Settings

logger = logging.getLogger(__name__)

# Summary kind for documents whose permit wait was abandoned before sending.
CANCELLED_KIND = "cancelled"


class CLIError(CrptAPIError):
    """User-facing CLI error."""


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = str(getattr(args, "config", "") or "").strip()
    if not config_path:
        return Settings()
    set_current_runtime_config(load_runtime_config(Path(config_path)))
    return Settings.from_runtime()


def _build_client(settings: Settings) -> RegistryClient:
    return RegistryClient(settings)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON in {path}: {exc}") from exc


def _load_document(path: Path) -> Document:
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise CLIError(f"document must be a JSON object: {path}")
    return Document.from_payload(payload)


def _load_documents(path: Path) -> list[Document]:
    if path.is_dir():
        return [_load_document(item) for item in sorted(path.glob("*.json"))]
    if not path.exists():
        raise CLIError(f"documents path not found: {path}")
    documents: list[Document] = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise CLIError(f"invalid JSON on line {line_no} of {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise CLIError(f"line {line_no} of {path} is not a JSON object")
        documents.append(Document.from_payload(payload))
    return documents


def _resolve_signature(args: argparse.Namespace, settings: Settings) -> str:
    explicit = str(getattr(args, "signature", "") or "").strip()
    if explicit:
        return explicit
    signature_file = str(getattr(args, "signature_file", "") or "").strip()
    if signature_file:
        path = Path(signature_file).expanduser()
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise CLIError(f"cannot read signature file {path}: {exc}") from exc
        if not value:
            raise CLIError(f"signature file is empty: {path}")
        return value
    if settings.signature.strip():
        return settings.signature.strip()
    raise CLIError("missing signature; pass --signature, --signature-file or set CRPT_SIGNATURE")


def _submit_one(
    client: RegistryClient,
    document: Document,
    signature: str,
    *,
    retries: int,
    wait_timeout: float | None,
) -> SubmissionResult:
    if retries > 0:
        return submit_with_retry(
            client, document, signature, attempts=retries + 1, timeout=wait_timeout
        )
    return client.submit(document, signature, timeout=wait_timeout)


def _wait_timeout(args: argparse.Namespace) -> float | None:
    value = float(getattr(args, "wait_timeout", 0.0) or 0.0)
    return value if value > 0 else None


def _cmd_submit(args: argparse.Namespace, settings: Settings) -> int:
    signature = _resolve_signature(args, settings)
    document = _load_document(Path(args.document))
    with _build_client(settings) as client:
        try:
            result = _submit_one(
                client,
                document,
                signature,
                retries=max(0, int(args.retries)),
                wait_timeout=_wait_timeout(args),
            )
        except PermitWaitCancelled as exc:
            logger.warning("permit wait abandoned: %s", exc)
            print(json.dumps({"detail": str(exc), "kind": CANCELLED_KIND}, sort_keys=True))
            return 1
    print(json.dumps(result.as_dict(), sort_keys=True, ensure_ascii=False))
    return 0 if result.ok else 1


def _cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    signature = _resolve_signature(args, settings)
    documents = _load_documents(Path(args.documents))
    if not documents:
        raise CLIError(f"no documents found at {args.documents}")

    started = perf_counter()
    counts: Counter[str] = Counter()
    workers = max(1, int(args.workers))
    with _build_client(settings) as client, ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(
                _submit_one,
                client,
                document,
                signature,
                retries=max(0, int(args.retries)),
                wait_timeout=_wait_timeout(args),
            )
            for document in documents
        ]
        for future in as_completed(futures):
            try:
                counts[future.result().kind] += 1
            except PermitWaitCancelled as exc:
                logger.warning("permit wait abandoned: %s", exc)
                counts[CANCELLED_KIND] += 1

    summary = {
        "total": len(documents),
        "by_kind": dict(sorted(counts.items())),
        "elapsed_s": round(perf_counter() - started, 3),
        "request_limit": settings.request_limit,
        "window_s": settings.window_s,
    }
    logger.info("batch finished: %s", summary)
    print(json.dumps(summary, sort_keys=True))
    return 0 if counts.get("success", 0) == len(documents) else 1


def _cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    print(json.dumps(settings.redacted(), sort_keys=True, indent=2))
    return 0


def _add_common_submit_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--signature", default="")
    parser.add_argument("--signature-file", default="")
    parser.add_argument("--retries", type=int, default=0)
    parser.add_argument(
        "--wait-timeout",
        type=float,
        default=0.0,
        help="Give up waiting for a permit after this many seconds (0 waits forever)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crpt-api")
    parser.add_argument("--config", default="", help="Path to runtime.toml")
    parser.add_argument("--log-level", default="")
    subparsers = parser.add_subparsers(dest="command")

    submit = subparsers.add_parser("submit", help="Submit one document to the registry")
    submit.set_defaults(func=_cmd_submit)
    submit.add_argument("--document", required=True)
    _add_common_submit_args(submit)

    batch = subparsers.add_parser("batch", help="Submit many documents under the request quota")
    batch.set_defaults(func=_cmd_batch)
    batch.add_argument("--documents", required=True, help="JSONL file or directory of *.json")
    batch.add_argument("--workers", type=int, default=4)
    _add_common_submit_args(batch)

    config = subparsers.add_parser("config", help="Print effective settings")
    config.set_defaults(func=_cmd_config)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    try:
        settings = _load_settings(args)
        configure_logging(
            str(args.log_level).strip() or settings.log_level,
            log_dir=settings.log_dir or None,
        )
        return int(func(args, settings))
    except (CLIError, ConfigError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    finally:
        set_current_runtime_config(None)


if __name__ == "__main__":
    raise SystemExit(main())
