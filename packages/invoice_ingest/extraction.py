"""Extraction adapter: uploaded invoice content -> candidate transactions.

Public API:
    - :class:`TransactionExtractor` (one-method protocol)
    - :class:`OpenAIExtractor` (OpenAI Responses API implementation)
    - :func:`extract_first_json_object`
    - :func:`parse_extraction_payload`

No side effects occur at import time (no client creation, no environment
reads). Service failures are mapped onto the ``ExtractionServiceError`` family;
unusable responses raise :class:`ParseError`.
"""

from __future__ import annotations

import json
import random
import time
from typing import Any, Protocol

from openai import APIConnectionError, OpenAI
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from . import prompting
from .config import ExtractionSettings
from .errors import (
    ExtractionServiceError,
    ExtractionUnavailableError,
    InvoiceIngestError,
    ParseError,
    QuotaExceededError,
    RateLimitedError,
)
from .ingest.file_content import prepare_content
from .logging_setup import get_logger
from .models import CandidateTransaction, FileKind

_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_logger = get_logger("invoice_ingest.extraction")


class TransactionExtractor(Protocol):
    def extract(self, content: str, kind: FileKind) -> list[CandidateTransaction]: ...


# ---- Response parsing --------------------------------------------------------


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON string literals (including escaped quotes) are ignored.
    Models often wrap the object in prose or code fences.
    """

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


class _ExtractionBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: list[CandidateTransaction]


def parse_extraction_payload(text: str) -> list[CandidateTransaction]:
    """Parse the service's free-text answer into candidates.

    An empty ``transactions`` list is a valid answer (zero candidates).
    """

    raw = extract_first_json_object(text or "")
    if raw is None:
        raise ParseError("the extraction service response contained no JSON object")
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"the extraction service returned malformed JSON: {e.msg}") from e
    try:
        body = _ExtractionBody.model_validate(decoded)
    except PydanticValidationError as e:
        raise ParseError(
            f"the extraction service returned {e.error_count()} invalid transaction field(s)"
        ) from e
    return body.transactions


def _response_text(resp: Any) -> str:
    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                maybe = getattr(content[0], "text", None)
                text = maybe if isinstance(maybe, str) else None
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text:
        raise ParseError("the extraction service returned an empty response")
    return text


# ---- Failure classification --------------------------------------------------


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 (not quota) and 5xx errors."""

    if getattr(exc, "code", None) == "insufficient_quota":
        return False
    sc = getattr(exc, "status_code", None)
    if isinstance(sc, int) and (sc == 429 or 500 <= sc < 600):
        return True
    return False


def _classify_service_error(exc: BaseException) -> ExtractionServiceError:
    sc = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    if sc == 402 or code == "insufficient_quota":
        return QuotaExceededError("the extraction service account has no remaining credits")
    if sc == 429:
        return RateLimitedError("the extraction service is rate limiting requests; try again later")
    if isinstance(exc, (APIConnectionError, TimeoutError, ConnectionError)):
        return ExtractionUnavailableError("the extraction service could not be reached in time")
    if isinstance(sc, int) and 500 <= sc < 600:
        return ExtractionUnavailableError(f"the extraction service failed with HTTP {sc}")
    return ExtractionServiceError(f"the extraction service call failed: {exc}")


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    time.sleep(max(0.0, base + random.uniform(-jitter, jitter)))


# ---- OpenAI implementation ---------------------------------------------------


def _create_client(timeout_sec: float) -> OpenAI:
    # Retries are handled here, not by the SDK.
    return OpenAI(timeout=timeout_sec, max_retries=0)


class OpenAIExtractor:
    """Extract transactions with one Responses API call per upload."""

    def __init__(self, settings: ExtractionSettings | None = None) -> None:
        self.settings = settings or ExtractionSettings.from_env()

    def extract(self, content: str, kind: FileKind) -> list[CandidateTransaction]:
        kind = FileKind(kind)
        prepared = prepare_content(content, kind)
        instructions = prompting.build_system_instructions()
        user_input = prompting.build_input(prepared)

        _logger.info("extract:start kind=%s model=%s", kind.value, self.settings.model)
        client = _create_client(self.settings.timeout_sec)
        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = client.responses.create(
                    model=self.settings.model,
                    instructions=instructions,
                    input=user_input,
                    text={"format": prompting.build_response_format()},
                )
                candidates = parse_extraction_payload(_response_text(resp))
                dt_ms = (time.perf_counter() - t0) * 1000.0
                _logger.info(
                    "extract:done kind=%s candidates=%d latency_ms=%.2f",
                    kind.value,
                    len(candidates),
                    dt_ms,
                )
                return candidates
            except InvoiceIngestError:
                # Parse failures are terminal; never retried.
                raise
            except Exception as e:  # noqa: BLE001 - SDK and transport errors are classified below
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= self.settings.max_attempts or not _is_retryable(e):
                    _logger.error(
                        "extract:failed_terminal kind=%s attempt=%d latency_ms=%.2f error=%s",
                        kind.value,
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise _classify_service_error(e) from e
                _logger.warning(
                    "extract:retry kind=%s attempt=%d latency_ms=%.2f error=%s",
                    kind.value,
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                _sleep_backoff(attempt)
                attempt += 1


__all__ = [
    "OpenAIExtractor",
    "TransactionExtractor",
    "extract_first_json_object",
    "parse_extraction_payload",
]
