"""Test helpers to stub the OpenAI Responses client used by extraction.py.

``OpenAIStub`` answers every ``responses.create`` call from a queue of
scripted outcomes: a string becomes ``output_text`` and an exception instance
is raised. Calls are recorded so tests can assert on the request shape.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any


class StubAPIError(Exception):
    """Stand-in for ``openai.APIStatusError`` carrying ``status_code``/``code``."""

    def __init__(self, status_code: int, code: str | None = None) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.code = code


def prose_wrapped(transactions: list[dict[str, Any]]) -> str:
    """Return a model-like answer with the JSON object embedded in prose."""

    payload = json.dumps({"transactions": transactions}, ensure_ascii=False)
    return f"Here are the transactions I found:\n```json\n{payload}\n```\nLet me know!"


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``extraction.py``."""

    def __init__(self, outcomes: Iterable[str | BaseException]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.client_kwargs: list[dict[str, Any]] = []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer.calls.append(kwargs)
                if not self._outer._outcomes:
                    raise AssertionError("OpenAIStub: unexpected extra responses.create call")
                outcome = self._outer._outcomes.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = outcome
                return resp

        self.responses = _Responses(self)

    def factory(self, *args: Any, **kwargs: Any) -> OpenAIStub:
        """Drop-in for ``OpenAI(...)``; records constructor kwargs."""

        self.client_kwargs.append(kwargs)
        return self


class FakeExtractor:
    """``TransactionExtractor`` returning fixed rows (or raising) without any client."""

    def __init__(self, rows: list[dict[str, Any]] | BaseException) -> None:
        self._rows = rows
        self.calls: list[tuple[str, str]] = []

    def extract(self, content: str, kind):
        from invoice_ingest.models import CandidateTransaction

        self.calls.append((content, str(kind)))
        if isinstance(self._rows, BaseException):
            raise self._rows
        return [CandidateTransaction.model_validate(r) for r in self._rows]
