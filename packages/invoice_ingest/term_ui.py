"""Tiny terminal UI helpers (prompt_toolkit-based) for duplicate review.

Kept apart from the upload lifecycle so the prompts are easy to test in
isolation with a pipe input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator

from .models import PossibleDuplicate

_YES = {"y", "yes", "s", "sim"}
_NO = {"n", "no", "nao", "não"}


def _session(session: PromptSession | None, kb: KeyBindings | None = None) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def describe_duplicate(dup: PossibleDuplicate) -> str:
    """One-line summary of a candidate and the stored row it resembles."""

    cand = dup.transaction
    match = dup.existing_match
    inst = f" [{cand.installment}]" if cand.installment else ""
    return (
        f"{cand.date.isoformat()}  {abs(cand.amount):>10}  {cand.description}{inst}\n"
        f"    looks like: {match.description} (similarity {dup.similarity:.0%})"
    )


def confirm_duplicate(
    dup: PossibleDuplicate,
    *,
    session: PromptSession | None = None,
    message: str = "Import anyway? [y/N]: ",
) -> bool:
    """Ask whether a possible duplicate should be imported; Enter means no."""

    class _YesNo(Validator):
        def validate(self, document) -> None:
            text = document.text.strip().lower()
            if text and text not in _YES | _NO:
                raise ValidationError(message="Answer y or n")

    sess = _session(session)
    answer = sess.prompt(message, validator=_YesNo(), validate_while_typing=False)
    return answer.strip().lower() in _YES


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str,
    session: PromptSession | None = None,
    message: str = "Category (Enter to keep): ",
) -> str:
    """Prompt for one of ``categories`` with case-insensitive completion.

    Esc keeps ``default``. The returned value is always the canonical spelling
    from ``categories``.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=default)

    class _InList(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in canonical:
                raise ValidationError(message="Choose a category from the list")

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)
    sess = _session(session, kb)
    value = sess.prompt(
        message,
        default=default,
        completer=completer,
        validator=_InList(),
        validate_while_typing=False,
    )
    return canonical.get(value.strip().lower(), default)


__all__ = ["confirm_duplicate", "describe_duplicate", "select_category"]
