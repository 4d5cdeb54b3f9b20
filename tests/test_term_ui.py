import contextlib
from datetime import date
from decimal import Decimal

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from invoice_ingest.models import (
    CATEGORIES,
    CandidateTransaction,
    ExistingTransaction,
    PossibleDuplicate,
)
from invoice_ingest.term_ui import confirm_duplicate, describe_duplicate, select_category


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def _dup() -> PossibleDuplicate:
    return PossibleDuplicate(
        transaction=CandidateTransaction(
            description="UBER *UBER TRIP",
            date=date(2024, 3, 10),
            amount=Decimal("25.00"),
            installment="1/2",
        ),
        existing_match=ExistingTransaction(
            id="e1",
            description="UBER *UBER TRIP 123456",
            transaction_date=date(2024, 3, 10),
            amount=Decimal("25.00"),
        ),
        similarity=1.0,
    )


def test_describe_duplicate_mentions_both_rows():
    text = describe_duplicate(_dup())
    assert "2024-03-10" in text
    assert "UBER *UBER TRIP [1/2]" in text
    assert "looks like: UBER *UBER TRIP 123456 (similarity 100%)" in text


def test_confirm_duplicate_enter_means_no():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert confirm_duplicate(_dup(), session=sess) is False


def test_confirm_duplicate_accepts_yes_in_either_language():
    for answer in ("y", "sim"):
        with pipe_session() as (pipe, sess):
            pipe.send_text(f"{answer}\r")
            assert confirm_duplicate(_dup(), session=sess) is True


def test_select_category_enter_keeps_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert select_category(CATEGORIES, default="Lazer", session=sess) == "Lazer"


def test_select_category_returns_canonical_spelling():
    # Ctrl-A (home), Ctrl-K (kill to end), type lowercase, Enter
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0btransporte\r")
        assert select_category(CATEGORIES, default="Lazer", session=sess) == "Transporte"
