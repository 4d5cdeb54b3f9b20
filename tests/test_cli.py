from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

import invoice_ingest.extraction as extraction_mod
from invoice_ingest.cli import app, infer_file_kind
from invoice_ingest.models import FileKind
from tests.helpers.db import CARD_ID, HOUSE_ID, OWNER_ID, fetch_transactions, fetch_upload
from tests.helpers.openai_stub import OpenAIStub, prose_wrapped

runner = CliRunner()


@pytest.mark.parametrize(
    ("name", "kind"),
    [("fatura.PDF", FileKind.PDF), ("fatura.xlsx", FileKind.EXCEL), ("fatura.csv", FileKind.CSV)],
)
def test_infer_file_kind(name, kind):
    assert infer_file_kind(Path(name)) is kind


def test_infer_file_kind_rejects_unknown_suffix():
    with pytest.raises(ValueError):
        infer_file_kind(Path("fatura.docx"))


def test_init_db_creates_schema(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'cli.sqlite3'}"
    result = runner.invoke(app, ["init-db", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert "Schema created." in result.output


def test_process_invoice_end_to_end(db_url, tmp_path, monkeypatch):
    stub = OpenAIStub(
        [
            prose_wrapped(
                [
                    {
                        "description": "Padaria Real",
                        "date": "2024-03-11",
                        "amount": 8.5,
                        "installment": None,
                        "category": "Alimentação",
                    }
                ]
            )
        ]
    )
    monkeypatch.setattr(extraction_mod, "OpenAI", stub.factory)
    invoice = tmp_path / "fatura.csv"
    invoice.write_text("data,descricao,valor\n2024-03-11,Padaria Real,8.50\n", encoding="utf-8")

    result = runner.invoke(
        app,
        [
            "process-invoice",
            str(invoice),
            "--card-id",
            CARD_ID,
            "--house-id",
            HOUSE_ID,
            "--invoice-month",
            "2024-03",
            "--user-id",
            OWNER_ID,
            "--database-url",
            db_url,
        ],
    )

    assert result.exit_code == 0, result.output
    assert "1 transactions imported" in result.output
    assert "Padaria Real,8.50" in stub.calls[0]["input"]
    (row,) = fetch_transactions(db_url, card_id=CARD_ID)
    assert fetch_upload(db_url, row.upload_id).filename == "fatura.csv"


def test_add_entry_and_delete_series(db_url, monkeypatch):
    monkeypatch.setenv("INVOICE_INGEST_USER_ID", OWNER_ID)
    result = runner.invoke(
        app,
        [
            "add-entry",
            "Academia",
            "99.90",
            "--house-id",
            HOUSE_ID,
            "--date",
            "2024-01-10",
            "--months",
            "3",
            "--database-url",
            db_url,
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Created 3 transaction(s)." in result.output

    rows = fetch_transactions(db_url, house_id=HOUSE_ID)
    assert [r.transaction_date for r in rows][0] == date(2024, 1, 10)

    result = runner.invoke(
        app, ["delete-entry", rows[0].id, "--future", "--database-url", db_url]
    )
    assert result.exit_code == 0, result.output
    assert "Deleted 3 transaction(s)." in result.output


def test_errors_exit_non_zero(db_url):
    result = runner.invoke(
        app, ["undo-upload", "missing", "--user-id", OWNER_ID, "--database-url", db_url]
    )
    assert result.exit_code == 1
    assert "upload missing not found" in result.output


def test_upload_history_lists_uploads(db_url):
    result = runner.invoke(
        app,
        ["upload-history", "--card-id", CARD_ID, "--house-id", HOUSE_ID, "--database-url", db_url],
    )
    assert result.exit_code == 0, result.output
    assert "Upload history" in result.output


def test_missing_database_url_is_reported_without_traceback(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["upload-history", "--card-id", CARD_ID, "--house-id", HOUSE_ID])
    assert result.exit_code == 1
    assert "DATABASE_URL is not set" in result.output
    assert "Traceback" not in result.output
