# ruff: noqa: I001
"""CLI for the ``invoice_ingest`` package.

A Typer console interface over :mod:`invoice_ingest.api`. Environment
variables (``DATABASE_URL``, ``OPENAI_API_KEY`` and the ``INVOICE_INGEST_*``
settings) are loaded from a local ``.env`` with ``python-dotenv`` before any
command runs. Output tables are rendered with rich; the interactive duplicate
review uses prompt_toolkit (see :mod:`invoice_ingest.term_ui`).
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typer.models import OptionInfo

from .errors import InvoiceIngestError
from .logging_setup import configure_logging
from .models import (
    CATEGORIES,
    CandidateTransaction,
    FileKind,
    IngestionResponse,
    ReviewResolutionRequest,
    TransactionType,
)

console = Console()
err_console = Console(stderr=True)

_SUFFIX_KINDS: dict[str, FileKind] = {
    ".pdf": FileKind.PDF,
    ".xlsx": FileKind.EXCEL,
    ".xlsm": FileKind.EXCEL,
    ".csv": FileKind.CSV,
    ".txt": FileKind.CSV,
}


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _error_message(exc: Exception) -> str:
    # RuntimeError comes from db.client when DATABASE_URL is missing.
    return exc.message if isinstance(exc, InvoiceIngestError) else str(exc)


def infer_file_kind(path: Path) -> FileKind:
    kind = _SUFFIX_KINDS.get(path.suffix.lower())
    if kind is None:
        raise ValueError(f"cannot infer file kind from '{path.name}'; pass --kind")
    return kind


def read_file_content(path: Path, kind: FileKind) -> str:
    """Delimited text is sent as-is; documents and workbooks as base64."""

    if kind is FileKind.CSV:
        return path.read_text(encoding="utf-8-sig")
    return base64.b64encode(path.read_bytes()).decode("ascii")


def _print_response(resp: IngestionResponse) -> None:
    table = Table(title=f"Upload {resp.upload_id}", show_header=False)
    table.add_row("Status", resp.status.value)
    table.add_row("Imported", str(resp.items_count))
    table.add_row("Projected installments", str(resp.projected_count))
    table.add_row("Categorized from history", str(resp.categorized_from_history))
    table.add_row("Possible duplicates", str(len(resp.possible_duplicates)))
    console.print(table)
    console.print(resp.message)


def _review_duplicates(resp: IngestionResponse) -> list[CandidateTransaction]:
    from .term_ui import confirm_duplicate, describe_duplicate, select_category

    approved: list[CandidateTransaction] = []
    for dup in resp.possible_duplicates:
        console.print(describe_duplicate(dup))
        if not confirm_duplicate(dup):
            continue
        category = select_category(
            CATEGORIES, default=dup.transaction.category or CATEGORIES[-1]
        )
        approved.append(dup.transaction.model_copy(update={"category": category}))
    return approved


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import credit-card invoices (PDF, spreadsheet or CSV) into a household's "
        "transactions using OpenAI (Responses API) for extraction. Loads .env first."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter defaults).
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
USER_ID_OPTION: OptionInfo = typer.Option(
    "--user-id",
    envvar="INVOICE_INGEST_USER_ID",
    help="Acting user id (must own the household).",
)


@app.command("init-db")
def init_db_cmd(database_url: Annotated[str | None, DATABASE_URL_OPTION] = None) -> None:
    """Create all tables from the ORM metadata (development databases)."""

    from db.client import create_schema

    try:
        create_schema(database_url=database_url)
    except RuntimeError as e:
        raise _fail(str(e)) from e
    console.print("[green]Schema created.[/green]")


@app.command("process-invoice")
def process_invoice_cmd(
    file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True)],
    *,
    card_id: Annotated[str, typer.Option("--card-id", help="Credit card id.")],
    house_id: Annotated[str, typer.Option("--house-id", help="Household id.")],
    invoice_month: Annotated[
        str, typer.Option("--invoice-month", help="Invoice month as YYYY-MM.")
    ],
    user_id: Annotated[str, USER_ID_OPTION],
    kind: Annotated[
        FileKind | None, typer.Option("--kind", help="File kind (inferred from suffix).")
    ] = None,
    review: Annotated[
        bool, typer.Option("--review/--no-review", help="Review possible duplicates now.")
    ] = True,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Extract, categorize, reconcile and import one invoice file."""

    from .api import approve_duplicates, process_invoice

    try:
        file_kind = kind or infer_file_kind(file)
        content = read_file_content(file, file_kind)
    except (ValueError, OSError) as e:
        raise _fail(str(e)) from e

    request = {
        "fileContent": content,
        "fileKind": file_kind.value,
        "filename": file.name,
        "cardId": card_id,
        "houseId": house_id,
        "invoiceMonth": invoice_month,
    }
    try:
        resp = process_invoice(request, user_id=user_id, database_url=database_url)
        _print_response(resp)
        if resp.possible_duplicates and review:
            approved = _review_duplicates(resp)
            resolution = approve_duplicates(
                ReviewResolutionRequest(upload_id=resp.upload_id, approved_transactions=approved),
                user_id=user_id,
                database_url=database_url,
            )
            console.print(resolution.message)
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e


@app.command("approve-duplicates")
def approve_duplicates_cmd(
    upload_id: Annotated[str, typer.Option("--upload-id", help="Upload to resolve.")],
    approved_json: Annotated[
        Path,
        typer.Option(
            "--approved-json",
            exists=True,
            dir_okay=False,
            help="JSON array of approved transactions (description, date, amount, ...).",
        ),
    ],
    *,
    user_id: Annotated[str, USER_ID_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Import previously surfaced duplicates that were approved out of band."""

    from .api import approve_duplicates

    try:
        approved = json.loads(approved_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise _fail(f"failed to read {approved_json}: {e}") from e
    try:
        resp = approve_duplicates(
            {"uploadId": upload_id, "approvedTransactions": approved},
            user_id=user_id,
            database_url=database_url,
        )
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e
    _print_response(resp)


@app.command("undo-upload")
def undo_upload_cmd(
    upload_id: Annotated[str, typer.Argument(help="Upload to undo.")],
    *,
    user_id: Annotated[str, USER_ID_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Remove every transaction written by an upload and mark it undone."""

    from .api import undo_upload

    try:
        undo_upload(upload_id, user_id=user_id, database_url=database_url)
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e
    console.print(f"Upload {upload_id} undone.")


@app.command("upload-history")
def upload_history_cmd(
    card_id: Annotated[str, typer.Option("--card-id", help="Credit card id.")],
    house_id: Annotated[str, typer.Option("--house-id", help="Household id.")],
    *,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Rows to show.")] = 10,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """List a card's most recent uploads."""

    from .api import list_upload_history

    try:
        uploads = list_upload_history(card_id, house_id, limit=limit, database_url=database_url)
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e

    table = Table(title="Upload history")
    for col in ("Id", "File", "Invoice month", "Items", "Status", "Created"):
        table.add_column(col)
    for u in uploads:
        table.add_row(
            u.id,
            u.filename,
            u.billing_month.strftime("%Y-%m"),
            str(u.items_count),
            u.status.value,
            u.created_at.isoformat(timespec="seconds") if u.created_at else "",
        )
    console.print(table)


@app.command("add-entry")
def add_entry_cmd(
    description: Annotated[str, typer.Argument()],
    amount: Annotated[str, typer.Argument(help="Positive amount, dot as decimal separator.")],
    *,
    house_id: Annotated[str, typer.Option("--house-id", help="Household id.")],
    date: Annotated[str, typer.Option("--date", help="Transaction date as YYYY-MM-DD.")],
    user_id: Annotated[str, USER_ID_OPTION],
    entry_type: Annotated[TransactionType, typer.Option("--type")] = TransactionType.EXPENSE,
    category: Annotated[str | None, typer.Option("--category")] = None,
    card_id: Annotated[str | None, typer.Option("--card-id")] = None,
    months: Annotated[int, typer.Option("--months", help="Repeat monthly N times.")] = 1,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Add a manual expense or income, optionally repeated monthly."""

    from .api import create_manual_entry

    entry = {
        "houseId": house_id,
        "description": description,
        "amount": amount,
        "transactionDate": date,
        "type": entry_type.value,
        "category": category,
        "cardId": card_id,
        "months": months,
    }
    try:
        ids = create_manual_entry(entry, user_id=user_id, database_url=database_url)
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e
    console.print(f"Created {len(ids)} transaction(s).")


@app.command("delete-entry")
def delete_entry_cmd(
    transaction_id: Annotated[str, typer.Argument()],
    *,
    user_id: Annotated[str, USER_ID_OPTION],
    future: Annotated[
        bool, typer.Option("--future", help="Also delete later occurrences of the series.")
    ] = False,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Delete a manual entry, or it and the rest of its monthly series."""

    from .api import delete_recurring_entry

    try:
        removed = delete_recurring_entry(
            transaction_id,
            "future" if future else "single",
            user_id=user_id,
            database_url=database_url,
        )
    except (InvoiceIngestError, RuntimeError) as e:
        raise _fail(_error_message(e)) from e
    console.print(f"Deleted {removed} transaction(s).")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m invoice_ingest.cli`
    app()
