"""Turn uploaded invoice payloads into something the extraction service reads.

- ``csv``: delimited text, sent as-is. Base64-encoded CSV is tolerated.
- ``excel``: base64 ``.xlsx`` workbook, flattened sheet by sheet into
  delimited text with openpyxl.
- ``pdf``: base64 document, forwarded untouched as an ``input_file`` part.
"""

from __future__ import annotations

import base64
import binascii
import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from openpyxl import load_workbook

from ..errors import ValidationError
from ..models import FileKind

_PDF_FILENAME = "invoice.pdf"


@dataclass(frozen=True, slots=True)
class PreparedContent:
    """Exactly one of ``text`` or ``file_part`` is set."""

    kind: FileKind
    text: str | None = None
    file_part: dict[str, Any] | None = None


def _decode_base64(content: str, *, wrapped: bool = True) -> bytes:
    raw = content.strip()
    # Data URLs ("data:application/pdf;base64,....") carry the payload after the comma.
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    if wrapped:
        # Encoders commonly break base64 into 76-character lines.
        raw = "".join(raw.split())
    return base64.b64decode(raw, validate=True)


def _csv_text(content: str) -> str:
    try:
        return _decode_base64(content, wrapped=False).decode("utf-8-sig")
    except (binascii.Error, ValueError):
        # Not base64: already delimited text (commas and newlines are outside the alphabet).
        return content


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def spreadsheet_to_text(data: bytes) -> str:
    """Flatten every worksheet to CSV text, skipping fully empty rows."""

    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n")
        for ws in wb.worksheets:
            if len(wb.worksheets) > 1:
                writer.writerow([f"# sheet: {ws.title}"])
            for row in ws.iter_rows(values_only=True):
                cells = [_cell_text(v) for v in row]
                if any(c.strip() for c in cells):
                    writer.writerow(cells)
        return out.getvalue()
    finally:
        wb.close()


def prepare_content(content: str, kind: FileKind) -> PreparedContent:
    """Validate and convert ``content`` for ``kind``.

    Raises :class:`ValidationError` when the payload is empty, is not valid
    base64 where base64 is required, or is not a readable workbook.
    """

    if not content or not content.strip():
        raise ValidationError("file content is empty")

    if kind is FileKind.CSV:
        return PreparedContent(kind=kind, text=_csv_text(content))

    try:
        data = _decode_base64(content)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"{kind.value} content must be base64-encoded") from e
    if not data:
        raise ValidationError("file content is empty")

    if kind is FileKind.EXCEL:
        try:
            text = spreadsheet_to_text(data)
        except Exception as e:  # noqa: BLE001 - openpyxl raises several unrelated types
            raise ValidationError(f"could not read spreadsheet: {e}") from e
        return PreparedContent(kind=kind, text=text)

    b64 = base64.b64encode(data).decode("ascii")
    return PreparedContent(
        kind=kind,
        file_part={
            "type": "input_file",
            "filename": _PDF_FILENAME,
            "file_data": f"data:application/pdf;base64,{b64}",
        },
    )


__all__ = ["PreparedContent", "prepare_content", "spreadsheet_to_text"]
