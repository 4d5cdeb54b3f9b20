"""Prompt construction for invoice transaction extraction.

This module builds:
- The system instructions for the extraction task.
- The user input for the OpenAI Responses API, either plain text (CSV and
  flattened spreadsheets) or a content list carrying a PDF ``input_file`` part.
- The strict ``response_format`` (JSON Schema) object describing the
  ``{"transactions": [...]}`` payload.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .ingest.file_content import PreparedContent
from .models import CATEGORIES, UNCLASSIFIED_CATEGORY

_CONTENT_BEGIN = "BEGIN_INVOICE_CONTENT"
_CONTENT_END = "END_INVOICE_CONTENT"


def build_system_instructions(categories: Sequence[str] = CATEGORIES) -> str:
    """Return the extraction rules sent as Responses API ``instructions``."""

    category_list = " | ".join(categories)
    return (
        "You are a financial assistant that extracts transactions from credit card invoices.\n"
        "Extract EVERY purchase line of the invoice and respond with a single JSON object "
        'of the form {"transactions": [{"description": ..., "date": ..., "amount": ..., '
        '"installment": ..., "category": ...}]}.\n'
        "Rules:\n"
        "- description: copy the merchant text exactly as printed; do not translate, "
        "abbreviate or fix it.\n"
        "- date: ISO format YYYY-MM-DD. When the year is not printed, use the most likely "
        "year given the invoice period.\n"
        "- amount: positive decimal number with a dot as decimal separator.\n"
        "- installment: always formatted X/Y (e.g. 1/10, 2/12) when the line is an "
        "installment purchase, otherwise null.\n"
        f"- category: one of {category_list}. When unsure use \"{UNCLASSIFIED_CATEGORY}\".\n"
        "- Ignore lines that are not transactions (totals, headers, payments, balances, "
        "interest summaries).\n"
        "Output JSON only."
    )


def build_user_text(text: str) -> str:
    """Wrap delimited invoice text between BEGIN_/END_ markers."""

    return (
        "Extract the transactions from the invoice content below.\n"
        f"{_CONTENT_BEGIN}\n{text}\n{_CONTENT_END}\n"
    )


def build_input(prepared: PreparedContent) -> str | list[dict[str, Any]]:
    """Return the Responses API ``input`` for prepared invoice content.

    Text content becomes a single string. Documents become one user message
    holding an ``input_text`` part and the ``input_file`` part.
    """

    if prepared.file_part is None:
        return build_user_text(prepared.text or "")
    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "input_text",
                    "text": "Extract the transactions from the attached invoice document.",
                },
                prepared.file_part,
            ],
        }
    ]


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema response_format for extracted transactions.

    Schema shape:
    {
      "type": "json_schema",
      "name": "invoice_transactions",
      "schema": {"type": "object", "properties": {"transactions": {"type": "array",
        "items": {description, date, amount, installment|null, category|null}}}},
      "strict": true
    }
    """

    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "invoice_transactions",
        "schema": {
            "type": "object",
            "properties": {
                "transactions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "description": {"type": "string"},
                            "date": {"type": "string"},
                            "amount": {"type": "number"},
                            "installment": {"type": ["string", "null"]},
                            "category": {"type": ["string", "null"]},
                        },
                        "required": ["description", "date", "amount", "installment", "category"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["transactions"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "build_input",
    "build_response_format",
    "build_system_instructions",
    "build_user_text",
]
