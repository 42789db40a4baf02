"""
Normalisation of comments fetched from a hosted spreadsheet service.

Hosted spreadsheets export to .xlsx without their comments, so those are
fetched separately by the caller (Drive-style comments API) and handed in
here as decoded JSON. Each comment looks like::

    {
        "content": "Check this",
        "author": {"displayName": "Jane Doe"},
        "anchor": "{\"r\": {\"sid\": 0, \"s\": {\"t\": \"CELL\", \"c\": \"B\", \"r\": 4}}}",
        "quotedFileContent": {"value": "1200"},
        "replies": [{"content": "Fixed", "author": {"displayName": "Bob"}}],
    }

No network access happens in this module.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from openpyxl.utils import get_column_letter

from xlsx2comments.extractors.data_types import (
    EMPTY_CELL,
    UNKNOWN_AUTHOR,
    NormalizedComment,
)
from xlsx2comments.extractors.normalizer import clean_comment_body

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"


@dataclass(frozen=True)
class RemoteSheet:
    sheet_id: int
    title: str


def cell_values_from_rows(sheet_title: str, rows: Iterable[Iterable[Any]]) -> dict[str, str]:
    """Map a values-API row grid to ``{"Sheet!A1": "value"}`` lookups."""
    values = {}
    for row_index, row in enumerate(rows, start=1):
        for col_index, value in enumerate(row, start=1):
            address = f"{get_column_letter(col_index)}{row_index}"
            values[f"{sheet_title}!{address}"] = "" if value is None else str(value)
    return values


def _author_name(payload: Mapping[str, Any]) -> str:
    author = payload.get("author") or {}
    if isinstance(author, Mapping):
        return author.get("displayName") or UNKNOWN_AUTHOR
    return str(author) or UNKNOWN_AUTHOR


def parse_anchor(anchor: Any, sheets: list[RemoteSheet]) -> tuple[str, str]:
    """
    Sheet title and cell address for a comment anchor.

    Anchors that cannot be decoded yield ``("Unknown", "Unknown")``. A decoded
    anchor without a sheet id is attributed to the first sheet.
    """
    sheet_name = UNKNOWN_LOCATION
    cell_address = UNKNOWN_LOCATION
    if not anchor:
        return sheet_name, cell_address
    try:
        data = json.loads(anchor) if isinstance(anchor, str) else anchor
        ranged = data.get("r") or {}
        selection = ranged.get("s") or {}
        if not isinstance(selection, Mapping):
            raise ValueError(f"selection is not an object: {selection!r}")
    except (ValueError, AttributeError):
        logger.warning(f"Could not parse comment anchor: {anchor!r}")
        return sheet_name, cell_address

    if selection.get("t") == "CELL" or selection.get("c") is not None:
        column = selection.get("c") or "A"
        if isinstance(column, int):
            # numeric columns are zero-based
            column = get_column_letter(column + 1)
        cell_address = f"{column}{selection.get('r') or 1}"

    if ranged.get("sid") is not None:
        for sheet in sheets:
            if sheet.sheet_id == ranged["sid"]:
                sheet_name = sheet.title
                break
    elif sheets:
        sheet_name = sheets[0].title
    return sheet_name, cell_address


def normalize_remote_comments(
    comments: Iterable[Mapping[str, Any]],
    sheets: list[RemoteSheet],
    cell_values: Mapping[str, str] | None = None,
) -> list[NormalizedComment]:
    """
    Convert hosted-spreadsheet comments and their replies to NormalizedComment.

    Args:
        comments: Decoded comment objects from the comments API.
        sheets: Sheet id/title lookup of the spreadsheet.
        cell_values: ``"Sheet!A1" -> value`` lookup for original cell content.
    """
    cell_values = cell_values or {}
    normalized: list[NormalizedComment] = []
    for comment in comments:
        sheet_name, cell_address = parse_anchor(comment.get("anchor"), sheets)
        quoted = (comment.get("quotedFileContent") or {}).get("value") or ""
        original = cell_values.get(f"{sheet_name}!{cell_address}") or quoted

        text = clean_comment_body(comment.get("content") or "")
        if text:
            normalized.append(
                NormalizedComment(
                    sheet_name=sheet_name,
                    cell_address=cell_address,
                    original_cell_content=original.strip() or EMPTY_CELL,
                    comment_text=text,
                    author=_author_name(comment),
                    source="remote",
                )
            )

        for reply in comment.get("replies") or []:
            reply_text = clean_comment_body(reply.get("content") or "")
            if not reply_text:
                continue
            normalized.append(
                NormalizedComment(
                    sheet_name=sheet_name,
                    cell_address=cell_address,
                    original_cell_content=f"[Reply to comment at {cell_address}]",
                    comment_text=reply_text,
                    author=_author_name(reply),
                    source="remote",
                )
            )

    logger.debug(f"Normalised {len(normalized)} remote comments")
    return normalized
