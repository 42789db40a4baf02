"""
XLSX Comment Extractor
======================

Extracts cell annotations from Microsoft Excel .xlsx files and reconciles
the two comment systems a workbook can carry.

Comment Systems
---------------
Threaded comments (Excel 365):
    Stored in xl/threadedComments/threadedCommentN.xml, linked to worksheets
    through relationship parts, authors resolved through xl/persons/person.xml.
    Carry a creation timestamp and support replies.

Legacy notes (Excel 97 and later):
    Stored in xl/commentsN.xml, attached to cells by openpyxl. No timestamp;
    the author is either declared in the part or written into the note body.

When a workbook holds threaded comments, Excel also writes a legacy note for
each of them so older clients can show something. Those mirrors are skipped:
a cell covered by a threaded comment is reported once, from the threaded side.

Pipeline
--------
1. Format gate: .xls/.xlsb/encrypted inputs are rejected before parsing.
2. Container and relationship graph (ZipContext, RelationshipResolver).
3. Threaded comment pass; its cell keys seal the reconciliation ledger.
4. Workbook load with openpyxl (WorkbookCellReader) for cell contents.
5. Legacy note scan over every cell of every worksheet.
6. Merge: threaded comments (part order) then legacy notes (scan order).

Failures
--------
Only an unreadable container, a missing or malformed workbook part, or an
unsupported format abort the run. Malformed optional parts, unreadable cells
and unresolvable relationships degrade the result instead. A broken legacy
comments part would make openpyxl reject the workbook, so the cell reader is
reloaded from a copy without it.

Usage
-----
    >>> import io
    >>> from xlsx2comments.extractors.xlsx_comment_extractor import read_xlsx_comments
    >>>
    >>> with open("review.xlsx", "rb") as f:
    ...     for report in read_xlsx_comments(io.BytesIO(f.read()), path="review.xlsx"):
    ...         for comment in report.comments:
    ...             print(comment.sheet_name, comment.cell_address, comment.comment_text)
"""

import io
import logging
from typing import Any, Generator

from xlsx2comments.exceptions import ContainerError, MalformedXmlError
from xlsx2comments.extractors.data_types import (
    CommentReport,
    CommentReportMetadata,
    NormalizedComment,
)
from xlsx2comments.extractors.legacy_notes import (
    extract_legacy_notes,
    load_note_runs,
    unreadable_legacy_parts,
)
from xlsx2comments.extractors.reconciliation import (
    ReconciliationLedger,
    merge,
    normalize_legacy,
    normalize_threaded,
)
from xlsx2comments.extractors.relationships import RelationshipResolver
from xlsx2comments.extractors.threaded_comments import extract_threaded_comments
from xlsx2comments.extractors.util.zip_bomb import DEFAULT_ZIP_BOMB_LIMITS, ZipBombLimits
from xlsx2comments.extractors.util.zip_context import ZipContext
from xlsx2comments.extractors.workbook_reader import WorkbookCellReader, without_parts
from xlsx2comments.router import (
    check_path_supported,
    check_signature_supported,
    reject_binary_package,
)

logger = logging.getLogger(__name__)


def _build_resolver(ctx: ZipContext) -> RelationshipResolver:
    try:
        return RelationshipResolver.build(ctx)
    except MalformedXmlError as exc:
        raise ContainerError(
            f"Workbook manifest [{exc.part}] is not well-formed XML", cause=exc
        ) from exc


def _open_reader(file_like: io.BytesIO, broken_parts: list[str]) -> WorkbookCellReader:
    """
    Load the workbook for cell access.

    openpyxl refuses the whole workbook when one legacy comments part is
    missing or malformed, so the load is retried once with those parts left
    out. Notes stored in them are lost; everything else is still reported.
    """
    try:
        return WorkbookCellReader(file_like)
    except ContainerError as exc:
        if not broken_parts:
            raise
        logger.warning(
            f"Reloading workbook without unreadable comment parts {broken_parts}: {exc}"
        )
    return WorkbookCellReader(without_parts(file_like, broken_parts))


def extract_comments(
    file_like: io.BytesIO,
    path: str | None = None,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
) -> CommentReport:
    """
    Extract and reconcile all comments of an in-memory workbook.

    Args:
        file_like: BytesIO holding the complete workbook.
        path: Optional file name; used for the format gate and metadata.
        limits: ZIP-bomb limits applied to the container.

    Returns:
        CommentReport with threaded comments first, then legacy notes.
        `report.nothing_found` is True when the file has no comments at all.

    Raises:
        UnsupportedFormatError: For .xls, .xlsb and encrypted workbooks.
        ContainerError: If the bytes are not a readable workbook.
    """
    if path is not None:
        check_path_supported(path)
    check_signature_supported(file_like, path)

    with ZipContext(file_like, limits=limits) as ctx:
        reject_binary_package(ctx.namelist, path)
        resolver = _build_resolver(ctx)
        threaded = extract_threaded_comments(ctx, resolver)
        note_runs = load_note_runs(ctx, resolver)
        broken_parts = unreadable_legacy_parts(ctx, resolver)

    ledger = ReconciliationLedger()
    ledger.record_threaded(threaded.records)
    ledger.seal()

    reader = _open_reader(file_like, broken_parts)
    try:
        threaded_comments: list[NormalizedComment] = []
        for record in threaded.records:
            comment = normalize_threaded(
                record, reader.value_as_string(record.sheet_name, record.cell_address)
            )
            if comment is not None:
                threaded_comments.append(comment)

        legacy_comments = []
        for record in extract_legacy_notes(reader, ledger, note_runs):
            comment = normalize_legacy(record)
            if comment is not None:
                legacy_comments.append(comment)
        sheet_count = len(reader.sheet_names)
    finally:
        reader.close()

    comments = merge(threaded_comments, legacy_comments)

    metadata = CommentReportMetadata(
        sheet_count=sheet_count,
        threaded_count=len(threaded_comments),
        legacy_count=len(comments) - len(threaded_comments),
    )
    metadata.populate_from_path(path)

    if comments:
        logger.info(
            "Extracted %d comments (%d threaded, %d legacy notes) from %d sheets",
            len(comments),
            metadata.threaded_count,
            metadata.legacy_count,
            sheet_count,
        )
    else:
        logger.warning("No comments or notes found in workbook")

    return CommentReport(
        comments=comments,
        has_threaded_comments=threaded.has_threaded_comments,
        metadata=metadata,
    )


def read_xlsx_comments(
    file_like: io.BytesIO, path: str | None = None
) -> Generator[CommentReport, Any, None]:
    """
    Extract all comments from an Excel workbook.

    Uses a generator for API consistency with `read_file`, even though a
    workbook always produces exactly one CommentReport.
    """
    yield extract_comments(file_like, path)
