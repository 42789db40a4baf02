"""
Legacy note extraction.

Old-style notes are stored per sheet in ``xl/commentsN.xml``::

    <comments>
      <authors><author>Jane Doe</author></authors>
      <commentList>
        <comment ref="B4" authorId="0">
          <text><r><rPr><b/></rPr><t>Jane Doe:</t></r><r><t>
    Check the source of this number</t></r></text>
        </comment>
      </commentList>
    </comments>

openpyxl attaches these to cells but flattens the runs into one string. The
runs are read from the comment parts directly so the "Name:" prefix Excel
writes into the first run can be used as an author hint.

The scan visits every cell in each sheet's dimension, including cells with no
value, because a note may sit on an empty cell.
"""

import logging
from dataclasses import dataclass
from typing import Any

from openpyxl.comments import Comment

from xlsx2comments.extractors.cell_values import render_value
from xlsx2comments.extractors.data_types import (
    UNKNOWN_AUTHOR,
    LegacyNoteRecord,
    NoteBody,
    NoteOpaque,
    NoteRuns,
    NoteText,
    OpaqueValue,
)
from xlsx2comments.extractors.reconciliation import ReconciliationLedger
from xlsx2comments.extractors.relationships import (
    RelationshipResolver,
    is_legacy_comment_part,
)
from xlsx2comments.extractors.util.xml_parts import (
    find_local,
    iter_local,
    local_name,
    read_optional_xml,
    text_content,
)
from xlsx2comments.extractors.util.zip_context import ZipContext
from xlsx2comments.extractors.workbook_reader import WorkbookCellReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedNote:
    text: str
    author: str
    author_inferred: bool = False


def load_note_runs(
    ctx: ZipContext, resolver: RelationshipResolver
) -> dict[tuple[str, str], NoteRuns]:
    """Rich-text runs of every legacy note, keyed by (sheet name, cell address)."""
    runs_by_key: dict[tuple[str, str], NoteRuns] = {}
    parts = ctx.entries_matching(
        lambda name: is_legacy_comment_part(name) or name in resolver.legacy_owner
    )
    for part in parts:
        root = read_optional_xml(ctx, part)
        if root is None:
            continue
        sheet_name = resolver.sheet_for_legacy_part(part)
        authors = [text_content(author) for author in iter_local(root, "author")]

        for comment in iter_local(root, "comment"):
            body = find_local(comment, "text")
            if body is None:
                continue
            runs = tuple(
                text_content(find_local(run, "t"))
                for run in body
                if local_name(run.tag) == "r"
            )
            if not runs:
                continue
            try:
                declared = authors[int(comment.get("authorId", ""))]
            except (ValueError, IndexError):
                declared = ""
            runs_by_key[(sheet_name, comment.get("ref", ""))] = NoteRuns(
                runs=runs, declared_author=declared
            )
    return runs_by_key


def unreadable_legacy_parts(ctx: ZipContext, resolver: RelationshipResolver) -> list[str]:
    """Legacy comment parts that are linked or present but cannot be parsed."""
    candidates = dict.fromkeys(
        [*resolver.legacy_owner, *ctx.entries_matching(is_legacy_comment_part)]
    )
    return [part for part in candidates if read_optional_xml(ctx, part) is None]


def classify_note(note: Any, runs: NoteRuns | None = None) -> NoteBody:
    """Pick the richest available representation of a note body."""
    declared = getattr(note, "author", None) or ""
    if runs is not None and runs.runs:
        return NoteRuns(runs=runs.runs, declared_author=declared or runs.declared_author)
    if isinstance(note, str):
        return NoteText(text=note)
    if isinstance(note, Comment) and isinstance(note.text, str):
        return NoteText(text=note.text, declared_author=declared)
    return NoteOpaque(payload=note)


def _with_author(text: str, first: str, declared: str) -> ParsedNote:
    if ":" in first:
        guess = first.split(":", 1)[0].strip()
        if guess:
            return ParsedNote(text=text, author=guess, author_inferred=True)
    return ParsedNote(text=text, author=declared or UNKNOWN_AUTHOR)


def parse_note(body: NoteBody) -> ParsedNote:
    """
    Text and author of a classified note.

    An author found before the first colon of the first run is a guess and is
    flagged as such. Flattened text has no runs, so its first line stands in
    for the first run. The prefix stays in the text.
    """
    if isinstance(body, NoteRuns):
        first = body.runs[0] if body.runs else ""
        return _with_author("".join(body.runs), first, body.declared_author)
    if isinstance(body, NoteText):
        first = body.text.split("\n", 1)[0]
        return _with_author(body.text, first, body.declared_author)
    # keep whatever we can rather than dropping the note
    return ParsedNote(text=render_value(OpaqueValue(body.payload)), author=UNKNOWN_AUTHOR)


def extract_legacy_notes(
    reader: WorkbookCellReader,
    ledger: ReconciliationLedger,
    note_runs: dict[tuple[str, str], NoteRuns] | None = None,
) -> list[LegacyNoteRecord]:
    """
    Scan all worksheets for legacy notes not already covered by threaded comments.

    Raises:
        RuntimeError: If the ledger has not been sealed by the threaded pass.
    """
    if not ledger.sealed:
        raise RuntimeError("Threaded comment pass must complete before the note scan")
    note_runs = note_runs or {}

    records: list[LegacyNoteRecord] = []
    seen_notes = 0
    for worksheet in reader.worksheets():
        sheet_name = worksheet.title
        for row in worksheet.iter_rows():
            for cell in row:
                note = getattr(cell, "comment", None)
                if note is None:
                    continue
                seen_notes += 1
                key = (sheet_name, cell.coordinate)
                if ledger.is_covered(key):
                    continue

                parsed = parse_note(classify_note(note, note_runs.get(key)))
                if not parsed.text.strip():
                    continue
                records.append(
                    LegacyNoteRecord(
                        sheet_name=sheet_name,
                        cell_address=cell.coordinate,
                        raw_text=parsed.text,
                        author=parsed.author,
                        author_inferred=parsed.author_inferred,
                        cell_content=reader.value_as_string(sheet_name, cell.coordinate),
                    )
                )

    logger.debug(f"Found {seen_notes} legacy notes, kept {len(records)}")
    return records
