import logging
from typing import Iterable

from xlsx2comments.extractors.data_types import (
    EMPTY_CELL,
    LegacyNoteRecord,
    NormalizedComment,
    ThreadedCommentRecord,
)
from xlsx2comments.extractors.normalizer import clean_comment_body, format_timestamp

logger = logging.getLogger(__name__)

CellKey = tuple[str, str]


class ReconciliationLedger:
    """
    Cells already reported by the threaded comment pass.

    Excel keeps a legacy note next to every threaded comment for older clients;
    the ledger makes sure such a cell is reported once, from the threaded side.
    The ledger must be sealed (all threaded keys recorded) before the legacy
    scan consults it.
    """

    def __init__(self) -> None:
        self._covered: set[CellKey] = set()
        self._sealed = False

    def record_threaded(self, records: Iterable[ThreadedCommentRecord]) -> None:
        if self._sealed:
            raise RuntimeError("Ledger is sealed; threaded records must come first")
        for record in records:
            self._covered.add(record.key)

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def is_covered(self, key: CellKey) -> bool:
        return key in self._covered

    def __len__(self) -> int:
        return len(self._covered)


def normalize_threaded(
    record: ThreadedCommentRecord, original_cell_content: str
) -> NormalizedComment | None:
    text = clean_comment_body(record.text)
    if not text:
        return None
    return NormalizedComment(
        sheet_name=record.sheet_name,
        cell_address=record.cell_address,
        original_cell_content=original_cell_content.strip() or EMPTY_CELL,
        comment_text=text,
        author=record.author,
        created_date=format_timestamp(record.timestamp),
        source="threaded",
    )


def normalize_legacy(record: LegacyNoteRecord) -> NormalizedComment | None:
    text = clean_comment_body(record.raw_text)
    if not text:
        return None
    return NormalizedComment(
        sheet_name=record.sheet_name,
        cell_address=record.cell_address,
        original_cell_content=record.cell_content.strip() or EMPTY_CELL,
        comment_text=text,
        author=record.author,
        created_date="",
        author_inferred=record.author_inferred,
        source="legacy",
    )


def merge(
    threaded: Iterable[NormalizedComment], legacy: Iterable[NormalizedComment]
) -> list[NormalizedComment]:
    """
    Threaded comments first (archive part order), then legacy notes (scan order).

    A legacy note whose cell already carries a threaded comment is dropped.
    """
    merged = list(threaded)
    covered = {comment.key for comment in merged}
    dropped = 0
    for comment in legacy:
        if comment.key in covered:
            dropped += 1
            continue
        merged.append(comment)
    if dropped:
        logger.debug(f"Dropped {dropped} legacy notes already covered by threaded comments")
    return merged
