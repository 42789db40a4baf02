import datetime
import typing
from abc import abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol

# Sentinels shown in place of data that could not be recovered
UNKNOWN_AUTHOR = "Unknown"
EMPTY_CELL = "[Empty cell]"
UNREADABLE_CELL = "[Could not be read]"
UNRENDERABLE_VALUE = "[Unrenderable value]"
UNKNOWN_SHEET = "Unknown Sheet"


@dataclass
class FileMetadataInterface:
    filename: str | None = None
    file_extension: str | None = None
    file_path: str | None = None
    folder_path: str | None = None

    def populate_from_path(self, path: str | Path | None) -> None:
        """Populate file metadata fields from a path."""
        if path is None:
            return
        p = Path(path)
        self.filename = p.name
        self.file_extension = p.suffix
        self.file_path = str(p.resolve()) if p.exists() else str(p)
        self.folder_path = (
            str(p.parent.resolve()) if p.parent.exists() else str(p.parent)
        )


class ExtractionInterface(Protocol):
    @abstractmethod
    def iterator(self) -> typing.Iterator[str]:
        """
        Returns an iterator over the extracted comments, one formatted line per
        comment, in report order.
        """
        ...

    @abstractmethod
    def get_full_text(self) -> str:
        """All comments as one single block of text"""
        ...

    @abstractmethod
    def get_metadata(self) -> FileMetadataInterface:
        """Returns the metadata of the extracted file"""
        ...


###########################
# part graph and raw records
###########################


@dataclass(frozen=True)
class Person:
    id: str
    display_name: str = UNKNOWN_AUTHOR
    user_id: str = ""


@dataclass(frozen=True)
class SheetDescriptor:
    sheet_id: str
    name: str
    # empty when the manifest entry carries no r:id
    relationship_id: str = ""


@dataclass
class ThreadedCommentRecord:
    sheet_name: str
    cell_address: str
    author_id: str
    author: str
    text: str
    timestamp: str = ""
    parent_id: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return self.sheet_name, self.cell_address


@dataclass
class LegacyNoteRecord:
    sheet_name: str
    cell_address: str
    raw_text: str
    author: str
    # True when the author was guessed from a "Name:" prefix in the body
    author_inferred: bool = False
    cell_content: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return self.sheet_name, self.cell_address


@dataclass
class NormalizedComment:
    sheet_name: str
    cell_address: str
    original_cell_content: str
    comment_text: str
    author: str
    created_date: str = ""
    translated_text: Optional[str] = None
    author_inferred: bool = False
    source: str = "threaded"

    @property
    def key(self) -> tuple[str, str]:
        return self.sheet_name, self.cell_address

    def to_line(self) -> str:
        line = f"{self.sheet_name}!{self.cell_address} [{self.author}] {self.comment_text}"
        if self.translated_text:
            line += f" => {self.translated_text}"
        return line


#####################
# cell value variants
#####################


@dataclass(frozen=True)
class EmptyValue:
    pass


@dataclass(frozen=True)
class RichTextValue:
    runs: tuple[str, ...]


@dataclass(frozen=True)
class FormulaValue:
    formula: str
    # cached result; may itself be another variant
    result: Any = None


@dataclass(frozen=True)
class HyperlinkValue:
    text: Any
    target: str = ""


@dataclass(frozen=True)
class DateTimeValue:
    value: datetime.datetime | datetime.date | datetime.time | datetime.timedelta


@dataclass(frozen=True)
class ArrayValue:
    items: tuple[Any, ...]


@dataclass(frozen=True)
class ScalarValue:
    value: str | int | float | bool


@dataclass(frozen=True)
class OpaqueValue:
    value: Any


CellValue = (
    EmptyValue
    | RichTextValue
    | FormulaValue
    | HyperlinkValue
    | DateTimeValue
    | ArrayValue
    | ScalarValue
    | OpaqueValue
)


####################
# legacy note bodies
####################


@dataclass(frozen=True)
class NoteRuns:
    runs: tuple[str, ...]
    declared_author: str = ""


@dataclass(frozen=True)
class NoteText:
    text: str
    declared_author: str = ""


@dataclass(frozen=True)
class NoteOpaque:
    payload: Any


NoteBody = NoteRuns | NoteText | NoteOpaque


########
# report
########


@dataclass
class CommentReportMetadata(FileMetadataInterface):
    sheet_count: int = 0
    threaded_count: int = 0
    legacy_count: int = 0


@dataclass
class CommentReport(ExtractionInterface):
    comments: List[NormalizedComment] = field(default_factory=list)
    # True when the archive holds any threaded comment part, even an empty one
    has_threaded_comments: bool = False
    metadata: CommentReportMetadata = field(default_factory=CommentReportMetadata)

    @property
    def nothing_found(self) -> bool:
        return not self.comments

    def iterator(self) -> typing.Iterator[str]:
        for comment in self.comments:
            yield comment.to_line()

    def get_full_text(self) -> str:
        return "\n".join(self.iterator())

    def get_metadata(self) -> CommentReportMetadata:
        return self.metadata
