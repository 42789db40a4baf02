"""
xlsx2comments: Comment and note extraction for Excel workbooks.

Reads threaded comments and legacy notes from Office Open XML spreadsheets,
reconciles the two so no cell is reported twice, and produces display-ready
records that can be translated and written to a summary workbook.
"""

import io
from pathlib import Path
from typing import Any, Generator

from xlsx2comments.exceptions import (
    CommentExtractionError,
    ContainerError,
    MalformedXmlError,
    UnsupportedFormatError,
)
from xlsx2comments.extractors.data_types import CommentReport, NormalizedComment
from xlsx2comments.router import get_extractor, is_supported_file

__version__ = "0.1.0"


def read_xlsx_comments(
    file_like: io.BytesIO, path: str | None = None
) -> Generator[CommentReport, Any, None]:
    """Extract comments from an XLSX file."""
    from xlsx2comments.extractors.xlsx_comment_extractor import (
        read_xlsx_comments as _read_xlsx_comments,
    )

    return _read_xlsx_comments(file_like, path)


def read_file(
    path: str | Path,
) -> Generator[CommentReport, Any, None]:
    """
    Read and extract comments from a workbook file.

    The format is checked from the file name before the file is opened, so
    .xls and .xlsb files are rejected without being read.

    Args:
        path: Path to the workbook.

    Yields:
        A single CommentReport.

    Raises:
        UnsupportedFormatError: If the file is not an .xlsx-family workbook.
        ContainerError: If the file is not a readable workbook.
        FileNotFoundError: If the file does not exist.

    Example:
        >>> import xlsx2comments
        >>> for report in xlsx2comments.read_file("review.xlsx"):
        ...     print(report.get_full_text())
    """
    path = Path(path)
    extractor = get_extractor(str(path))
    with open(path, "rb") as f:
        yield from extractor(io.BytesIO(f.read()), str(path))


__all__ = [
    # Version
    "__version__",
    # Main functions
    "read_file",
    "read_xlsx_comments",
    "is_supported_file",
    "get_extractor",
    # Types
    "CommentReport",
    "NormalizedComment",
    # Errors
    "CommentExtractionError",
    "ContainerError",
    "MalformedXmlError",
    "UnsupportedFormatError",
]
