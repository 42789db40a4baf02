import io
import logging
import mimetypes
from typing import Any, Callable, Generator

import olefile

from xlsx2comments.exceptions import UnsupportedFormatError
from xlsx2comments.extractors.data_types import CommentReport
from xlsx2comments.mime_types import (
    MIME_TYPE_MAPPING,
    REJECTED_FILE_TYPES,
    SUPPORTED_FILE_TYPES,
    file_type_from_extension,
)

logger = logging.getLogger(__name__)

_OLE_ENCRYPTION_STREAMS = ("EncryptionInfo", "EncryptedPackage")


def _conversion_message(format_name: str) -> str:
    return (
        f"The {format_name} format is not supported. "
        "Please save the file as .xlsx (Excel Workbook) and try again."
    )


def detect_file_type(path: str) -> str | None:
    """File type of `path` from its MIME type, falling back to the extension."""
    mime_type, _ = mimetypes.guess_type(path.lower())
    if mime_type is not None and mime_type in MIME_TYPE_MAPPING:
        file_type = MIME_TYPE_MAPPING[mime_type]
        logger.debug(f"Detected file type: {file_type} (MIME: {mime_type}) for file: {path}")
        return file_type
    return file_type_from_extension(path)


def is_supported_file(path: str) -> bool:
    """Checks if the path names a workbook format comments can be read from"""
    return detect_file_type(path) in SUPPORTED_FILE_TYPES


def check_path_supported(path: str) -> str:
    """
    Reject unsupported formats by file name, before any bytes are read.

    :returns the detected file type
    :raises UnsupportedFormatError: for .xls, .xlsb and non-workbook files
    """
    file_type = detect_file_type(path)
    if file_type in REJECTED_FILE_TYPES:
        format_name = REJECTED_FILE_TYPES[file_type]
        raise UnsupportedFormatError(
            path, _conversion_message(format_name), format_name=format_name
        )
    if file_type not in SUPPORTED_FILE_TYPES:
        raise UnsupportedFormatError(
            path,
            f"File type not supported: {path}. Only .xlsx workbooks can be processed.",
            format_name=file_type or "",
        )
    return file_type


def check_signature_supported(file_like: io.BytesIO, path: str | None = None) -> None:
    """
    Reject OLE2 compound files, whatever their extension.

    Both legacy .xls workbooks and password-protected .xlsx files are OLE2
    containers rather than ZIP packages.
    """
    file_like.seek(0)
    if not olefile.isOleFile(file_like):
        file_like.seek(0)
        return
    file_like.seek(0)
    with olefile.OleFileIO(file_like) as ole:
        encrypted = any(ole.exists(stream) for stream in _OLE_ENCRYPTION_STREAMS)
    file_like.seek(0)
    if encrypted:
        raise UnsupportedFormatError(
            path,
            "Password-protected workbooks are not supported. "
            "Please remove the password, save the file as .xlsx and try again.",
            format_name="encrypted workbook",
        )
    format_name = REJECTED_FILE_TYPES["xls"]
    raise UnsupportedFormatError(path, _conversion_message(format_name), format_name=format_name)


def reject_binary_package(part_names: set[str] | list[str], path: str | None = None) -> None:
    """Reject a ZIP package whose workbook part is binary (.xlsb saved as .xlsx)."""
    if any(name.endswith("workbook.bin") for name in part_names):
        format_name = REJECTED_FILE_TYPES["xlsb"]
        raise UnsupportedFormatError(
            path, _conversion_message(format_name), format_name=format_name
        )


def get_extractor(
    path: str,
) -> Callable[[io.BytesIO, str | None], Generator[CommentReport, Any, None]]:
    """Returns the comment extractor for a path.
       The file MUST not exist (yet). The path or filename alone suffices.

    :raises UnsupportedFormatError: File is not a supported workbook format
    """
    check_path_supported(path)
    from xlsx2comments.extractors.xlsx_comment_extractor import read_xlsx_comments

    return read_xlsx_comments
