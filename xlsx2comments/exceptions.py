class CommentExtractionError(Exception):
    """Base class for errors raised while extracting spreadsheet comments."""

    def __init__(self, message: str, *, cause: Exception = None):
        super().__init__(message)
        self.__cause__ = cause  # Optional chaining for debugging


class ContainerError(CommentExtractionError):
    """Raised when the input bytes are not a readable ZIP/OOXML container."""


class ExtractionZipBombError(ContainerError):
    """Raised when a ZIP container trips the ZIP-bomb heuristics."""


class UnsupportedFormatError(CommentExtractionError):
    """Raised when the file format cannot be processed (xls, xlsb, encrypted)."""

    def __init__(
        self,
        file_path: str | None,
        message: str = None,
        *,
        format_name: str = "",
        cause: Exception = None,
    ):
        self.file_path = file_path
        self.format_name = format_name
        if message is None:
            message = f"File format not supported: {file_path}"
        super().__init__(message, cause=cause)


class MalformedXmlError(CommentExtractionError):
    """Raised when an archive part is not well-formed XML."""

    def __init__(self, part: str, message: str = None, *, cause: Exception = None):
        self.part = part
        if message is None:
            message = f"Malformed XML in part: {part}"
        super().__init__(message, cause=cause)


class UnresolvedReferenceError(CommentExtractionError):
    """Raised inside the relationship resolver when a link cannot be followed.

    Never escapes the resolver: every occurrence ends in a fallback name.
    """

    def __init__(self, part: str, message: str = None, *, cause: Exception = None):
        self.part = part
        if message is None:
            message = f"Could not resolve owning sheet for part: {part}"
        super().__init__(message, cause=cause)
