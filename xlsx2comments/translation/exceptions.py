class TranslationError(Exception):
    """Raised when the translation service cannot produce a translation."""

    def __init__(self, message: str, *, body: str | None = None, cause: Exception = None):
        super().__init__(message)
        self.body = body
        self.__cause__ = cause


class TranslationRequestError(TranslationError):
    """Raised when the translation service answers with an HTTP error."""

    def __init__(self, status: int, body: str | None = None, *, cause: Exception = None):
        self.status = status
        super().__init__(
            f"Translation request failed with HTTP {status}", body=body, cause=cause
        )
