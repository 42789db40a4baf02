from xlsx2comments.translation.client import (
    GeminiTranslator,
    PassthroughTranslator,
    Translator,
    apply_translations,
    build_translator,
    translate_comments,
)
from xlsx2comments.translation.config import SUPPORTED_LANGUAGES, TranslationConfig
from xlsx2comments.translation.exceptions import (
    TranslationError,
    TranslationRequestError,
)

__all__ = [
    "GeminiTranslator",
    "PassthroughTranslator",
    "SUPPORTED_LANGUAGES",
    "TranslationConfig",
    "TranslationError",
    "TranslationRequestError",
    "Translator",
    "apply_translations",
    "build_translator",
    "translate_comments",
]
