"""
Comment translation through the Gemini generateContent REST API.

Requests go through ``urllib``; tests inject `request_func` so no network is
needed. Every failure path ends in returning the original text: a comment
report without translations is still a useful report.
"""

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import replace
from typing import Any, Callable, Protocol, Sequence

from xlsx2comments.extractors.data_types import NormalizedComment
from xlsx2comments.translation.config import TranslationConfig
from xlsx2comments.translation.exceptions import (
    TranslationError,
    TranslationRequestError,
)

logger = logging.getLogger(__name__)

RequestFunc = Callable[[urllib.request.Request, float], Any]


class Translator(Protocol):
    def translate_batch(self, texts: Sequence[str]) -> list[str]:
        """Translations of `texts`, same length and order."""
        ...


class PassthroughTranslator:
    """Translator used when translation is switched off."""

    def translate_batch(self, texts: Sequence[str]) -> list[str]:
        return list(texts)


def _default_request(request: urllib.request.Request, timeout: float) -> Any:
    return urllib.request.urlopen(request, timeout=timeout)


class GeminiTranslator:
    def __init__(
        self,
        config: TranslationConfig,
        *,
        request_func: RequestFunc | None = None,
        sleep_func: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._request = request_func or _default_request
        self._sleep = sleep_func

    def _generate(self, prompt: str, *, json_output: bool = False) -> str:
        """Send one prompt and return the first candidate's text."""
        url = (
            f"{self.config.endpoint}/{self.config.model}:generateContent?"
            + urllib.parse.urlencode({"key": self.config.api_key})
        )
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_output:
            payload["generationConfig"] = {"responseMimeType": "application/json"}
        request = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            response = self._request(request, self.config.timeout)
            status = getattr(response, "status", 200)
            raw = response.read()
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp else None
            raise TranslationRequestError(exc.code, body, cause=exc) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise TranslationError(f"Translation request failed: {exc}", cause=exc) from exc

        body = raw.decode("utf-8", errors="replace")
        if status >= 400:
            raise TranslationRequestError(status, body)
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise TranslationError("Invalid translation response JSON", body=body, cause=exc) from exc
        if "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TranslationError(message or "Translation API error", body=body)

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    def translate_text(self, text: str) -> str:
        """Translation of a single text, or the text itself on any failure."""
        if not text or not text.strip():
            return ""
        if not self.config.enabled:
            return text
        prompt = (
            f'Translate the following text to language code "{self.config.target_language}". '
            f"Only return the translated text without quotes. Text: {text}"
        )
        try:
            translated = self._generate(prompt).strip()
        except TranslationError as exc:
            logger.warning(f"Translation failed, keeping original text: {exc}")
            return text
        return translated or text

    def _translate_chunk(self, chunk: list[str]) -> list[str]:
        prompt = (
            "Translate the following array of texts to language code "
            f'"{self.config.target_language}". Return ONLY a valid JSON array of strings. '
            f"Maintain the order. Source: {json.dumps(chunk, ensure_ascii=False)}"
        )
        content = self._generate(prompt, json_output=True)
        if not content:
            return list(chunk)
        try:
            parsed = json.loads(content)
        except ValueError as exc:
            raise TranslationError("Batch translation was not valid JSON", body=content, cause=exc) from exc
        if not isinstance(parsed, list):
            return list(chunk)
        return [str(item) for item in parsed]

    def translate_batch(self, texts: Sequence[str]) -> list[str]:
        """
        Translate `texts` in chunks of `config.batch_size`.

        If a chunk fails or the answer count does not match, every text is
        translated one by one instead. Without an API key the texts are
        returned unchanged.
        """
        texts = list(texts)
        if not texts:
            return []
        if not self.config.enabled:
            logger.info("Translation disabled (no API key); keeping original texts")
            return texts

        size = max(1, self.config.batch_size)
        results: list[str] = []
        try:
            for start in range(0, len(texts), size):
                results.extend(self._translate_chunk(texts[start : start + size]))
                self._sleep(self.config.chunk_delay_seconds)
            if len(results) == len(texts):
                return results
            logger.warning(
                f"Batch translation returned {len(results)} texts for {len(texts)}; "
                "retrying one by one"
            )
        except TranslationError as exc:
            logger.warning(f"Batch translation failed, retrying one by one: {exc}")

        translated = []
        for text in texts:
            translated.append(self.translate_text(text))
            self._sleep(self.config.item_delay_seconds)
        return translated


def build_translator(config: TranslationConfig | None, **kwargs: Any) -> Translator:
    """Gemini translator when the capability is enabled, passthrough otherwise."""
    if config is None or not config.enabled:
        return PassthroughTranslator()
    return GeminiTranslator(config, **kwargs)


def apply_translations(
    comments: Sequence[NormalizedComment], translations: Sequence[str]
) -> list[NormalizedComment]:
    """
    Copies of `comments` with `translated_text` set from `translations`.

    Translations are matched by position; comments past the end of a short
    list get an empty translation.
    """
    if len(translations) != len(comments):
        logger.warning(
            f"Got {len(translations)} translations for {len(comments)} comments"
        )
    return [
        replace(comment, translated_text=translations[i] if i < len(translations) else "")
        for i, comment in enumerate(comments)
    ]


def translate_comments(
    comments: Sequence[NormalizedComment], translator: Translator
) -> list[NormalizedComment]:
    """Copies of `comments` translated in one batch by `translator`."""
    if not comments:
        return []
    return apply_translations(
        comments, translator.translate_batch([c.comment_text for c in comments])
    )
