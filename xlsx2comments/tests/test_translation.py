import io
import json
import logging
import unittest
import urllib.error
from unittest.mock import MagicMock

import pytest

from xlsx2comments.extractors.data_types import NormalizedComment
from xlsx2comments.translation import (
    GeminiTranslator,
    PassthroughTranslator,
    TranslationConfig,
    TranslationError,
    TranslationRequestError,
    apply_translations,
    build_translator,
    translate_comments,
)

logger = logging.getLogger(__name__)

tc = unittest.TestCase()


def _make_mock_response(data: dict | bytes, status: int = 200) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status = status
    if isinstance(data, dict):
        mock_response.read.return_value = json.dumps(data).encode("utf-8")
    else:
        mock_response.read.return_value = data
    return mock_response


def _answer(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _comment(text: str) -> NormalizedComment:
    return NormalizedComment(
        sheet_name="S",
        cell_address="A1",
        original_cell_content="x",
        comment_text=text,
        author="Alice",
    )


@pytest.fixture
def config() -> TranslationConfig:
    return TranslationConfig(target_language="vi", api_key="test-key", batch_size=2)


@pytest.fixture
def sleeps() -> list:
    return []


class TestTranslationConfig:
    def test_enabled_needs_key_and_language(self):
        tc.assertTrue(TranslationConfig("vi", api_key="k").enabled)
        tc.assertFalse(TranslationConfig("vi").enabled)
        tc.assertFalse(TranslationConfig("", api_key="k").enabled)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XLSX2COMMENTS_TEST_KEY", "secret")

        config = TranslationConfig.from_env(
            "ja",
            env_key="XLSX2COMMENTS_TEST_KEY",
            dotenv_path=str(tmp_path / "missing.env"),
        )

        tc.assertEqual("secret", config.api_key)
        tc.assertEqual("ja", config.target_language)

    def test_from_dotenv_file(self, monkeypatch, tmp_path):
        # registered with monkeypatch so the value loaded from the file is undone
        monkeypatch.setenv("XLSX2COMMENTS_DOTENV_KEY", "placeholder")
        monkeypatch.delenv("XLSX2COMMENTS_DOTENV_KEY")
        env_file = tmp_path / ".env"
        env_file.write_text("XLSX2COMMENTS_DOTENV_KEY=from-file\n")

        config = TranslationConfig.from_env(
            "vi", env_key="XLSX2COMMENTS_DOTENV_KEY", dotenv_path=str(env_file)
        )

        tc.assertEqual("from-file", config.api_key)


class TestGeminiTranslator:
    def test_translate_text(self, config, sleeps):
        requests = []

        def mock_request(request, timeout):
            requests.append((request, timeout))
            return _make_mock_response(_answer("Xin chào\n"))

        translator = GeminiTranslator(
            config, request_func=mock_request, sleep_func=sleeps.append
        )

        tc.assertEqual("Xin chào", translator.translate_text("Hello"))
        request, timeout = requests[0]
        tc.assertIn("gemini-1.5-flash:generateContent", request.full_url)
        tc.assertIn("key=test-key", request.full_url)
        tc.assertEqual("POST", request.get_method())
        tc.assertEqual(30.0, timeout)
        payload = json.loads(request.data.decode("utf-8"))
        tc.assertIn("Hello", payload["contents"][0]["parts"][0]["text"])

    def test_translate_text_keeps_original_on_failure(self, config):
        translator = GeminiTranslator(
            config, request_func=lambda r, timeout: _make_mock_response(b"oops", 500)
        )

        tc.assertEqual("Hello", translator.translate_text("Hello"))
        tc.assertEqual("", translator.translate_text("   "))

    def test_batch_in_chunks(self, config, sleeps):
        answers = iter([_answer('["A", "B"]'), _answer('["C"]')])
        translator = GeminiTranslator(
            config,
            request_func=lambda r, timeout: _make_mock_response(next(answers)),
            sleep_func=sleeps.append,
        )

        tc.assertListEqual(["A", "B", "C"], translator.translate_batch(["a", "b", "c"]))
        tc.assertListEqual([1.0, 1.0], sleeps)

    def test_batch_count_mismatch_falls_back_to_single_texts(self, config, sleeps):
        answers = iter(
            [_answer('["only one"]'), _answer("first"), _answer("second")]
        )
        translator = GeminiTranslator(
            config,
            request_func=lambda r, timeout: _make_mock_response(next(answers)),
            sleep_func=sleeps.append,
        )

        tc.assertListEqual(["first", "second"], translator.translate_batch(["a", "b"]))

    def test_batch_error_falls_back_to_single_texts(self, config, sleeps):
        calls = {"count": 0}

        def mock_request(request, timeout):
            calls["count"] += 1
            if calls["count"] == 1:
                return _make_mock_response(_answer("not json at all"))
            return _make_mock_response(_answer(f"t{calls['count']}"))

        translator = GeminiTranslator(
            config, request_func=mock_request, sleep_func=sleeps.append
        )

        tc.assertListEqual(["t2", "t3"], translator.translate_batch(["a", "b"]))

    def test_disabled_translator_returns_originals(self):
        mock_request = MagicMock()
        translator = GeminiTranslator(
            TranslationConfig("vi"), request_func=mock_request
        )

        tc.assertListEqual(["a", "b"], translator.translate_batch(["a", "b"]))
        tc.assertEqual("a", translator.translate_text("a"))
        mock_request.assert_not_called()

    def test_http_error_raises_request_error(self, config):
        def mock_request(request, timeout):
            raise urllib.error.HTTPError(
                request.full_url, 403, "Forbidden", {}, io.BytesIO(b'{"error": "denied"}')
            )

        translator = GeminiTranslator(config, request_func=mock_request)

        with pytest.raises(TranslationRequestError) as exc_info:
            translator._generate("prompt")
        tc.assertEqual(403, exc_info.value.status)
        tc.assertEqual('{"error": "denied"}', exc_info.value.body)

    def test_network_error_raises_translation_error(self, config):
        def mock_request(request, timeout):
            raise urllib.error.URLError("unreachable")

        translator = GeminiTranslator(config, request_func=mock_request)

        with pytest.raises(TranslationError):
            translator._generate("prompt")

    def test_api_error_payload(self, config):
        translator = GeminiTranslator(
            config,
            request_func=lambda r, timeout: _make_mock_response(
                {"error": {"message": "quota exceeded"}}
            ),
        )

        with pytest.raises(TranslationError, match="quota exceeded"):
            translator._generate("prompt")


def test_build_translator(config):
    tc.assertIsInstance(build_translator(None), PassthroughTranslator)
    tc.assertIsInstance(build_translator(TranslationConfig("vi")), PassthroughTranslator)
    tc.assertIsInstance(build_translator(config), GeminiTranslator)


def test_translate_comments():
    class Upper:
        def translate_batch(self, texts):
            return [text.upper() for text in texts]

    class Short:
        def translate_batch(self, texts):
            return ["only"]

    comments = [_comment("one"), _comment("two")]

    translated = translate_comments(comments, Upper())
    tc.assertListEqual(["ONE", "TWO"], [c.translated_text for c in translated])
    # originals are untouched
    tc.assertIsNone(comments[0].translated_text)

    padded = translate_comments(comments, Short())
    tc.assertListEqual(["only", ""], [c.translated_text for c in padded])

    tc.assertListEqual([], translate_comments([], Upper()))


def test_apply_translations_matches_by_position():
    comments = [_comment("one"), _comment("two"), _comment("three")]

    applied = apply_translations(comments, ["un", "deux"])

    tc.assertListEqual(["un", "deux", ""], [c.translated_text for c in applied])
    tc.assertListEqual(["one", "two", "three"], [c.comment_text for c in applied])
