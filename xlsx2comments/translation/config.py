import os
from dataclasses import dataclass

import dotenv

DEFAULT_API_KEY_ENV = "GEMINI_API_KEY"

# Languages offered by the CLI; any code the model understands also works
SUPPORTED_LANGUAGES = {
    "vi": "Vietnamese",
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
}


@dataclass(frozen=True)
class TranslationConfig:
    """
    Settings for the translation collaborator.

    Translation is a capability, not a requirement: without an API key the
    translator hands texts back unchanged. The config is built once at the
    application edge and passed down explicitly.
    """

    target_language: str
    api_key: str = ""
    model: str = "gemini-1.5-flash"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    # texts per request; keeps prompts under the model's token limit
    batch_size: int = 20
    chunk_delay_seconds: float = 1.0
    item_delay_seconds: float = 0.05
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.target_language)

    @classmethod
    def from_env(
        cls,
        target_language: str,
        *,
        env_key: str = DEFAULT_API_KEY_ENV,
        dotenv_path: str | None = None,
    ) -> "TranslationConfig":
        """Read the API key from the environment (and a .env file, if present)."""
        dotenv.load_dotenv(dotenv_path)
        return cls(target_language=target_language, api_key=os.getenv(env_key, ""))
