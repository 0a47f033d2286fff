"""Environment-driven settings for the diagnosis client application."""

import os
from dataclasses import dataclass

from services.openai.capability import DEFAULT_ANALYSIS_MODEL, DEFAULT_CHAT_MODEL

DEFAULT_DETECTIONS_API_URL = "http://localhost:8080"


@dataclass(frozen=True)
class AppConfig:
    """Settings read once at startup.

    Attributes:
        openai_api_key: Credential for the AI service (OPENAI_API_KEY).
        analysis_model: Model used for one-shot image analysis (ANALYSIS_MODEL).
        chat_model: Model used for follow-up chat (CHAT_MODEL).
        detections_api_url: Base URL of the detections backend (DETECTIONS_API_URL).
        detections_timeout: Seconds before a save request times out (DETECTIONS_TIMEOUT).
    """

    openai_api_key: str
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    detections_api_url: str = DEFAULT_DETECTIONS_API_URL
    detections_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the config from environment variables.

        Raises:
            RuntimeError: If OPENAI_API_KEY is missing or a numeric value is invalid.
        """
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key is None or not api_key.strip():
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")

        raw_timeout = os.getenv("DETECTIONS_TIMEOUT", "10")
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise RuntimeError(f"DETECTIONS_TIMEOUT={raw_timeout!r} is not a number of seconds.") from exc

        return cls(
            openai_api_key=api_key.strip(),
            analysis_model=os.getenv("ANALYSIS_MODEL") or DEFAULT_ANALYSIS_MODEL,
            chat_model=os.getenv("CHAT_MODEL") or DEFAULT_CHAT_MODEL,
            detections_api_url=os.getenv("DETECTIONS_API_URL") or DEFAULT_DETECTIONS_API_URL,
            detections_timeout=timeout,
        )
