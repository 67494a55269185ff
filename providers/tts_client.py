# providers/tts_client.py
"""
Asuna Relay — Text-to-Speech Backend

Voice replies go through OpenAI's audio.speech endpoint. This backend is
optional: synthesize() returns None on ANY failure and the relay then
sends the plain text reply instead.
"""

from __future__ import annotations

import re
from typing import Optional

import httpx
from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError

from kernel.logger import RelayLogger
from system.config import DEFAULT_TTS_MODEL, DEFAULT_TTS_VOICE

AUDIO_MIME = "audio/mpeg"

# audio.speech rejects input longer than this
MAX_TTS_CHARS = 4096

TTS_TIMEOUT = 30.0  # seconds

_SINHALA = re.compile(r"[\u0D80-\u0DFF]")

LANGUAGE_NAMES = {
    "si": "Sinhala",
    "en": "English",
}


def detect_language_hint(text: str) -> str:
    """'si' if the text has any Sinhala script, else 'en'."""
    return "si" if _SINHALA.search(text or "") else "en"


class OpenAISpeechBackend:
    mime_type = AUDIO_MIME

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_TTS_MODEL,
        voice: str = DEFAULT_TTS_VOICE,
        timeout: float = TTS_TIMEOUT,
        logger: Optional[RelayLogger] = None,
    ):
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required for voice replies")
        self.logger = logger or RelayLogger()
        self.model = model
        self.voice = voice
        self.client = OpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(timeout, connect=10.0),
            max_retries=1,
        )
        self.logger.info("TTS", f"Voice replies enabled model={model} voice={voice}")

    def _instructions(self, language_hint: str) -> Optional[str]:
        # Only the gpt-4o TTS family accepts style instructions.
        if not self.model.startswith("gpt-4o"):
            return None
        language = LANGUAGE_NAMES.get(language_hint, "English")
        if language_hint == "si":
            return f"Speak warmly and casually, mixing {language} and English like a Sri Lankan teenager."
        return f"Speak warmly and casually in {language}."

    def synthesize(self, text: str, language_hint: Optional[str] = None) -> Optional[bytes]:
        if not text or not text.strip():
            return None

        hint = language_hint or detect_language_hint(text)
        kwargs = {}
        instructions = self._instructions(hint)
        if instructions:
            kwargs["instructions"] = instructions

        try:
            response = self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text[:MAX_TTS_CHARS],
                response_format="mp3",
                **kwargs,
            )
            audio = response.content
        except (APITimeoutError, APIConnectionError, httpx.TimeoutException) as e:
            self.logger.warning("TTS", f"Speech request timed out/failed to connect: {e}")
            return None
        except OpenAIError as e:
            self.logger.warning("TTS", f"Speech request failed: {e}")
            return None

        if not audio:
            self.logger.warning("TTS", "Speech request returned no audio")
            return None
        return audio
