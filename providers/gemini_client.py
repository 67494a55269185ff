# providers/gemini_client.py
"""
Asuna Relay — Gemini Text Backend

Thin adapter over google-generativeai. One call = one model, one prompt,
no retries; retrying across models is ModelFallbackExecutor's job.

SDK exceptions are translated into RelayBackendError subclasses so the
executor can classify them without reading the message:
- ResourceExhausted / TooManyRequests / ServiceUnavailable → capacity
- DeadlineExceeded                                          → timeout (capacity)
- PermissionDenied / Unauthenticated                        → configuration
Anything else propagates unchanged and is classified by its text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from backend.model_fallback import (
    BackendAuthError,
    BackendCapacityError,
    BackendTimeoutError,
    BackendUnavailableError,
    EmptyResponseError,
    GenerationConfig,
)
from kernel.logger import RelayLogger


_CAPACITY_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
    google_exceptions.ServiceUnavailable,
)

_AUTH_ERRORS = (
    google_exceptions.PermissionDenied,
    google_exceptions.Unauthenticated,
)

# Candidate.finish_reason values that still carry usable text.
# 1=STOP, 2=MAX_TOKENS
_USABLE_FINISH_REASONS = (1, 2, "STOP", "MAX_TOKENS")


def _mask_key(api_key: str) -> str:
    return f"{api_key[:8]}...{api_key[-4:]}" if len(api_key) > 12 else "***"


def _finish_reason(candidate: Any):
    reason = getattr(candidate, "finish_reason", None)
    return getattr(reason, "name", reason)


def extract_text(response: Any) -> str:
    """
    Pull the reply text out of a GenerateContentResponse.

    response.text raises when the candidate was blocked, so the parts are
    walked by hand. Raises EmptyResponseError when there is nothing usable.
    """
    if response is None:
        raise EmptyResponseError("Gemini returned no response")

    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None)
    if block_reason:
        raise EmptyResponseError(f"Gemini blocked the prompt: {block_reason}")

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise EmptyResponseError("Gemini returned no candidates")

    candidate = candidates[0]
    parts = getattr(getattr(candidate, "content", None), "parts", None) or []
    text = "".join(getattr(part, "text", "") or "" for part in parts)

    if not text.strip():
        reason = _finish_reason(candidate)
        if reason is not None and reason not in _USABLE_FINISH_REASONS:
            raise EmptyResponseError(f"Gemini stopped without text: finish_reason={reason}")
        raise EmptyResponseError("Gemini returned an empty response")

    return text


class GeminiTextBackend:
    name = "gemini"

    def __init__(self, api_key: str, logger: Optional[RelayLogger] = None):
        self.logger = logger or RelayLogger()
        if not api_key:
            raise BackendUnavailableError("GEMINI_API_KEY not found in environment variables")

        genai.configure(api_key=api_key)
        self._key_preview = _mask_key(api_key)
        self.logger.info("Gemini", f"Initialized with key: {self._key_preview}")

    def generate(self, model: str, prompt: str, config: GenerationConfig) -> str:
        generative_model = genai.GenerativeModel(
            model_name=model,
            generation_config=genai.GenerationConfig(
                max_output_tokens=config.max_output_tokens,
                temperature=config.temperature,
            ),
        )

        try:
            response = generative_model.generate_content(
                prompt,
                request_options={"timeout": config.timeout},
            )
        except google_exceptions.DeadlineExceeded as e:
            raise BackendTimeoutError(f"{model} timed out after {config.timeout}s: {e}") from e
        except _CAPACITY_ERRORS as e:
            raise BackendCapacityError(f"{model} at capacity (429/503): {e}") from e
        except _AUTH_ERRORS as e:
            raise BackendAuthError(f"{model} rejected the API key: {e}") from e

        return extract_text(response)

    def status(self) -> Dict[str, Any]:
        return {"provider": self.name, "api_key": self._key_preview}
