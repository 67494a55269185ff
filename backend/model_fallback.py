# backend/model_fallback.py
"""
Asuna Relay — Model Fallback Executor

Sequential fallback over an ordered list of Gemini model ids
(best quality first, cheapest/fastest last).

Per request:
    Trying(0) ──ok──────────────────────────► Succeeded(text.strip())
        │
        └─fail─► classify(error)
                   TRANSIENT_CAPACITY, more left ─► Trying(i+1)
                   TRANSIENT_CAPACITY, last one  ─► Failed(TRANSIENT_CAPACITY)
                   CONFIGURATION / OTHER         ─► Failed(...) immediately

Attempts are strictly one after another, never in parallel. A non-capacity
failure (bad request, safety block, bad key) is assumed to be the same on
every backend, so the remaining candidates are skipped.

The executor NEVER raises: every path ends in a display string.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from kernel.logger import RelayLogger
from system.config import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEMPERATURE,
)


# -----------------------------------------------------------------------------
# Error Taxonomy
# -----------------------------------------------------------------------------

class ErrorClassification(Enum):
    TRANSIENT_CAPACITY = "transient_capacity"
    CONFIGURATION = "configuration"
    OTHER = "other"


class RelayBackendError(Exception):
    """
    Base for errors raised by text/speech backends.

    Subclasses pin a classification so the executor does not have to
    guess from the message text.
    """
    classification: Optional[ErrorClassification] = None


class BackendCapacityError(RelayBackendError):
    """Rate limit, quota or overload reported by the backend."""
    classification = ErrorClassification.TRANSIENT_CAPACITY


class BackendTimeoutError(RelayBackendError):
    """One attempt ran past its timeout. Treated like overload."""
    classification = ErrorClassification.TRANSIENT_CAPACITY


class BackendAuthError(RelayBackendError):
    """API key missing, invalid or lacking permission."""
    classification = ErrorClassification.CONFIGURATION


class BackendUnavailableError(RelayBackendError):
    """SDK not installed or backend not configured at all."""
    classification = ErrorClassification.CONFIGURATION


class EmptyResponseError(RelayBackendError):
    """Backend answered without text (e.g. safety block)."""
    classification = ErrorClassification.OTHER


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------

CAPACITY_MARKERS: Tuple[str, ...] = (
    "quota",
    "429",
    "503",
    "capacity",
    "rate limit",
    "resource exhausted",
    "resource_exhausted",
    "overloaded",
)

CONFIGURATION_MARKERS: Tuple[str, ...] = (
    "401",
    "403",
    "api key",
    "api_key",
    "permission denied",
    "permission_denied",
    "unauthenticated",
)

ErrorClassifier = Callable[[str], ErrorClassification]


def classify_error_message(message: str) -> ErrorClassification:
    """
    Text-pattern classification of a backend failure message.

    Capacity wins over configuration when both appear: a quota message that
    also mentions the key is still worth retrying elsewhere.
    """
    lowered = (message or "").lower()

    if any(m in lowered for m in CAPACITY_MARKERS):
        return ErrorClassification.TRANSIENT_CAPACITY

    if any(m in lowered for m in CONFIGURATION_MARKERS):
        return ErrorClassification.CONFIGURATION

    return ErrorClassification.OTHER


# -----------------------------------------------------------------------------
# User-Facing Messages
# -----------------------------------------------------------------------------

CONFIGURATION_ERROR_MESSAGE = "Sorry, there's an issue with my configuration. Please check the API key."
CAPACITY_ERROR_MESSAGE = "I'm currently at maximum capacity. Please try again in a moment."
GENERIC_ERROR_MESSAGE = "Sorry, I encountered an error processing your message. Please try again."

FAILURE_MESSAGES = {
    ErrorClassification.CONFIGURATION: CONFIGURATION_ERROR_MESSAGE,
    ErrorClassification.TRANSIENT_CAPACITY: CAPACITY_ERROR_MESSAGE,
    ErrorClassification.OTHER: GENERIC_ERROR_MESSAGE,
}


# -----------------------------------------------------------------------------
# Request / Result Types
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationConfig:
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class Attempt:
    model: str
    ok: bool
    elapsed: float
    classification: Optional[ErrorClassification] = None
    error: Optional[str] = None


@dataclass
class FallbackResult:
    text: str
    succeeded: bool
    model: Optional[str] = None
    classification: Optional[ErrorClassification] = None
    attempts: List[Attempt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "succeeded": self.succeeded,
            "model": self.model,
            "classification": self.classification.value if self.classification else None,
            "attempts": [
                {
                    "model": a.model,
                    "ok": a.ok,
                    "elapsed": round(a.elapsed, 3),
                    "classification": a.classification.value if a.classification else None,
                }
                for a in self.attempts
            ],
        }


# -----------------------------------------------------------------------------
# Executor
# -----------------------------------------------------------------------------

class ModelFallbackExecutor:
    """
    Usage:
        executor = ModelFallbackExecutor(
            backend=GeminiTextBackend(api_key),
            models=["gemini-2.5-pro", "gemini-2.5-flash"],
        )
        reply = executor.execute(prompt)          # always a str
        result = executor.run(prompt)             # FallbackResult with attempts

    `backend` is anything with generate(model, prompt, config) -> str.
    """

    def __init__(
        self,
        backend,
        models: Sequence[str],
        generation_config: GenerationConfig = GenerationConfig(),
        classifier: ErrorClassifier = classify_error_message,
        logger: Optional[RelayLogger] = None,
    ):
        models = tuple(m for m in models if m)
        if not models:
            raise ValueError("ModelFallbackExecutor needs at least one model")
        self.backend = backend
        self.models: Tuple[str, ...] = models
        self.generation_config = generation_config
        self.classifier = classifier
        self.logger = logger or RelayLogger()

    def execute(self, prompt: str) -> str:
        return self.run(prompt).text

    def classify(self, error: BaseException) -> ErrorClassification:
        pinned = getattr(error, "classification", None)
        if isinstance(pinned, ErrorClassification):
            return pinned
        try:
            return self.classifier(str(error))
        except Exception as e:
            self.logger.error("Fallback", f"Classifier failed on {type(error).__name__}: {e}")
            return ErrorClassification.OTHER

    def run(self, prompt: str) -> FallbackResult:
        attempts: List[Attempt] = []
        classification = ErrorClassification.OTHER

        for index, model in enumerate(self.models):
            started = time.monotonic()
            try:
                text = (self.backend.generate(model, prompt, self.generation_config) or "").strip()
                if not text:
                    raise EmptyResponseError(f"{model} returned an empty response")
            except Exception as e:
                elapsed = time.monotonic() - started
                classification = self.classify(e)
                attempts.append(Attempt(model, False, elapsed, classification, str(e)))
                self.logger.warning(
                    "Fallback",
                    f"model={model} failed class={classification.value} "
                    f"elapsed={elapsed:.2f}s error={e}",
                )

                if classification is not ErrorClassification.TRANSIENT_CAPACITY:
                    break
                if index + 1 < len(self.models):
                    self.logger.info("Fallback", f"Switching to next fallback model: {self.models[index + 1]}")
                continue

            elapsed = time.monotonic() - started
            attempts.append(Attempt(model, True, elapsed))
            self.logger.info("Fallback", f"model={model} ok elapsed={elapsed:.2f}s")
            return FallbackResult(
                text=text,
                succeeded=True,
                model=model,
                attempts=attempts,
            )

        self.logger.error(
            "Fallback",
            f"All attempts failed class={classification.value} tried={[a.model for a in attempts]}",
        )
        return FallbackResult(
            text=FAILURE_MESSAGES[classification],
            succeeded=False,
            classification=classification,
            attempts=attempts,
        )
