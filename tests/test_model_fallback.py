#!/usr/bin/env python3
"""
Asuna Relay — Model Fallback Tests

Tests for:
- Error classification (text patterns + pinned exception classes)
- Fallback state machine (advance on capacity, stop otherwise)
- Terminal message mapping
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.model_fallback import (
    CAPACITY_ERROR_MESSAGE,
    CONFIGURATION_ERROR_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    BackendAuthError,
    BackendTimeoutError,
    EmptyResponseError,
    ErrorClassification,
    GenerationConfig,
    ModelFallbackExecutor,
    RelayBackendError,
    classify_error_message,
)
from kernel.logger import RelayLogger


class ScriptedBackend:
    """Backend whose outcome per model is scripted: a str to return or an exception to raise."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    def generate(self, model, prompt, config):
        self.calls.append((model, prompt, config))
        outcome = self.outcomes[model]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _executor(backend, models, **kwargs):
    return ModelFallbackExecutor(backend, models, logger=RelayLogger(), **kwargs)


class TestClassifyErrorMessage(unittest.TestCase):
    """Test text-pattern classification."""

    def test_capacity_markers(self):
        """Test quota / 429 / 503 / capacity are transient capacity."""
        for message in (
            "429 Too Many Requests",
            "You exceeded your current quota",
            "503 The model is overloaded",
            "Model at capacity",
            "Resource exhausted",
        ):
            with self.subTest(message=message):
                self.assertEqual(classify_error_message(message), ErrorClassification.TRANSIENT_CAPACITY)

    def test_configuration_markers(self):
        """Test key/auth problems are configuration errors."""
        for message in ("API key not valid. Please pass a valid API key.", "403 Permission denied", "401 Unauthenticated"):
            with self.subTest(message=message):
                self.assertEqual(classify_error_message(message), ErrorClassification.CONFIGURATION)

    def test_other(self):
        """Test everything else is OTHER."""
        self.assertEqual(classify_error_message("400 invalid request"), ErrorClassification.OTHER)
        self.assertEqual(classify_error_message(""), ErrorClassification.OTHER)

    def test_status_codes_match_anywhere(self):
        """Test 429 and 503 count even when glued to other text."""
        for message in ("HTTP429 Too Many", "upstream503", "[429]"):
            with self.subTest(message=message):
                self.assertEqual(classify_error_message(message), ErrorClassification.TRANSIENT_CAPACITY)

    def test_glued_status_code_still_falls_back(self):
        """Test the executor moves on after an HTTP429-style failure."""
        backend = ScriptedBackend({"A": Exception("HTTP429 Too Many"), "B": "hello"})
        result = _executor(backend, ["A", "B"]).run("prompt")
        self.assertEqual(result.text, "hello")
        self.assertEqual([call[0] for call in backend.calls], ["A", "B"])

    def test_capacity_wins_over_configuration(self):
        """Test a quota message mentioning the key is still retryable."""
        self.assertEqual(
            classify_error_message("quota exceeded for API key"),
            ErrorClassification.TRANSIENT_CAPACITY,
        )


class TestFallbackExecutor(unittest.TestCase):
    """Test the sequential fallback protocol."""

    def test_first_candidate_succeeds(self):
        """Test success on the primary model stops immediately and trims text."""
        backend = ScriptedBackend({"A": "  hello there \n", "B": "unused"})
        result = _executor(backend, ["A", "B"]).run("prompt")
        self.assertEqual(result.text, "hello there")
        self.assertTrue(result.succeeded)
        self.assertEqual(result.model, "A")
        self.assertEqual([c[0] for c in backend.calls], ["A"])

    def test_capacity_error_advances_to_next_candidate(self):
        """Test A fails with 429, B answers, C is never called."""
        backend = ScriptedBackend({
            "A": Exception("[429] Resource has been exhausted"),
            "B": "hello",
            "C": "never",
        })
        executor = _executor(backend, ["A", "B", "C"])
        self.assertEqual(executor.execute("prompt"), "hello")
        self.assertEqual([c[0] for c in backend.calls], ["A", "B"])

    def test_non_capacity_error_short_circuits(self):
        """Test a non-capacity failure returns the generic message without trying B."""
        backend = ScriptedBackend({"A": Exception("400 invalid request"), "B": "hello"})
        result = _executor(backend, ["A", "B"]).run("prompt")
        self.assertEqual(result.text, GENERIC_ERROR_MESSAGE)
        self.assertFalse(result.succeeded)
        self.assertEqual(result.classification, ErrorClassification.OTHER)
        self.assertEqual([c[0] for c in backend.calls], ["A"])

    def test_all_capacity_errors_give_capacity_message(self):
        """Test exhausting every candidate on capacity yields the capacity message."""
        backend = ScriptedBackend({
            "A": Exception("429 rate limited"),
            "B": Exception("503 overloaded"),
            "C": Exception("quota exceeded"),
        })
        result = _executor(backend, ["A", "B", "C"]).run("prompt")
        self.assertEqual(result.text, CAPACITY_ERROR_MESSAGE)
        self.assertEqual(result.classification, ErrorClassification.TRANSIENT_CAPACITY)
        self.assertEqual([a.model for a in result.attempts], ["A", "B", "C"])

    def test_configuration_error_maps_to_configuration_message(self):
        """Test an API key error stops and reports the configuration message."""
        backend = ScriptedBackend({"A": Exception("API key not valid"), "B": "hello"})
        self.assertEqual(_executor(backend, ["A", "B"]).execute("p"), CONFIGURATION_ERROR_MESSAGE)
        self.assertEqual(len(backend.calls), 1)

    def test_pinned_classification_beats_message(self):
        """Test RelayBackendError subclasses are classified by type, not text."""
        backend = ScriptedBackend({"A": BackendTimeoutError("deadline"), "B": "ok"})
        self.assertEqual(_executor(backend, ["A", "B"]).execute("p"), "ok")

        backend = ScriptedBackend({"A": BackendAuthError("quota?"), "B": "ok"})
        self.assertEqual(_executor(backend, ["A", "B"]).execute("p"), CONFIGURATION_ERROR_MESSAGE)

    def test_unpinned_backend_error_uses_message(self):
        """Test the base RelayBackendError falls back to text classification."""
        backend = ScriptedBackend({"A": RelayBackendError("503 unavailable"), "B": "ok"})
        self.assertEqual(_executor(backend, ["A", "B"]).execute("p"), "ok")

    def test_empty_response_is_other_failure(self):
        """Test a blank reply is a failure that does not fall back."""
        backend = ScriptedBackend({"A": "   ", "B": "ok"})
        result = _executor(backend, ["A", "B"]).run("p")
        self.assertEqual(result.text, GENERIC_ERROR_MESSAGE)
        self.assertEqual([c[0] for c in backend.calls], ["A"])

        backend = ScriptedBackend({"A": EmptyResponseError("blocked"), "B": "ok"})
        self.assertEqual(_executor(backend, ["A", "B"]).execute("p"), GENERIC_ERROR_MESSAGE)

    def test_pluggable_classifier(self):
        """Test a custom classifier drives the decision."""
        backend = ScriptedBackend({"A": Exception("E_BUSY"), "B": "ok"})
        classifier = MagicMock(return_value=ErrorClassification.TRANSIENT_CAPACITY)
        executor = _executor(backend, ["A", "B"], classifier=classifier)
        self.assertEqual(executor.execute("p"), "ok")
        classifier.assert_called_once_with("E_BUSY")

    def test_broken_classifier_never_escapes(self):
        """Test a classifier that raises is treated as OTHER."""
        backend = ScriptedBackend({"A": Exception("boom"), "B": "ok"})
        executor = _executor(backend, ["A", "B"], classifier=MagicMock(side_effect=RuntimeError("bad")))
        self.assertEqual(executor.execute("p"), GENERIC_ERROR_MESSAGE)

    def test_generation_config_and_prompt_passed_through(self):
        """Test every attempt receives the same prompt and generation config."""
        config = GenerationConfig(max_output_tokens=64, temperature=0.1, timeout=5.0)
        backend = ScriptedBackend({"A": Exception("429"), "B": "ok"})
        _executor(backend, ["A", "B"], generation_config=config).run("the prompt")
        for _, prompt, passed in backend.calls:
            self.assertEqual(prompt, "the prompt")
            self.assertIs(passed, config)

    def test_models_required(self):
        """Test an empty candidate list is rejected."""
        with self.assertRaises(ValueError):
            ModelFallbackExecutor(ScriptedBackend({}), [])

    def test_result_to_dict(self):
        """Test the result serializes its attempts."""
        backend = ScriptedBackend({"A": Exception("429"), "B": "ok"})
        data = _executor(backend, ["A", "B"]).run("p").to_dict()
        self.assertEqual(data["model"], "B")
        self.assertEqual([a["model"] for a in data["attempts"]], ["A", "B"])
        self.assertEqual(data["attempts"][0]["classification"], "transient_capacity")


if __name__ == "__main__":
    unittest.main()
