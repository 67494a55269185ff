#!/usr/bin/env python3
"""
Asuna Relay — Configuration Tests
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from system.config import (
    DEFAULT_CONFUSION_KEYWORDS,
    DEFAULT_FALLBACK_MODELS,
    DEFAULT_PRIMARY_MODEL,
    ConfigError,
    RelayConfig,
    load_config,
)


class TestLoadConfig(unittest.TestCase):
    """Test environment parsing."""

    def test_defaults(self):
        """Test an empty environment yields the documented defaults."""
        config = load_config({})
        self.assertEqual(config.max_context, 20)
        self.assertEqual(config.bot_name, "Asuna")
        self.assertEqual(config.models, (DEFAULT_PRIMARY_MODEL,) + DEFAULT_FALLBACK_MODELS)
        self.assertEqual(config.max_output_tokens, 256)
        self.assertAlmostEqual(config.temperature, 0.8)
        self.assertEqual(config.confusion_keywords, DEFAULT_CONFUSION_KEYWORDS)
        self.assertEqual(config.friend_only_identities, ())
        self.assertFalse(config.tts_enabled)
        self.assertIsNone(config.log_file)

    def test_overrides(self):
        """Test every variable is picked up."""
        config = load_config({
            "GEMINI_API_KEY": " key ",
            "GEMINI_MODEL": "gemini-x",
            "GEMINI_FALLBACK_MODELS": "gemini-y, gemini-x ,gemini-z",
            "MAX_CONTEXT_MESSAGES": "5",
            "BOT_NAME": "Yui",
            "GEMINI_MAX_OUTPUT_TOKENS": "128",
            "GEMINI_TEMPERATURE": "0.3",
            "GEMINI_TIMEOUT": "12",
            "PERSONA_CONFUSION_KEYWORDS": "Robot, AI",
            "PERSONA_FRIEND_ONLY": "Gimhara",
            "OPENAI_API_KEY": "sk-test",
            "API_PORT": "8080",
            "RELAY_LOG_FILE": "logs/relay.log",
            "RELAY_DEBUG": "yes",
        })
        self.assertEqual(config.gemini_api_key, "key")
        self.assertEqual(config.models, ("gemini-x", "gemini-y", "gemini-z"))
        self.assertEqual(config.max_context, 5)
        self.assertEqual(config.bot_name, "Yui")
        self.assertEqual(config.max_output_tokens, 128)
        self.assertAlmostEqual(config.temperature, 0.3)
        self.assertAlmostEqual(config.request_timeout, 12.0)
        self.assertEqual(config.confusion_keywords, ("robot", "ai"))
        self.assertEqual(config.friend_only_identities, ("gimhara",))
        self.assertTrue(config.tts_enabled)
        self.assertEqual(config.api_port, 8080)
        self.assertEqual(config.log_file, Path("logs/relay.log"))
        self.assertTrue(config.debug)

    def test_empty_fallback_list(self):
        """Test an empty fallback list leaves only the primary model."""
        config = load_config({"GEMINI_FALLBACK_MODELS": ""})
        self.assertEqual(config.models, (DEFAULT_PRIMARY_MODEL,))

    def test_invalid_values(self):
        """Test malformed numbers raise ConfigError."""
        for env in (
            {"MAX_CONTEXT_MESSAGES": "twenty"},
            {"MAX_CONTEXT_MESSAGES": "0"},
            {"GEMINI_TEMPERATURE": "3.5"},
            {"GEMINI_MAX_OUTPUT_TOKENS": "-1"},
            {"GEMINI_TIMEOUT": "soon"},
        ):
            with self.subTest(env=env):
                with self.assertRaises(ConfigError):
                    load_config(env)

    def test_config_is_frozen(self):
        """Test configuration cannot change after startup."""
        config = RelayConfig()
        with self.assertRaises(Exception):
            config.max_context = 50

    def test_public_dict_hides_secrets(self):
        """Test the /info view never contains keys."""
        public = load_config({"GEMINI_API_KEY": "secret", "OPENAI_API_KEY": "secret2"}).to_public_dict()
        self.assertNotIn("secret", str(public))


if __name__ == "__main__":
    unittest.main()
