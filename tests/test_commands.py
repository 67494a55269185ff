#!/usr/bin/env python3
"""
Asuna Relay — User Command Tests
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from kernel.commands import MAX_NAME_LENGTH, RESET_REPLY, dispatch, parse_command
from kernel.conversation_store import ConversationStore, Role


class TestParseCommand(unittest.TestCase):
    """Test which inputs count as commands."""

    def test_known_commands(self):
        """Test known words parse with their arguments."""
        self.assertEqual(parse_command("/reset"), ("reset", ""))
        self.assertEqual(parse_command("  /NAME   Kasun Perera "), ("name", "Kasun Perera"))
        self.assertEqual(parse_command("/voice on"), ("voice", "on"))

    def test_not_commands(self):
        """Test plain text and unknown slash words are not commands."""
        self.assertIsNone(parse_command("reset"))
        self.assertIsNone(parse_command("/shrug"))
        self.assertIsNone(parse_command(""))


class TestCommandHandlers(unittest.TestCase):
    """Test command side effects on the store."""

    def setUp(self):
        self.store = ConversationStore(max_context=5)

    def test_reset_clears_history_keeps_name(self):
        """Test /reset drops history but keeps the profile."""
        self.store.set_display_name("u1", "Kasun")
        self.store.append("u1", Role.USER, "hi")
        response = dispatch(self.store, "u1", "/reset")
        self.assertEqual(response.summary, RESET_REPLY)
        self.assertEqual(self.store.recent_history("u1"), [])
        self.assertEqual(self.store.get_display_name("u1"), "Kasun")

    def test_name_sets_display_name(self):
        """Test /name stores a normalized name."""
        response = dispatch(self.store, "u1", "/name   Kasun    Perera")
        self.assertTrue(response.ok)
        self.assertEqual(self.store.get_display_name("u1"), "Kasun Perera")
        self.assertEqual(response.data["name"], "Kasun Perera")

    def test_name_is_truncated(self):
        """Test overly long names are cut."""
        dispatch(self.store, "u1", "/name " + "x" * 100)
        self.assertEqual(len(self.store.get_display_name("u1")), MAX_NAME_LENGTH)

    def test_name_without_argument_reports(self):
        """Test /name alone shows the current name or asks for one."""
        self.assertIsNone(dispatch(self.store, "u1", "/name").data["name"])
        self.store.set_display_name("u1", "Kasun")
        self.assertIn("Kasun", dispatch(self.store, "u1", "/name").summary)

    def test_voice_on_off_toggle(self):
        """Test /voice on, off and bare toggle."""
        dispatch(self.store, "u1", "/voice on")
        self.assertTrue(self.store.get_voice_mode("u1"))
        dispatch(self.store, "u1", "/voice OFF")
        self.assertFalse(self.store.get_voice_mode("u1"))
        dispatch(self.store, "u1", "/voice")
        self.assertTrue(self.store.get_voice_mode("u1"))

    def test_voice_bad_argument(self):
        """Test an unknown /voice argument leaves the setting alone."""
        response = dispatch(self.store, "u1", "/voice loud")
        self.assertFalse(response.ok)
        self.assertFalse(self.store.get_voice_mode("u1"))

    def test_help(self):
        """Test /help lists every command."""
        text = dispatch(self.store, "u1", "/help").summary
        for word in ("/reset", "/name", "/voice"):
            self.assertIn(word, text)

    def test_non_command_returns_none(self):
        """Test ordinary text is not dispatched."""
        self.assertIsNone(dispatch(self.store, "u1", "hello"))


if __name__ == "__main__":
    unittest.main()
