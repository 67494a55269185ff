# kernel/relay.py
"""
Asuna Relay — Message Pipeline

One inbound message, start to finish:

1. Empty text          → ignored (None)
2. Slash command       → answered locally (kernel/commands.py)
3. Name heuristics     → fill in the display name if we don't have one
4. Persona             → PARTNER or FRIEND framing
5. History snapshot    → taken BEFORE the new message is stored
6. Store user turn
7. Prompt + fallback   → always produces a display string
8. Store bot turn
9. Voice mode          → try TTS, fall back to text on None

The whole thing runs inside a catch-all: a user message is never left
without an answer, even when something here is broken.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.model_fallback import FallbackResult, GenerationConfig, ModelFallbackExecutor
from kernel.commands import dispatch
from kernel.conversation_store import ConversationStore, Role
from kernel.logger import RelayLogger
from kernel.profile_resolver import ProfileResolver, extract_name
from persona.prompt_builder import PromptBuilder
from system.config import RelayConfig

GENERIC_APOLOGY = "Sorry, I encountered an error. Please try again."

_PREVIEW_CHARS = 50


@dataclass
class Reply:
    text: str
    handled_by: str  # "command" | "model" | "error"
    audio: Optional[bytes] = None
    audio_mime: Optional[str] = None
    model: Optional[str] = None

    @property
    def is_voice(self) -> bool:
        return self.audio is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.text,
            "handledBy": self.handled_by,
            "model": self.model,
            "voice": self.is_voice,
        }


def _preview(text: str) -> str:
    return text if len(text) <= _PREVIEW_CHARS else text[:_PREVIEW_CHARS] + "..."


class RelayBot:
    """
    Usage:
        relay = RelayBot.from_config(config, logger)
        reply = relay.handle_message("9477...@c.us", "hey")
        if reply: transport.send(reply.text or reply.audio)
    """

    def __init__(
        self,
        store: ConversationStore,
        resolver: ProfileResolver,
        prompt_builder: PromptBuilder,
        executor: ModelFallbackExecutor,
        speech=None,
        logger: Optional[RelayLogger] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.prompt_builder = prompt_builder
        self.executor = executor
        self.speech = speech
        self.logger = logger or RelayLogger()

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        logger: Optional[RelayLogger] = None,
        backend=None,
        speech=None,
    ) -> "RelayBot":
        """Wire the production collaborators (Gemini, OpenAI TTS) from config."""
        logger = logger or RelayLogger(log_file=config.log_file)

        if backend is None:
            from providers.gemini_client import GeminiTextBackend
            backend = GeminiTextBackend(config.gemini_api_key, logger=logger)

        if speech is None and config.tts_enabled:
            from providers.tts_client import OpenAISpeechBackend
            speech = OpenAISpeechBackend(
                config.openai_api_key,
                model=config.tts_model,
                voice=config.tts_voice,
                logger=logger,
            )

        executor = ModelFallbackExecutor(
            backend=backend,
            models=config.models,
            generation_config=GenerationConfig(
                max_output_tokens=config.max_output_tokens,
                temperature=config.temperature,
                timeout=config.request_timeout,
            ),
            logger=logger,
        )
        logger.info("Relay", f"AI models configured: {', '.join(config.models)}")
        logger.info("Relay", f"Max context messages: {config.max_context}")

        return cls(
            store=ConversationStore(max_context=config.max_context),
            resolver=ProfileResolver(config.confusion_keywords, config.friend_only_identities),
            prompt_builder=PromptBuilder(bot_name=config.bot_name, creator_name=config.creator_name),
            executor=executor,
            speech=speech,
            logger=logger,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Entry Point
    # ─────────────────────────────────────────────────────────────────────

    def handle_message(self, user_id: str, text: str) -> Optional[Reply]:
        if not text or not text.strip():
            return None

        try:
            return self._handle(user_id, text)
        except Exception as e:
            self.logger.error("Relay", f"Error handling message from {user_id}: {type(e).__name__}: {e}")
            traceback.print_exc()
            return Reply(text=GENERIC_APOLOGY, handled_by="error")

    def _handle(self, user_id: str, text: str) -> Reply:
        self.logger.info("Relay", f"Message from {user_id}: {_preview(text)}")

        command = dispatch(self.store, user_id, text)
        if command is not None:
            self.logger.info("Relay", f"Command /{command.command} from {user_id} ok={command.ok}")
            return Reply(text=command.summary, handled_by="command")

        stored_name = self._remember_name(user_id, text)
        persona = self.resolver.resolve_persona(text, stored_name, user_id=user_id)

        history = self.store.recent_history(user_id)
        self.store.append(user_id, Role.USER, text)

        prompt = self.prompt_builder.build(persona, persona.display_name, history, text)
        result = self.executor.run(prompt)

        self.store.append(user_id, Role.ASSISTANT, result.text)
        self.logger.info("Relay", f"Response to {user_id} ({persona.tag.value}): {_preview(result.text)}")

        return self._render(user_id, result)

    # ─────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────

    def _remember_name(self, user_id: str, text: str) -> Optional[str]:
        stored = self.store.get_display_name(user_id)
        if stored:
            return stored
        extracted = extract_name(text)
        if extracted:
            self.store.set_display_name(user_id, extracted)
            self.logger.info("Relay", f"Learned name for {user_id}: {extracted}")
        return extracted

    def _render(self, user_id: str, result: FallbackResult) -> Reply:
        reply = Reply(text=result.text, handled_by="model", model=result.model)

        if not result.succeeded or not self.store.get_voice_mode(user_id):
            return reply
        if self.speech is None:
            self.logger.warning("Relay", f"Voice mode on for {user_id} but no TTS backend configured")
            return reply

        audio = self.speech.synthesize(result.text)
        if audio is None:
            self.logger.warning("Relay", f"TTS failed for {user_id}, sending text")
            return reply

        reply.audio = audio
        reply.audio_mime = getattr(self.speech, "mime_type", "audio/mpeg")
        return reply

    def status(self) -> Dict[str, Any]:
        return {
            "activeUsers": self.store.active_user_count(),
            "models": list(self.executor.models),
            "voiceAvailable": self.speech is not None,
        }

    def close(self) -> None:
        self.store.close()
        self.logger.info("Relay", "Context store closed")
