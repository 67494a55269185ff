# system/config.py
"""
Asuna Relay — Configuration

Everything the relay needs is read ONCE at startup from the environment
(after loading .env) and frozen into a RelayConfig. Nothing mutates it
during a run.

Lookup order for .env:
1. <project root>/.env
2. <cwd>/.env
3. Plain process environment
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple


# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_PRIMARY_MODEL = "gemini-2.5-pro"
DEFAULT_FALLBACK_MODELS: Tuple[str, ...] = (
    "gemini-2.5-flash",
    "gemini-flash-lite-latest",
)

DEFAULT_MAX_CONTEXT = 20
DEFAULT_BOT_NAME = "Asuna"
DEFAULT_CREATOR_NAME = "Lakshitha"

DEFAULT_MAX_OUTPUT_TOKENS = 256
DEFAULT_TEMPERATURE = 0.8
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds, per candidate attempt

DEFAULT_CONFUSION_KEYWORDS: Tuple[str, ...] = (
    "girl",
    "she",
    "female",
    "gender",
    "are you a girl",
    "are you female",
)

DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_TTS_VOICE = "nova"

DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 3847


class ConfigError(ValueError):
    """Raised when an environment value cannot be turned into config."""
    pass


# -----------------------------------------------------------------------------
# .env Loading
# -----------------------------------------------------------------------------

def _get_project_root() -> Path:
    """Directory holding system/, backend/, kernel/ ..."""
    return Path(__file__).resolve().parent.parent


def load_env_file() -> bool:
    """
    Load environment variables from .env file.

    Returns True if a .env was loaded, False otherwise.
    """
    from dotenv import load_dotenv

    env_path = _get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        print(f"[Config] Loaded .env from {env_path}", flush=True)
        return True

    cwd_env = Path.cwd() / ".env"
    if cwd_env.exists():
        load_dotenv(cwd_env, override=False)
        print(f"[Config] Loaded .env from {cwd_env}", flush=True)
        return True

    print("[Config] No .env file found, using process environment", flush=True)
    return False


# -----------------------------------------------------------------------------
# Parsing Helpers
# -----------------------------------------------------------------------------

def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float(
    env: Mapping[str, str],
    key: str,
    default: float,
    minimum: float,
    maximum: Optional[float] = None,
) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"[{minimum}, {maximum}]" if maximum is not None else f">= {minimum}"
        raise ConfigError(f"{key} must be in {bounds}, got {value}")
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = (env.get(key) or "").strip().lower()
    if not raw:
        return default
    return raw in ("true", "1", "yes", "on")


def _get_list(env: Mapping[str, str], key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = env.get(key)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _dedupe(items) -> Tuple[str, ...]:
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


# -----------------------------------------------------------------------------
# Config Object
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RelayConfig:
    """
    Immutable runtime configuration.

    The model candidate list is `models`: the primary model followed by the
    fallbacks, duplicates removed, order preserved.
    """
    gemini_api_key: str = ""
    primary_model: str = DEFAULT_PRIMARY_MODEL
    fallback_models: Tuple[str, ...] = DEFAULT_FALLBACK_MODELS

    max_context: int = DEFAULT_MAX_CONTEXT
    bot_name: str = DEFAULT_BOT_NAME
    creator_name: str = DEFAULT_CREATOR_NAME

    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    confusion_keywords: Tuple[str, ...] = DEFAULT_CONFUSION_KEYWORDS
    friend_only_identities: Tuple[str, ...] = ()

    openai_api_key: str = ""
    tts_model: str = DEFAULT_TTS_MODEL
    tts_voice: str = DEFAULT_TTS_VOICE

    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT

    log_file: Optional[Path] = None
    debug: bool = False

    @property
    def models(self) -> Tuple[str, ...]:
        return _dedupe((self.primary_model,) + tuple(self.fallback_models))

    @property
    def tts_enabled(self) -> bool:
        return bool(self.openai_api_key)

    def to_public_dict(self) -> dict:
        """Non-secret view for /info and startup logging."""
        return {
            "name": self.bot_name,
            "maxContextMessages": self.max_context,
            "model": self.primary_model,
            "fallbackModels": list(self.models[1:]),
            "maxOutputTokens": self.max_output_tokens,
            "temperature": self.temperature,
            "voiceAvailable": self.tts_enabled,
        }


def load_config(env: Optional[Mapping[str, str]] = None, *, load_dotenv_file: bool = True) -> RelayConfig:
    """
    Build a RelayConfig from `env` (defaults to os.environ).

    Raises ConfigError on malformed values.
    """
    if env is None:
        if load_dotenv_file:
            load_env_file()
        env = os.environ

    primary = (env.get("GEMINI_MODEL") or "").strip() or DEFAULT_PRIMARY_MODEL
    fallbacks = _get_list(env, "GEMINI_FALLBACK_MODELS", DEFAULT_FALLBACK_MODELS)

    keywords = tuple(k.lower() for k in _get_list(env, "PERSONA_CONFUSION_KEYWORDS", DEFAULT_CONFUSION_KEYWORDS))
    friend_only = tuple(i.lower() for i in _get_list(env, "PERSONA_FRIEND_ONLY", ()))

    log_file_raw = (env.get("RELAY_LOG_FILE") or "").strip()

    config = RelayConfig(
        gemini_api_key=(env.get("GEMINI_API_KEY") or "").strip(),
        primary_model=primary,
        fallback_models=fallbacks,
        max_context=_get_int(env, "MAX_CONTEXT_MESSAGES", DEFAULT_MAX_CONTEXT, minimum=1),
        bot_name=(env.get("BOT_NAME") or "").strip() or DEFAULT_BOT_NAME,
        creator_name=(env.get("BOT_CREATOR") or "").strip() or DEFAULT_CREATOR_NAME,
        max_output_tokens=_get_int(env, "GEMINI_MAX_OUTPUT_TOKENS", DEFAULT_MAX_OUTPUT_TOKENS, minimum=1),
        temperature=_get_float(env, "GEMINI_TEMPERATURE", DEFAULT_TEMPERATURE, 0.0, 2.0),
        request_timeout=_get_float(env, "GEMINI_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, 1.0),
        confusion_keywords=keywords,
        friend_only_identities=friend_only,
        openai_api_key=(env.get("OPENAI_API_KEY") or "").strip(),
        tts_model=(env.get("TTS_MODEL") or "").strip() or DEFAULT_TTS_MODEL,
        tts_voice=(env.get("TTS_VOICE") or "").strip() or DEFAULT_TTS_VOICE,
        api_host=(env.get("API_HOST") or "").strip() or DEFAULT_API_HOST,
        api_port=_get_int(env, "API_PORT", DEFAULT_API_PORT, minimum=1),
        log_file=Path(log_file_raw) if log_file_raw else None,
        debug=_get_bool(env, "RELAY_DEBUG", False),
    )

    if not config.models:
        raise ConfigError("At least one Gemini model must be configured")

    return config


def load_config_or_exit() -> RelayConfig:
    """Entry-point helper: print the problem and exit on bad config."""
    try:
        return load_config()
    except ConfigError as e:
        print(f"[Config] ERROR: {e}", file=sys.stderr, flush=True)
        raise SystemExit(2)
