"""
Centralized configuration with environment variable overrides.

Conversation timing, oracle model settings and WhatsApp credentials are
configurable here. Nothing is hardcoded in dialogue or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from src.logging_context import attach_turn_id

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ConversationConfig:
    """Dialogue timing and decision thresholds."""

    context_ttl_minutes: int = _safe_int("CONTEXT_TTL_MINUTES", "30")
    history_limit: int = _safe_int("HISTORY_LIMIT", "10")
    low_confidence_threshold: float = _safe_float("LOW_CONFIDENCE_THRESHOLD", "0.6")
    conflict_window_hours: float = _safe_float("CONFLICT_WINDOW_HOURS", "2")
    reference_timezone: str = os.getenv("REFERENCE_TIMEZONE", "America/Sao_Paulo")
    max_listed_tasks: int = _safe_int("MAX_LISTED_TASKS", "10")


@dataclass(frozen=True)
class OracleConfig:
    """LLM settings for the intent and slot oracle."""

    api_key: str = os.getenv("OPENAI_API_KEY", "")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    timeout_sec: float = _safe_float("ORACLE_TIMEOUT_SEC", "20")


@dataclass(frozen=True)
class WhatsAppConfig:
    """WhatsApp Cloud API credentials."""

    api_url: str = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v19.0")
    token: str = os.getenv("WHATSAPP_TOKEN", "")
    phone_number_id: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    timeout_sec: float = _safe_float("WHATSAPP_TIMEOUT_SEC", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    whatsapp: WhatsAppConfig = field(default_factory=WhatsAppConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "agenda-assistant")

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.conversation.reference_timezone)


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    conv = config.conversation
    if conv.context_ttl_minutes < 1:
        raise ValueError(
            f"CONTEXT_TTL_MINUTES must be >= 1, got {conv.context_ttl_minutes}"
        )
    if conv.history_limit < 1:
        raise ValueError(f"HISTORY_LIMIT must be >= 1, got {conv.history_limit}")
    if not 0.0 <= conv.low_confidence_threshold <= 1.0:
        raise ValueError(
            "LOW_CONFIDENCE_THRESHOLD must be between 0.0 and 1.0, "
            f"got {conv.low_confidence_threshold}"
        )
    if conv.conflict_window_hours <= 0:
        raise ValueError(
            f"CONFLICT_WINDOW_HOURS must be > 0, got {conv.conflict_window_hours}"
        )
    if conv.max_listed_tasks < 1:
        raise ValueError(f"MAX_LISTED_TASKS must be >= 1, got {conv.max_listed_tasks}")
    try:
        ZoneInfo(conv.reference_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"REFERENCE_TIMEZONE is not a known timezone: {conv.reference_timezone!r}"
        ) from None

    if not 0.0 <= config.oracle.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.oracle.llm_temperature}"
        )
    if config.oracle.timeout_sec <= 0:
        raise ValueError(f"ORACLE_TIMEOUT_SEC must be > 0, got {config.oracle.timeout_sec}")
    if config.whatsapp.timeout_sec <= 0:
        raise ValueError(
            f"WHATSAPP_TIMEOUT_SEC must be > 0, got {config.whatsapp.timeout_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(turn_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        attach_turn_id(handler)
    logger.info(
        "Configuration loaded for '%s' (timezone %s)",
        config.agent_name,
        config.conversation.reference_timezone,
    )
    return config


# Singleton instance
settings = load_config()
