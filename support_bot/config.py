from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent
REPO_DIR = BASE_DIR.parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the completion model, knowledge sources, and runtime limits."""
    gemini_api_key: str
    gemini_model: str
    knowledge_dir: Path
    system_prompt_path: Path
    public_dir: Path
    guard_patterns_path: Optional[Path]
    session_timeout_sec: float
    max_messages_per_session: int
    max_messages_per_minute: int
    max_message_length: int
    cleanup_interval_sec: float
    completion_timeout_sec: float
    temperature: float
    max_output_tokens: int
    currency_symbol: str


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return Path(value) if value else default


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and REPO_DIR for default paths.
    Failure Modes: Non-numeric limit/timeout env values raise ValueError at startup.
    If Removed: App cannot configure the model, knowledge files, or limits.
    Testing Notes: Verify defaults and overrides via monkeypatched environment.
    """
    # Resolve file locations first, then numeric limits.
    guard_patterns = os.getenv("GUARD_PATTERNS_PATH")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        knowledge_dir=_env_path("KNOWLEDGE_DIR", REPO_DIR / "knowledge"),
        system_prompt_path=_env_path("SYSTEM_PROMPT_PATH", REPO_DIR / "prompts" / "system_prompt.md"),
        public_dir=_env_path("PUBLIC_DIR", REPO_DIR / "public"),
        guard_patterns_path=Path(guard_patterns) if guard_patterns else None,
        session_timeout_sec=float(os.getenv("SESSION_TIMEOUT_SEC", str(30 * 60))),
        max_messages_per_session=int(os.getenv("MAX_MESSAGES_PER_SESSION", "50")),
        max_messages_per_minute=int(os.getenv("MAX_MESSAGES_PER_MINUTE", "20")),
        max_message_length=int(os.getenv("MAX_MESSAGE_LENGTH", "500")),
        cleanup_interval_sec=float(os.getenv("CLEANUP_INTERVAL_SEC", str(5 * 60))),
        completion_timeout_sec=float(os.getenv("COMPLETION_TIMEOUT_SEC", "30")),
        temperature=float(os.getenv("COMPLETION_TEMPERATURE", "0.7")),
        max_output_tokens=int(os.getenv("COMPLETION_MAX_TOKENS", "1024")),
        currency_symbol=os.getenv("CURRENCY_SYMBOL", "£"),
    )
