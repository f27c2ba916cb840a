"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment (and an
optional .env file) or passed explicitly in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the pain companion.

    No module-level globals: construct via from_env() or pass explicitly
    in tests.
    """
    project_root: Path = Path(".")

    # Database
    db_path: str = "lila.db"

    # Calendar-day and hour-of-day projections use this zone.
    timezone: str = "UTC"
    app_name: str = "Lila"

    # ── Response generation ─────────────────────────────────────
    # "scripted" (rule-based, default) or "llm".
    response_generator: str = "scripted"

    # Allowed: "openai", "groq", "ollama"
    llm_provider: str = "ollama"
    llm_model_ollama: str = "llama3.2"
    llm_model_openai: str = "gpt-4.1-mini"
    llm_model_groq: str = "llama-3.3-70b-versatile"
    ollama_base_url: str = "http://localhost:11434/"
    groq_api_key: str = ""
    openai_api_key: str = ""
    llm_temperature: float = 0.7
    llm_max_tokens: int = 300
    llm_history_messages: int = 5
    llm_history_entries: int = 10

    # Insights
    range_debounce_seconds: float = 0.2
    default_history_days: int = 90

    # Chat
    conversation_reuse_hours: int = 48

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def active_llm_model(self) -> str:
        """Return the model name for the currently active LLM provider."""
        if self.llm_provider == "openai":
            return self.llm_model_openai
        elif self.llm_provider == "groq":
            return self.llm_model_groq
        return self.llm_model_ollama

    @property
    def uses_llm(self) -> bool:
        return self.response_generator.lower().strip() == "llm"

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from environment variables (.env honoured)."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent

        return cls(
            project_root=root,
            db_path=os.getenv("DB_PATH", "lila.db"),
            timezone=os.getenv("LILA_TIMEZONE", "UTC"),
            app_name=os.getenv("LILA_APP_NAME", "Lila"),

            response_generator=os.getenv("RESPONSE_GENERATOR", "scripted"),
            llm_provider=os.getenv("LLM_PROVIDER", "ollama"),
            llm_model_ollama=os.getenv("LLM_MODEL_OLLAMA", "llama3.2"),
            llm_model_openai=os.getenv("LLM_MODEL_OPENAI", "gpt-4.1-mini"),
            llm_model_groq=os.getenv("LLM_MODEL_GROQ", "llama-3.3-70b-versatile"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "300")),
            llm_history_messages=int(os.getenv("LLM_HISTORY_MESSAGES", "5")),
            llm_history_entries=int(os.getenv("LLM_HISTORY_ENTRIES", "10")),

            range_debounce_seconds=float(os.getenv("RANGE_DEBOUNCE_SECONDS", "0.2")),
            default_history_days=int(os.getenv("DEFAULT_HISTORY_DAYS", "90")),
            conversation_reuse_hours=int(os.getenv("CONVERSATION_REUSE_HOURS", "48")),
        )
