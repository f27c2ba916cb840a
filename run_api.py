"""
Run the Lila pain companion REST API.

Usage:
    python run_api.py

Environment variables (all optional):
    DB_PATH                   SQLite database file path (default: lila.db)
    LILA_TIMEZONE             IANA zone for calendar days and hours (default: UTC)
    LILA_APP_NAME             Name used in the doctor summary (default: Lila)
    RESPONSE_GENERATOR        "scripted" or "llm" (default: scripted)
    LLM_PROVIDER              "openai", "groq", or "ollama" (default: ollama)
    OPENAI_API_KEY            Required when LLM_PROVIDER=openai
    GROQ_API_KEY              Required when LLM_PROVIDER=groq
    OLLAMA_BASE_URL           Ollama server URL (default: http://localhost:11434/)
    CONVERSATION_REUSE_HOURS  Reuse a chat active within this window (default: 48)
    LOG_LEVEL                 Logging level (default: INFO)
"""

import logging
import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn

if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "adapters.rest.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
