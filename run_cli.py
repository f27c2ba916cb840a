"""
Run the Lila pain companion CLI.

Usage:
    python run_cli.py [--user ID] [COMMAND] [OPTIONS]

Commands:
    init       Create or migrate the database
    log        Save a pain entry (e.g. --level 6 --location head --trigger stress)
    entries    List entries for a range, grouped by day
    summary    Show the doctor summary for a range
    patterns   Show history-wide patterns
    resolve    Close the open pain session
    onboard    Set diagnosis, usual pain locations and medications
    chat       Interactive check-in with the companion

Examples:
    python run_cli.py onboard
    python run_cli.py log --level 7 --location "lower back" --med ibuprofen
    python run_cli.py summary --range last30
    python run_cli.py --user alice chat

Environment variables (all optional):
    LILA_USER           Default user id (default: local)
    DB_PATH             SQLite database file path (default: lila.db)
    LILA_TIMEZONE       IANA zone for calendar days and hours (default: UTC)
    RESPONSE_GENERATOR  "scripted" or "llm" (default: scripted)
    LLM_PROVIDER        "openai", "groq", or "ollama"
    LOG_LEVEL           Logging level (default: WARNING)
"""

import logging
import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING").upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app()
