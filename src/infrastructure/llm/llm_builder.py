"""
infrastructure.llm.llm_builder - Centralized chat model construction.

The companion only needs conversational chat models. The provider is
controlled by the LLM_PROVIDER setting.

Supported providers:
    - "openai"  → langchain_openai.ChatOpenAI
    - "groq"    → langchain_groq.ChatGroq
    - "ollama"  → langchain_ollama.ChatOllama
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from langchain_core.language_models import BaseChatModel

from infrastructure.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "groq", "ollama")


def build_llm(
    *,
    provider: str,
    model: str,
    temperature: float = 0.7,
    ollama_base_url: str = "http://localhost:11434/",
    openai_api_key: str = "",
    groq_api_key: str = "",
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """Build a chat model for the given provider.

    Args:
        provider: One of "openai", "groq", "ollama".
        model: Model name for the selected provider.
        temperature: Sampling temperature.
        ollama_base_url: Ollama server URL (only used when provider="ollama").
        openai_api_key: API key for OpenAI.
        groq_api_key: API key for Groq.
        max_tokens: Reply length cap.

    Raises:
        ValueError: If the provider is unknown or required credentials are missing.
    """
    provider = provider.lower().strip()

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when LLM_PROVIDER='openai'")

        kwargs: Dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "openai_api_key": openai_api_key,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.info("Building ChatOpenAI (model=%s)", model)
        return ChatOpenAI(**kwargs)

    elif provider == "groq":
        from langchain_groq import ChatGroq

        if not groq_api_key:
            raise ValueError("GROQ_API_KEY is required when LLM_PROVIDER='groq'")

        logger.info("Building ChatGroq (model=%s)", model)
        return ChatGroq(
            model=model,
            temperature=temperature,
            groq_api_key=groq_api_key,
            max_tokens=max_tokens if max_tokens is not None else 512,
        )

    elif provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs = {
            "model": model,
            "temperature": temperature,
            "base_url": ollama_base_url,
        }
        if max_tokens is not None:
            kwargs["num_predict"] = max_tokens

        logger.info("Building ChatOllama (model=%s, url=%s)", model, ollama_base_url)
        return ChatOllama(**kwargs)

    raise ValueError(
        f"Unsupported LLM_PROVIDER: '{provider}'. "
        f"Must be one of: {', '.join(SUPPORTED_PROVIDERS)}."
    )


def build_llm_from_settings(config: Settings) -> BaseChatModel:
    return build_llm(
        provider=config.llm_provider,
        model=config.active_llm_model,
        temperature=config.llm_temperature,
        ollama_base_url=config.ollama_base_url,
        openai_api_key=config.openai_api_key,
        groq_api_key=config.groq_api_key,
        max_tokens=config.llm_max_tokens,
    )
