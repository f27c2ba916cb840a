"""
factory - Composition root for the Lila pain companion.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (CLI, REST, WebSocket) call this factory to get
fully configured services and conversation policies.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    # For direct service access (REST API):
    insights = factory.create_insights_service()
    report = await insights.report(user_id, date_range)

    # For the chat companion (CLI, WebSocket):
    ctx = await factory.build_session_ctx(user_id, conversation_id)
    policy = factory.create_conversation_policy(ctx)
    reply = await policy.handle_message(user_input)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.notifier import ChangeNotifier
from infrastructure.persistence.pain_log_repo import SQLitePainLogRepository
from infrastructure.persistence.profile_repo import SQLiteProfileRepository
from infrastructure.persistence.session_repo import SQLitePainSessionRepository
from infrastructure.persistence.chat_repo import (
    SQLiteChatMessageRepository,
    SQLiteConversationRepository,
)
from application.context import SessionContext
from application.services.chat_history import ChatHistoryService
from application.services.conversation import ConversationPolicy
from application.services.insights import InsightsService
from application.services.pain_log import PainLogService
from application.services.profile import ProfileService
from application.services.range_loader import RangeLoader
from application.services.responses import ScriptedResponseGenerator
from domain.ports import Navigator, ResponseGenerator

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root — wires all dependencies together.

    Call initialize() once at startup, then create services as needed.
    All repositories share one ChangeNotifier so a write made through any
    of them reaches every live insights subscriber.
    """

    def __init__(self, config: Settings):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._notifier = ChangeNotifier()
        self._response_generator: Optional[ResponseGenerator] = None
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: run migrations.

        Must be called before creating services.
        """
        logger.info("Initializing ServiceFactory (db=%s)...", self._config.db_path)
        await run_migrations(self._connection)
        logger.info("Database migrations complete")
        self._initialized = True
        logger.info("ServiceFactory ready")

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def create_pain_log_repository(self) -> SQLitePainLogRepository:
        return SQLitePainLogRepository(self._connection, self._notifier)

    def create_profile_repository(self) -> SQLiteProfileRepository:
        return SQLiteProfileRepository(self._connection)

    def create_session_repository(self) -> SQLitePainSessionRepository:
        return SQLitePainSessionRepository(self._connection)

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_pain_log_service(self) -> PainLogService:
        """Create a PainLogService with sessions and profile medications wired."""
        self._ensure_initialized()
        return PainLogService(
            log_store=self.create_pain_log_repository(),
            session_repo=self.create_session_repository(),
            profile_store=self.create_profile_repository(),
        )

    def create_insights_service(self) -> InsightsService:
        self._ensure_initialized()
        return InsightsService(
            log_store=self.create_pain_log_repository(),
            tz=self._config.tzinfo,
            app_name=self._config.app_name,
            history_days=self._config.default_history_days,
        )

    def create_profile_service(self) -> ProfileService:
        self._ensure_initialized()
        return ProfileService(profile_store=self.create_profile_repository())

    def create_chat_history_service(self) -> ChatHistoryService:
        """Create a ChatHistoryService for conversation persistence."""
        self._ensure_initialized()
        return ChatHistoryService(
            conversation_repo=SQLiteConversationRepository(self._connection),
            message_repo=SQLiteChatMessageRepository(self._connection),
            reuse_hours=self._config.conversation_reuse_hours,
        )

    def create_range_loader(self, user_id: str) -> RangeLoader:
        """Create a RangeLoader for one insights view of *user_id*."""
        self._ensure_initialized()
        return RangeLoader(
            log_store=self.create_pain_log_repository(),
            insights=self.create_insights_service(),
            user_id=user_id,
            debounce=self._config.range_debounce_seconds,
        )

    def create_response_generator(self) -> ResponseGenerator:
        """Scripted replies by default; LLM-worded when RESPONSE_GENERATOR=llm.

        The generator is built once and shared. If the chat model cannot
        be built (missing key, unknown provider) the scripted generator
        is used and the problem is logged.
        """
        if self._response_generator is not None:
            return self._response_generator

        scripted = ScriptedResponseGenerator()
        generator: ResponseGenerator = scripted
        if self._config.uses_llm:
            from infrastructure.llm.llm_builder import build_llm_from_settings
            from infrastructure.llm.response_generator import LLMResponseGenerator

            try:
                llm = build_llm_from_settings(self._config)
            except (ValueError, ImportError):
                logger.exception("Could not build chat model, using scripted replies")
            else:
                generator = LLMResponseGenerator(
                    llm,
                    scripted=scripted,
                    history_messages=self._config.llm_history_messages,
                    history_entries=self._config.llm_history_entries,
                    tz=self._config.tzinfo,
                )
                logger.info(
                    "Response generator: LLM (%s / %s)",
                    self._config.llm_provider, self._config.active_llm_model,
                )
        self._response_generator = generator
        return generator

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def build_session_ctx(
        self, user_id: str, conversation_id: str = "",
    ) -> SessionContext:
        """Load the profile snapshot and recent history for a chat session."""
        self._ensure_initialized()
        profile = await self.create_profile_repository().get_profile(user_id)
        history = await self.create_pain_log_service().recent_history(
            user_id, self._config.default_history_days, datetime.now(timezone.utc),
        )
        return SessionContext(
            user_id=user_id,
            conversation_id=conversation_id,
            profile=profile,
            history=history,
        )

    def create_conversation_policy(
        self,
        ctx: SessionContext,
        navigator: Optional[Navigator] = None,
    ) -> ConversationPolicy:
        """Create a ConversationPolicy bound to one session."""
        self._ensure_initialized()
        return ConversationPolicy(
            ctx,
            self.create_pain_log_service(),
            self.create_response_generator(),
            navigator,
            tz=self._config.tzinfo,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
