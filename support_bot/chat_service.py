from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .agent import SupportAgent
from .errors import (
    ChatServiceError,
    CompletionFailed,
    InternalChatError,
    MissingFieldsError,
    ProviderNotConfigured,
    RateLimitExceeded,
)
from .models import ChatResponse
from .rate_limiter import RateLimiter
from .session_store import SessionRegistry

logger = logging.getLogger("support_bot.chat")


@dataclass
class ChatService:
    """Request-path wiring: rate limit, validation, session turn, agent call, history append."""
    agent: SupportAgent
    sessions: SessionRegistry
    rate_limiter: RateLimiter
    max_message_length: int

    def handle_chat(self, session_id: Optional[str], message: Optional[str], client_key: str) -> ChatResponse:
        """Purpose: Process one POST /api/chat request end to end.
        Inputs/Outputs: Inputs are the raw body fields and the client key; output is a
            ChatResponse.
        Side Effects / State: Counts the request against the client's rate window and, on
            success, appends the user/assistant pair to the session.
        Dependencies: RateLimiter, SessionRegistry, SupportAgent.
        Failure Modes: Raises ChatServiceError subclasses (400/429/500); anything
            unexpected is logged and raised as InternalChatError.
        If Removed: The HTTP layer has no chat behaviour.
        Testing Notes: Cover each status path with a stub completion service.
        """
        if not self.rate_limiter.check(client_key):
            raise RateLimitExceeded()
        if not session_id or not message:
            raise MissingFieldsError()
        if not self.agent.is_configured:
            raise ProviderNotConfigured()

        text = message[: self.max_message_length]
        try:
            with self.sessions.open_turn(session_id) as session:
                self.sessions.ensure_turn_allowed(session)
                result = self.agent.run_turn(text, session.history())
                if not result.ok:
                    logger.error("session=%s completion failed: %s", session_id, result.failure_reason)
                    raise CompletionFailed(result.failure_reason or "Unknown error occurred")
                self.sessions.append_turn(session, text, result.answer_text)
        except ChatServiceError:
            raise
        except Exception as exc:
            logger.exception("session=%s chat error", session_id)
            raise InternalChatError() from exc

        logger.info("session=%s answered chars=%d", session_id, len(result.answer_text))
        return ChatResponse(content=result.answer_text, session_id=session_id)

    def sweep(self) -> None:
        """Expire idle sessions and finished rate windows; never raises."""
        try:
            removed_sessions = self.sessions.sweep()
            removed_windows = self.rate_limiter.sweep()
        except Exception:
            logger.exception("cleanup sweep failed")
            return
        logger.debug("cleanup sessions=%d rate_windows=%d", removed_sessions, removed_windows)
