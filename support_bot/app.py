from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response

from .agent import CompletionService, SupportAgent
from .chat_service import ChatService
from .config import REPO_DIR, Settings, load_settings
from .errors import ChatServiceError
from .gemini_client import GeminiClient
from .knowledge.knowledge_store import KnowledgeStore
from .knowledge.router import KnowledgeRouter
from .models import ChatRequest, ChatResponse, ToolRequest, ToolResponse
from .prompt_loader import load_system_prompt
from .rate_limiter import RateLimiter
from .session_store import SessionRegistry
from .tools import execute_tool
from .topic_guard import TopicGuard, load_matchers

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("support_bot").setLevel(log_level)
logger = logging.getLogger("support_bot.app")

ENV_PATH = REPO_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def build_completion(settings: Settings) -> Optional[CompletionService]:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; chat requests will fail until configured")
        return None
    return GeminiClient(settings)


def build_chat_service(
    settings: Settings,
    completion: Optional[CompletionService],
    knowledge: KnowledgeStore,
    clock: Callable[[], float] = time.time,
) -> ChatService:
    """Purpose: Wire knowledge, guard, agent, sessions, and rate limiting together.
    Inputs/Outputs: Inputs are settings, a completion service (or None), a loaded store,
        and a clock; output is a ChatService.
    Side Effects / State: Reads the system prompt and optional guard pattern file.
    Dependencies: SupportAgent, KnowledgeRouter, TopicGuard, SessionRegistry, RateLimiter.
    Failure Modes: Missing prompt or pattern files fall back to built-in defaults.
    If Removed: create_app has no service root to hand to the routes.
    Testing Notes: Pass a stub completion and an inline KnowledgeStore.
    """
    agent = SupportAgent(
        completion=completion,
        router=KnowledgeRouter(knowledge, currency_symbol=settings.currency_symbol),
        system_prompt=load_system_prompt(settings.system_prompt_path),
        guard=TopicGuard(load_matchers(settings.guard_patterns_path)),
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
    )
    return ChatService(
        agent=agent,
        sessions=SessionRegistry(
            timeout_sec=settings.session_timeout_sec,
            max_user_turns=settings.max_messages_per_session,
            clock=clock,
        ),
        rate_limiter=RateLimiter(settings.max_messages_per_minute, window_sec=60.0, clock=clock),
        max_message_length=settings.max_message_length,
    )


async def _sweep_forever(service: ChatService, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        service.sweep()


def create_app(
    settings: Optional[Settings] = None,
    completion: Optional[CompletionService] = None,
    knowledge: Optional[KnowledgeStore] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Purpose: Build the FastAPI application around one ChatService.
    Inputs/Outputs: Optional settings, completion service, knowledge store, and clock;
        returns a FastAPI app.
    Side Effects / State: Loads knowledge from disk when no store is given; the lifespan
        runs the periodic cleanup sweep.
    Dependencies: build_chat_service and the route handlers below.
    Failure Modes: Invalid numeric settings raise ValueError from load_settings.
    If Removed: There is no HTTP surface for the assistant.
    Testing Notes: Use TestClient(create_app(...)) with a stub completion.
    """
    settings = settings or load_settings()
    if knowledge is None:
        knowledge = KnowledgeStore(settings.knowledge_dir)
        knowledge.load()
    if completion is None:
        completion = build_completion(settings)
    service = build_chat_service(settings, completion, knowledge, clock=clock)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # Periodic cleanup of idle sessions and finished rate windows.
        task = asyncio.create_task(_sweep_forever(service, settings.cleanup_interval_sec))
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(title="Support Assistant", lifespan=lifespan)
    app.state.chat_service = service

    @app.exception_handler(ChatServiceError)
    async def chat_error_handler(_: Request, exc: ChatServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    def serve_page(name: str) -> Response:
        path = Path(settings.public_dir) / name
        if not path.is_file():
            return PlainTextResponse("Not Found", status_code=404)
        return FileResponse(path, media_type="text/html", headers=NO_CACHE_HEADERS)

    @app.get("/", include_in_schema=False)
    def serve_index() -> Response:
        """Serve the landing page."""
        return serve_page("index.html")

    @app.get("/chat", include_in_schema=False)
    def serve_chat_widget() -> Response:
        """Serve the chat widget page."""
        return serve_page("chat.html")

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(payload: ChatRequest, request: Request) -> ChatResponse:
        """Purpose: Handle chat requests and run one agent turn.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse {content, sessionId}.
        Side Effects / State: Updates session history and the client's rate window.
        Dependencies: ChatService.handle_chat.
        Failure Modes: ChatServiceError subclasses render as {"error": ...} with 400/429/500.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Send a sample message with a stub completion and check history.
        """
        return service.handle_chat(payload.session_id, payload.message, client_key(request))

    @app.post("/api/tools/{tool_name}", response_model=ToolResponse)
    def run_tool(tool_name: str, payload: ToolRequest) -> ToolResponse:
        result = execute_tool(
            knowledge,
            tool_name,
            payload.model_dump(),
            currency_symbol=settings.currency_symbol,
        )
        return ToolResponse(success=result.success, result=result.result, error=result.error)

    return app


app = create_app()
