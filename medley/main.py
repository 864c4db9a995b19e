# medley/main.py
"""
Medley Consult API

HTTP surface for the consultation engine. Each consultation is an in-memory
session driven by a ConsultOrchestrator; answers can be sent as a single
request/response or streamed back as server-sent events.
"""

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from pydantic import BaseModel
from typing import AsyncIterator, Optional
from contextlib import asynccontextmanager
from datetime import datetime
import json
import os
import secrets

from medley.core.bootstrap import backend_status, create_orchestrator, shutdown_backend
from medley.core.config import settings, validate_required_settings
from medley.core.exceptions import ConsultBusyError, SessionError
from medley.core.logging_config import setup_logging
from medley.core.orchestrator import ConsultSnapshot
from medley.core.rate_limit_config import get_real_ip, RATE_LIMIT_TIERS
from medley.models.session_state import ConsultSession, SessionStore

# Setup logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logging"""
    logger.info("=" * 60)
    logger.info(f"🚀 {settings.APP_NAME} API starting...")
    logger.info("=" * 60)

    # Warn but don't fail; the backend reports missing keys on first use
    if not validate_required_settings():
        logger.warning("⚠️ Some environment variables are missing - generation will use fallback texts")

    logger.info(f"  - Model: {settings.GPT_MODEL}")
    logger.info(f"  - Schema: {settings.MEDLEY_SCHEMA_PATH or 'packaged default'}")
    logger.info(f"  - Info pause: {settings.INFO_PAUSE_SECONDS}s")
    logger.info("✅ API ready")

    yield

    logger.info(f"🛑 Shutting down with {len(session_store)} active sessions")
    await shutdown_backend()


app = FastAPI(
    title="Medley Consult API",
    description="Conversational hair-loss consultation",
    version="2.0.0",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None
)

# =============================================================================
# API KEY AUTHENTICATION
# =============================================================================

API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_api_key() -> str:
    """API key from settings, or a generated one for development"""
    api_key = settings.MEDLEY_API_KEY
    if not api_key:
        api_key = secrets.token_urlsafe(32)
        logger.warning("⚠️ No MEDLEY_API_KEY set. Generated temporary key.")
        logger.warning(f"⚠️ Temporary key (first 8 chars): {api_key[:8]}...")
    else:
        logger.info("✅ API Key configured from environment")
    return api_key


VALID_API_KEY = get_api_key()


def get_safe_error_message(error: Exception, context: str = "") -> str:
    """Return a message that doesn't expose internal details"""
    logger.error(f"Error in {context}: {type(error).__name__}: {str(error)}")

    if isinstance(error, HTTPException):
        return error.detail

    error_messages = {
        "ConnectionError": "Connection problem. Please try again later.",
        "TimeoutError": "The request took too long. Please try again.",
        "ValidationError": "The input was invalid. Please check your message.",
    }

    error_type = type(error).__name__
    return error_messages.get(error_type, "Something went wrong. Please try again later.")


async def verify_api_key(api_key: Optional[str] = Depends(api_key_header)):
    """Verify API key for protected endpoints"""
    if api_key is None:
        logger.warning("❌ Request without API key")
        raise HTTPException(
            status_code=401,
            detail="Missing API Key. Include 'X-API-Key' header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    if not secrets.compare_digest(api_key.encode(), VALID_API_KEY.encode()):
        logger.warning("❌ Invalid API key attempt detected")
        raise HTTPException(
            status_code=401,
            detail="Invalid API Key",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return api_key

# =============================================================================
# RATE LIMITING
# =============================================================================

limiter = Limiter(key_func=get_real_ip)


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit response with a retry hint"""
    response = PlainTextResponse(
        content="Too many requests. Please wait a moment and try again.",
        status_code=429,
    )
    response.headers["Retry-After"] = "60"
    return response


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
app.state.limiter = limiter

RATE_LIMITS = RATE_LIMIT_TIERS["default"]

# =============================================================================
# MIDDLEWARE
# =============================================================================


@app.middleware("http")
async def log_requests(request: Request, call_next):
    path = request.url.path
    if path not in ("/", "/health"):
        logger.info(f"📥 Request: {request.method} {path}")
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

    if "Server" in response.headers:
        del response.headers["Server"]

    return response


allowed_origins = [
    origin.strip()
    for origin in os.getenv("MEDLEY_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# In-memory consultations
session_store = SessionStore(create_orchestrator, ttl_minutes=settings.SESSION_TTL_MINUTES)

# =============================================================================
# API MODELS
# =============================================================================


class StartResponse(BaseModel):
    session_id: str
    snapshot: ConsultSnapshot


class MessageRequest(BaseModel):
    session_id: str
    message: str


class MessageResponse(BaseModel):
    session_id: str
    accepted: bool
    snapshot: ConsultSnapshot


def _get_session(session_id: str) -> ConsultSession:
    try:
        return session_store.get(session_id)
    except SessionError as e:
        logger.warning(f"{e.message}: {session_id[:8]}...")
        raise HTTPException(status_code=404, detail="Session not found. Please start a new consultation.")


def _format_sse(event_type: str, payload: str) -> str:
    return f"event: {event_type}\ndata: {payload}\n\n"

# =============================================================================
# ENDPOINTS
# =============================================================================


@app.get("/", status_code=200)
def read_root():
    return {"status": "ok", "version": "2.0.0", "service": "medley-consult"}


@app.get("/health", status_code=200)
def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "backend": backend_status(),
        "active_sessions": len(session_store),
    }


@app.post("/consult/start", response_model=StartResponse, dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["consult_start"])
async def consult_start(request: Request):
    """Create a session and deliver the opening turn"""
    try:
        session = session_store.create_session()
        await session.orchestrator.start()

        logger.info(f"Session created: ID={session.session_id[:8]}...")
        return StartResponse(session_id=session.session_id, snapshot=session.orchestrator.snapshot())

    except Exception as e:
        logger.error(f"Error in consult_start: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "consult_start"))


@app.post("/consult/message", response_model=MessageResponse, dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["consult_message"])
async def consult_message(request: Request, req: MessageRequest):
    """
    Answer the current question.

    Returns the full snapshot after every model turn of this step has been
    delivered. `accepted` is False when the consultation had nothing left to ask.
    """
    session = _get_session(req.session_id)

    try:
        accepted = await session.orchestrator.send(req.message)
    except ConsultBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error in consult_message: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "consult_message"))

    return MessageResponse(
        session_id=session.session_id,
        accepted=accepted,
        snapshot=session.orchestrator.snapshot()
    )


@app.post("/consult/message/stream", dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["consult_message"])
async def consult_message_stream(request: Request, req: MessageRequest):
    """Answer the current question and stream the model turns as server-sent events"""
    session = _get_session(req.session_id)

    if session.orchestrator.is_busy:
        raise HTTPException(status_code=409, detail="A response is still in progress.")

    async def event_source() -> AsyncIterator[str]:
        try:
            async for event in session.orchestrator.send_stream(req.message):
                yield _format_sse(event.type.value, event.model_dump_json())
        except ConsultBusyError as e:
            yield _format_sse("error", json.dumps({"detail": str(e)}))

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"}
    )


@app.get("/consult/{session_id}", response_model=ConsultSnapshot, dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["consult_state"])
async def consult_state(request: Request, session_id: str):
    return _get_session(session_id).orchestrator.snapshot()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"🚀 Starting server on port {port}...")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
