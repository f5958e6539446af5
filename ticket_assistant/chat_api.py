from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ticket_assistant import __version__
from ticket_assistant.config import CORS_ORIGINS, LOG_LEVEL
from ticket_assistant.logging_config import get_logger, setup_logging
from ticket_assistant.orchestration.orchestrator import get_orchestrator
from ticket_assistant.services.memory_cleanup import SessionSweeper

# Setup logging with PII redaction
setup_logging(log_level=LOG_LEVEL, enable_pii_redaction=True)
logger = get_logger("ticket_assistant")

MAX_MESSAGE_LENGTH = 5000


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    session_id: Optional[str] = Field(None, alias="sessionId")

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        if not v or not v.strip():
            raise ValueError('Message cannot be empty')
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f'Message too long (max {MAX_MESSAGE_LENGTH} characters)')
        return v


orchestrator = get_orchestrator()
session_sweeper = SessionSweeper(orchestrator.store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the periodic session sweep."""
    logger.info("Starting Ticket Assistant API...")
    session_sweeper.start_cleanup_task()
    yield
    session_sweeper.stop_cleanup_task()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Ticket Assistant API",
    description="Conversational assistant over a support-ticket database",
    version=__version__,
    lifespan=lifespan
)

logger.info(f"🔒 CORS:mode - Allowing origins: {CORS_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


def _client_error(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.post("/chat", response_model=Dict[str, Any])
async def chat(http_request: Request):
    """
    Handle one conversational turn.

    Body: ``{"sessionId": "optional", "message": "list all tickets"}``
    Returns: ``{response, sessionId, resultCount, success, error?}``
    """
    try:
        request_data = await http_request.json()
    except ValueError:
        logger.warning("Rejected chat request with an invalid JSON body")
        return _client_error("Request body must be valid JSON")

    if not isinstance(request_data, dict):
        return _client_error("Request body must be a JSON object")

    try:
        request = ChatRequest(**request_data)
    except ValidationError as e:
        error_msg = "Invalid request format"
        if e.errors():
            error_detail = e.errors()[0]
            if error_detail.get("type") == "missing":
                error_msg = "Message is required"
            elif "Message cannot be empty" in error_detail.get("msg", ""):
                error_msg = "Message cannot be empty"
            elif "Message too long" in error_detail.get("msg", ""):
                error_msg = "Message exceeds maximum length"
        logger.warning(f"Validation failed: {error_msg}")
        return _client_error(error_msg)

    result = await orchestrator.handle(request.session_id, request.message)
    return result.to_payload()


@app.get("/session/{session_id}")
async def get_session(session_id: str) -> Dict[str, Any]:
    """Read-only diagnostic view of a session."""
    info = orchestrator.get_session_info(session_id)
    if info is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return info


@app.delete("/session/{session_id}")
async def clear_session(session_id: str) -> Dict[str, Any]:
    """Delete a session's state immediately."""
    cleared = await orchestrator.clear_session(session_id)
    return {
        "success": True,
        "cleared": cleared,
        "message": "Session cleared" if cleared else "Session did not exist",
    }


@app.post("/admin/cleanup")
async def cleanup_sessions() -> Dict[str, int]:
    """Run the expired-session sweep now."""
    cleaned = await orchestrator.store.sweep()
    return {"cleaned": cleaned, "remaining": len(orchestrator.store)}


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "version": __version__,
        "store": orchestrator.repository.backend,
        "llm_enabled": orchestrator.llm is not None,
        "sessions": len(orchestrator.store),
        "session_stats": orchestrator.store.get_stats(),
        "sweeper_running": session_sweeper.running,
    }
