"""
HTTP surface of the orchestrator.

It exposes the following endpoints:
- **POST /api/chat**          - conversational entry point: {"message": "...", "sessionId": "..."}
- **POST /orchestrate**       - one-shot orchestration without a session: {"userInput": "..."}
- **GET /health**             - liveness probe listing the known agents and tools.
- **GET /agents**             - the tool catalog, for discovery and debugging.
- **GET /session/{id}**       - the in-memory state of one session (debugging only).
"""

import asyncio
import contextlib
import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
)

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from switchboard.agent.invoker import AgentInvoker
from switchboard.agent.orchestrator import Orchestrator
from switchboard.agent.planner_interface import load_planner
from switchboard.api.models import (
    AgentInfo,
    AgentsResponse,
    ChatRequest,
    HealthResponse,
    OrchestrateRequest,
    SessionResponse,
    ToolInfo,
)
from switchboard.common import (
    AnsiColors,
    colored_print,
)
from switchboard.config import settings
from switchboard.memory.session_store import SessionStore
from switchboard.tools import (
    AGENT_REGISTRY,
    list_tools,
    tools_by_agent,
)

logger = logging.getLogger(__name__)

MISSING_INPUT_ERROR = "Missing required field. Use 'message', 'query', or 'prompt'"
EXAMPLE_REQUEST = {"message": "Find flights from Bangalore to Delhi on 2025-01-15"}

# In-memory conversation sessions, shared by every request
sessions = SessionStore()

_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Build the orchestrator on first use (tests override this dependency)."""
    global _orchestrator  # pylint: disable=global-statement
    if _orchestrator is None:
        _orchestrator = Orchestrator(load_planner(), AgentInvoker())
    return _orchestrator


def get_sessions() -> SessionStore:
    return sessions


@contextlib.asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Run the session sweeper for as long as the app is up."""
    sweeper = asyncio.create_task(sessions.run_sweeper())
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        if _orchestrator is not None:
            await _orchestrator.invoker.aclose()


app = FastAPI(
    title="Switchboard API",
    version="0.1.0",
    description="LLM orchestrator for agent micro-services",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_error(_: Request, exc: HTTPException) -> JSONResponse:
    """Return dict details as the response body itself."""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content)


def _internal_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500, content={"error": "Internal server error", "message": str(exc)}
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.post("/api/chat", summary="Process a chat message")
async def chat(
    req: ChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    store: SessionStore = Depends(get_sessions),
) -> Any:
    """Run one conversational turn, merging short follow-ups into the pending request."""
    user_input = req.text
    if not user_input:
        raise HTTPException(
            status_code=400, detail={"error": MISSING_INPUT_ERROR, "example": EXAMPLE_REQUEST}
        )
    logger.info("Received chat message for session %s: %s", req.session_id, user_input)

    try:
        session = store.get_or_create(req.session_id)
        processed = user_input
        follow_up = session.is_follow_up(user_input)
        if follow_up:
            processed = session.merge_follow_up(user_input)
            logger.info("Follow-up detected; merged input: %s", processed)

        result = await orchestrator.run(processed, session)
        session.update_context(user_input, result, store.clock(), request=processed)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Error while processing chat message")
        return _internal_error(exc)

    response: Dict[str, Any] = {**result, "sessionId": req.session_id, "isFollowUp": follow_up}
    if processed != user_input:
        response["processedInput"] = processed
    response["allUserInputs"] = list(session.user_inputs)
    response["conversationHistory"] = [turn.model_dump() for turn in session.history]
    return response


@app.post("/orchestrate", summary="Orchestrate one request without a session")
async def orchestrate(
    req: OrchestrateRequest, orchestrator: Orchestrator = Depends(get_orchestrator)
) -> Any:
    """Plan and execute ``userInput`` and return the raw envelope."""
    if not req.user_input:
        raise HTTPException(status_code=400, detail={"error": "Missing 'userInput' field"})
    try:
        return await orchestrator.run(req.user_input)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Error while orchestrating request")
        return _internal_error(exc)


@app.get("/health", response_model=HealthResponse, summary="Health check")
async def health() -> HealthResponse:
    """Return a liveness payload listing what the orchestrator can reach."""
    return HealthResponse(
        status="OK",
        message="Switchboard orchestrator is running",
        available_agents=list(tools_by_agent()),
        available_tools=[tool.name for tool in list_tools()],
    )


@app.get("/agents", response_model=AgentsResponse, summary="List agents and their tools")
async def agents() -> AgentsResponse:
    """Dump the tool catalog."""
    listed = []
    for agent_name, tools in tools_by_agent().items():
        agent = AGENT_REGISTRY.get(agent_name)
        listed.append(
            AgentInfo(
                name=agent_name,
                url=agent.endpoint if agent else None,
                description=agent.description if agent else "",
                capabilities=[
                    ToolInfo(tool=t.name, description=t.description, parameters=t.parameters)
                    for t in tools
                ],
            )
        )
    return AgentsResponse(
        agents=listed, description="Switchboard orchestrator with agent-based architecture"
    )


@app.get("/session/{session_id}", response_model=SessionResponse, summary="Inspect a session")
async def session_info(
    session_id: str, store: SessionStore = Depends(get_sessions)
) -> SessionResponse:
    """Return the in-memory state of *session_id*."""
    session = store.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=404, detail={"error": "Session not found", "sessionId": session_id}
        )
    return SessionResponse(
        session_id=session_id, context=session.as_context(), active_sessions=len(store)
    )


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0",
    port: int | None = None,
    reload: bool = False,
    log_level: str | None = None,
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server (port defaults to ``settings.API_PORT``).
    reload:
        If *True*, enable auto-reload.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if port is None:
        port = settings.API_PORT
    if log_level is None:
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Switchboard API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug(
        "API settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY"})
    )

    colored_print(f"🔀 Switchboard API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "switchboard.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m switchboard.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
