"""
Pydantic models for the orchestrator API.

Request bodies are lenient (every field optional) so that the routes can answer a missing field
with the documented 400 payload instead of FastAPI's validation error.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from switchboard.core.schema import ParameterSpec


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ChatRequest(BaseModel):
    """Incoming chat message; the text may arrive as ``message``, ``query`` or ``prompt``."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    query: Optional[str] = None
    prompt: Optional[str] = None
    session_id: str = Field("default", alias="sessionId")

    @property
    def text(self) -> str | None:
        return self.message or self.query or self.prompt


class OrchestrateRequest(BaseModel):
    """Session-less orchestration request."""

    model_config = ConfigDict(populate_by_name=True)

    user_input: Optional[str] = Field(None, alias="userInput")


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: str
    message: str
    available_agents: List[str]
    available_tools: List[str]


class ToolInfo(BaseModel):
    """One tool as listed by ``GET /agents``."""

    tool: str
    description: str
    parameters: Dict[str, ParameterSpec]


class AgentInfo(BaseModel):
    """One agent as listed by ``GET /agents``."""

    name: str
    url: Optional[str] = None
    description: str = ""
    capabilities: List[ToolInfo]


class AgentsResponse(BaseModel):
    """The whole tool catalog."""

    agents: List[AgentInfo]
    description: str


class SessionResponse(BaseModel):
    """Debug view of one session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., serialization_alias="sessionId")
    context: Dict[str, Any]
    active_sessions: int = Field(..., serialization_alias="activeSessions")
