"""
In-memory conversation sessions.

A session remembers the turns of one conversation, the last request sent to the planner and, when
that request stalled on missing parameters, which ones.  Short follow-ups ("2025-08-01", "yes",
"Chennai") are merged back into the stalled request.  Nothing is persisted: a restart loses every
session, and idle sessions are evicted by :meth:`SessionStore.sweep`.
"""

import asyncio
import logging
import re
from datetime import (
    datetime,
    timedelta,
)
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from switchboard.common import (
    Clock,
    system_clock,
)
from switchboard.config import settings
from switchboard.core.schema import ConversationTurn

logger = logging.getLogger(__name__)

_MONTHS = "january|february|march|april|may|june|july|august|september|october|november|december"

FOLLOW_UP_PATTERNS = (
    re.compile(rf"^({_MONTHS})\s+\d{{1,2}}", re.IGNORECASE),
    re.compile(rf"^\d{{1,2}}\s+({_MONTHS})", re.IGNORECASE),
    re.compile(r"^(today|tomorrow|next week|next month)", re.IGNORECASE),
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"),
    re.compile(r"^(yes|no|ok|sure|fine)", re.IGNORECASE),
)

# A place name on its own: one to three words of letters.
_BARE_PLACE = re.compile(r"^[A-Za-z][A-Za-z .'-]{1,40}$")
_PLACE_PARAMS = ("source", "destination")


def _is_short_answer(text: str) -> bool:
    return any(pattern.match(text) for pattern in FOLLOW_UP_PATTERNS)


class PendingRequest(BaseModel):
    """The call that stalled on missing parameters."""

    agent_name: Optional[str] = None
    tool_name: Optional[str] = None
    missing_params: List[str] = Field(default_factory=list)


class ConversationSession(BaseModel):
    """State of one conversation."""

    session_id: str
    last_request: Optional[str] = None
    pending: Optional[PendingRequest] = None
    history: List[ConversationTurn] = Field(default_factory=list)
    user_inputs: List[str] = Field(default_factory=list)
    last_touched: datetime
    timestamp: Optional[datetime] = None
    max_turns: int = Field(default_factory=lambda: settings.SESSION_HISTORY_TURNS)

    # ------------------------------------------------------------------
    # Follow-ups
    # ------------------------------------------------------------------
    def is_follow_up(self, text: str) -> bool:
        """True if *text* looks like an answer to the last question rather than a new request."""
        text = text.strip()
        if _is_short_answer(text):
            return True
        if self.pending and any(p in self.pending.missing_params for p in _PLACE_PARAMS):
            return bool(_BARE_PLACE.match(text)) and len(text.split()) <= 3
        return False

    def merge_follow_up(self, text: str) -> str:
        """Append *text* to the stalled request, phrased for the parameter it supplies."""
        if not self.last_request or not self.pending or not self.pending.missing_params:
            return text
        missing = self.pending.missing_params
        lowered = text.lower()
        if "date" in missing and _is_short_answer(text.strip()):
            return f"{self.last_request} on {text}"
        if "destination" in missing and "to " not in lowered:
            return f"{self.last_request} to {text}"
        if "source" in missing and "from " not in lowered:
            return f"{self.last_request} from {text}"
        return text

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def update_context(
        self,
        user_input: str,
        envelope: Dict[str, Any],
        now: datetime,
        request: str | None = None,
    ) -> None:
        """
        Record one finished turn.

        *user_input* is what the user typed; *request* is the text that was planned when a
        follow-up was merged into it, and becomes the base for the next merge.
        The assistant turn is stored only for successful outcomes and precedes the user turn.
        The pending request is replaced by the envelope's missing parameters, or cleared.
        Only the newest ``max_turns`` turns are kept.
        """
        self.last_request = request or user_input
        self.timestamp = now
        self.last_touched = now
        self.user_inputs.append(user_input)

        stamp = now.timestamp()
        if envelope.get("success"):
            self.history.append(
                ConversationTurn(
                    role="assistant",
                    content=assistant_content(envelope),
                    timestamp=stamp,
                    metadata={
                        "type": envelope.get("type") or envelope.get("status"),
                        "agent_used": envelope.get("agent_used") or envelope.get("agent_name"),
                        "tool_used": envelope.get("tool_used") or envelope.get("tool_name"),
                        "parameters": envelope.get("parameters"),
                    },
                )
            )

        if envelope.get("missing_parameters"):
            self.pending = PendingRequest(
                agent_name=envelope.get("agent_name"),
                tool_name=envelope.get("tool_name"),
                missing_params=list(envelope["missing_parameters"]),
            )
        else:
            self.pending = None

        self.history.append(ConversationTurn(role="user", content=user_input, timestamp=stamp))
        if len(self.history) > self.max_turns:
            del self.history[: len(self.history) - self.max_turns]

    def as_context(self) -> Dict[str, Any]:
        """Debug view served by ``GET /session/{id}``."""
        return {
            "lastRequest": self.last_request,
            "pendingParameters": self.pending.model_dump() if self.pending else {},
            "conversationHistory": [turn.model_dump() for turn in self.history],
            "userInputs": list(self.user_inputs),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "lastTouched": self.last_touched.isoformat(),
        }


def assistant_content(envelope: Dict[str, Any]) -> str:
    """Text remembered for the assistant side of a turn."""
    if envelope.get("type") == "single_agent":
        return str(envelope.get("result") or "")
    if envelope.get("type") == "multi_step":
        kept = [
            str(r) for r in envelope.get("results") or [] if not str(r).startswith("Error:")
        ]
        return "\n\n".join(kept)
    return str(envelope.get("response") or envelope.get("final_result") or "")


class SessionStore:
    """
    Sessions keyed by id.

    The clock is injected so eviction can be tested without waiting.
    """

    def __init__(self, clock: Clock = system_clock, ttl_minutes: int | None = None) -> None:
        self.clock = clock
        self.ttl = timedelta(
            minutes=ttl_minutes if ttl_minutes is not None else settings.SESSION_TTL_MINUTES
        )
        self._sessions: Dict[str, ConversationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> ConversationSession | None:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ConversationSession:
        """Return the session for *session_id*, creating it on first use; touches it either way."""
        now = self.clock()
        session = self._sessions.get(session_id)
        if session is None:
            logger.info("Creating session %s", session_id)
            session = ConversationSession(session_id=session_id, last_touched=now)
            self._sessions[session_id] = session
        session.last_touched = now
        return session

    def put(self, session: ConversationSession) -> None:
        self._sessions[session.session_id] = session

    def evict(self, now: datetime | None = None) -> List[str]:
        """Drop every session idle for longer than the TTL; return the evicted ids."""
        now = now or self.clock()
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_touched > self.ttl
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        return expired

    def sweep(self) -> List[str]:
        """Run one eviction cycle at the current time."""
        return self.evict(self.clock())

    async def run_sweeper(self, interval_minutes: float | None = None) -> None:
        """Sweep forever at a fixed interval; cancel the task to stop."""
        interval = (
            interval_minutes if interval_minutes is not None else settings.SESSION_SWEEP_MINUTES
        )
        logger.debug("Session sweeper running every %s minute(s)", interval)
        while True:
            await asyncio.sleep(interval * 60)
            self.sweep()
