"""Storage abstractions for hog agents."""

from .ledger import (
    EnrichmentStore,
    find_active_session,
    find_latest_session,
    find_session,
    find_sessions,
    mark_session_exited,
    upsert_session,
)
from .models import AgentResultFile, AgentSession, AgentSessionDraft, EnrichmentData, NudgeState
from .results import ResultFileStore, session_from_result

__all__ = [
    "AgentResultFile",
    "AgentSession",
    "AgentSessionDraft",
    "EnrichmentData",
    "EnrichmentStore",
    "NudgeState",
    "ResultFileStore",
    "find_active_session",
    "find_latest_session",
    "find_session",
    "find_sessions",
    "mark_session_exited",
    "session_from_result",
    "upsert_session",
]
