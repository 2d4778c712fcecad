"""Session ledger kept in ``enrichment.json``."""

from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from .models import AgentSession, AgentSessionDraft, EnrichmentData
from .results import write_private_text

logger = logging.getLogger(__name__)


class EnrichmentStore:
    """Load and atomically save the enrichment ledger."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> EnrichmentData:
        """Return the ledger, or an empty one if the file is missing or corrupt."""

        if not self._path.exists():
            return EnrichmentData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return EnrichmentData.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(
                "Discarding unreadable enrichment ledger",
                extra={"path": str(self._path), "error": str(exc)},
            )
            return EnrichmentData()

    def save(self, data: EnrichmentData) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            write_private_text(tmp, json.dumps(data.to_json_dict(), indent=2) + "\n")
            os.replace(tmp, self._path)
        finally:
            tmp.unlink(missing_ok=True)


def generate_session_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid4().hex[:6]}"


def upsert_session(
    data: EnrichmentData, session: AgentSessionDraft
) -> tuple[EnrichmentData, AgentSession]:
    """Insert or replace a session, matching on id; a missing id is generated."""

    session_id = session.id or generate_session_id()
    full = AgentSession.model_validate({**session.model_dump(), "id": session_id})

    sessions = list(data.sessions)
    for index, existing in enumerate(sessions):
        if existing.id == session_id:
            sessions[index] = full
            break
    else:
        sessions.append(full)

    return data.model_copy(update={"sessions": sessions}), full


def mark_session_exited(
    data: EnrichmentData,
    session_id: str,
    exit_code: int,
    exited_at: str | None = None,
) -> EnrichmentData:
    """Stamp an exit time and code onto a session; unknown ids are ignored."""

    existing = next((s for s in data.sessions if s.id == session_id), None)
    if existing is None:
        return data
    stamp = exited_at or datetime.now(timezone.utc).isoformat()
    updated, _ = upsert_session(
        data, existing.model_copy(update={"exited_at": stamp, "exit_code": exit_code})
    )
    return updated


def find_sessions(data: EnrichmentData, repo: str, issue_number: int) -> list[AgentSession]:
    return [s for s in data.sessions if s.repo == repo and s.issue_number == issue_number]


def find_session(
    data: EnrichmentData, repo: str, issue_number: int, phase: str
) -> AgentSession | None:
    return next(
        (s for s in find_sessions(data, repo, issue_number) if s.phase == phase),
        None,
    )


def find_active_session(data: EnrichmentData, repo: str, issue_number: int) -> AgentSession | None:
    """Return the first session for the issue that has not exited."""

    return next((s for s in find_sessions(data, repo, issue_number) if not s.exited_at), None)


def find_latest_session(data: EnrichmentData, repo: str, issue_number: int) -> AgentSession | None:
    sessions = find_sessions(data, repo, issue_number)
    if not sessions:
        return None
    # ISO-8601 timestamps sort lexicographically
    return max(sessions, key=lambda s: s.started_at)


__all__ = [
    "EnrichmentStore",
    "find_active_session",
    "find_latest_session",
    "find_session",
    "find_sessions",
    "generate_session_id",
    "mark_session_exited",
    "upsert_session",
]
