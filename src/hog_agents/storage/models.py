"""Data models for persistent tracking."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SessionMode = Literal["interactive", "background"]


class _Record(BaseModel):
    """Base for on-disk records; JSON keys are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AgentSessionDraft(_Record):
    """A session record whose id may not have been assigned yet."""

    id: str | None = None
    repo: str
    issue_number: int
    phase: str
    mode: SessionMode
    claude_session_id: str | None = None
    pid: int | None = None
    started_at: str
    exited_at: str | None = None
    exit_code: int | None = None
    result_file: str | None = None


class AgentSession(AgentSessionDraft):
    id: str


class AgentResultFile(_Record):
    """Outcome of one completed background run."""

    session_id: str
    phase: str
    issue_ref: str
    started_at: str
    completed_at: str
    exit_code: int
    artifacts: list[str] = Field(default_factory=list)
    summary: str | None = None


class NudgeState(_Record):
    last_daily_nudge: str | None = None
    snoozed_issues: dict[str, str] = Field(default_factory=dict)


class EnrichmentData(_Record):
    """Contents of ``enrichment.json``."""

    version: Literal[1] = 1
    sessions: list[AgentSession] = Field(default_factory=list)
    nudge_state: NudgeState = Field(default_factory=NudgeState)


__all__ = [
    "AgentResultFile",
    "AgentSession",
    "AgentSessionDraft",
    "EnrichmentData",
    "NudgeState",
    "SessionMode",
]
