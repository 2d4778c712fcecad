"""Bookkeeping around launches: the session ledger, result files and restarts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Mapping

from ..config import HogSettings, get_settings
from ..storage import (
    AgentResultFile,
    AgentSession,
    AgentSessionDraft,
    EnrichmentData,
    EnrichmentStore,
    ResultFileStore,
    mark_session_exited,
    session_from_result,
    upsert_session,
)
from .launch_spec import LaunchSpec
from .launcher import InteractiveLauncher
from .liveness import is_process_alive
from .outcomes import LaunchResult, SupervisedLaunch
from .supervisor import AgentMonitor, EventCallback, attach_stream_monitor, spawn_background_agent

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class TrackedAgent:
    session_id: str
    repo: str
    issue_number: int
    phase: str
    pid: int
    started_at: str
    monitor: AgentMonitor
    process: asyncio.subprocess.Process
    result_file_path: Path


class AgentTracker:
    """Records launches in the ledger and catches up on work done while offline."""

    def __init__(
        self,
        settings: HogSettings | None = None,
        *,
        ledger: EnrichmentStore | None = None,
        results: ResultFileStore | None = None,
        launcher: InteractiveLauncher | None = None,
        template_overrides: Mapping[str, str] | None = None,
        liveness: Callable[[int], bool] = is_process_alive,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger or EnrichmentStore(self._settings.enrichment_path)
        self._results = results or ResultFileStore(self._settings.results_dir)
        self._template_overrides = template_overrides
        self._launcher = launcher or InteractiveLauncher(
            self._settings, template_overrides=template_overrides
        )
        self._liveness = liveness
        self._clock = clock
        self._data = self._ledger.load()
        self._agents: dict[str, TrackedAgent] = {}

    @property
    def data(self) -> EnrichmentData:
        return self._data

    @property
    def results(self) -> ResultFileStore:
        return self._results

    @property
    def agents(self) -> list[TrackedAgent]:
        return list(self._agents.values())

    @property
    def running_count(self) -> int:
        return sum(1 for agent in self._agents.values() if agent.monitor.is_running)

    def _persist(self) -> None:
        try:
            self._ledger.save(self._data)
        except OSError as exc:
            logger.warning(
                "Could not save enrichment ledger",
                extra={"path": str(self._ledger.path), "error": str(exc)},
            )

    def record_session(self, session: AgentSessionDraft) -> AgentSession:
        self._data, stored = upsert_session(self._data, session)
        self._persist()
        return stored

    def mark_exited(
        self, session_id: str, exit_code: int, exited_at: str | None = None
    ) -> AgentSession | None:
        self._data = mark_session_exited(self._data, session_id, exit_code, exited_at or self._clock())
        self._persist()
        return self._session(session_id)

    def _session(self, session_id: str) -> AgentSession | None:
        return next((s for s in self._data.sessions if s.id == session_id), None)

    def launch_interactive(self, spec: LaunchSpec) -> tuple[LaunchResult, AgentSession | None]:
        result = self._launcher.launch(spec)
        if not result.ok:
            return result, None
        session = self.record_session(
            AgentSessionDraft(
                repo=spec.repo_full_name or "",
                issue_number=spec.issue_number,
                phase=spec.phase,
                mode="interactive",
                pid=getattr(result.value, "pid", None),
                started_at=self._clock(),
            )
        )
        return result, session

    async def launch_background(
        self, spec: LaunchSpec, on_event: EventCallback | None = None
    ) -> tuple[LaunchResult, TrackedAgent | None]:
        """Spawn a background agent, record it and follow it until exit.

        No concurrency limit is applied; callers decide whether to launch.
        """

        result = await spawn_background_agent(
            spec,
            settings=self._settings,
            results=self._results,
            template_overrides=self._template_overrides,
        )
        if not result.ok:
            return result, None

        launched = result.value
        assert isinstance(launched, SupervisedLaunch)
        started_at = self._clock()
        session = self.record_session(
            AgentSessionDraft(
                repo=spec.repo_full_name or "",
                issue_number=spec.issue_number,
                phase=spec.phase,
                mode="background",
                pid=launched.pid,
                started_at=started_at,
            )
        )

        def on_exit(exit_code: int, monitor: AgentMonitor) -> None:
            self._finish(session.id, spec, started_at, launched.result_file_path, exit_code, monitor)

        monitor = attach_stream_monitor(launched.process, on_event, on_exit)
        agent = TrackedAgent(
            session_id=session.id,
            repo=session.repo,
            issue_number=spec.issue_number,
            phase=spec.phase,
            pid=launched.pid,
            started_at=started_at,
            monitor=monitor,
            process=launched.process,
            result_file_path=launched.result_file_path,
        )
        self._agents[session.id] = agent
        return result, agent

    def _finish(
        self,
        session_id: str,
        spec: LaunchSpec,
        started_at: str,
        result_file_path: Path,
        exit_code: int,
        monitor: AgentMonitor,
    ) -> None:
        completed_at = self._clock()
        record = AgentResultFile(
            session_id=monitor.session_id or session_id,
            phase=spec.phase,
            issue_ref=f"{spec.repo_full_name}#{spec.issue_number}",
            started_at=started_at,
            completed_at=completed_at,
            exit_code=exit_code,
            artifacts=[],
            summary=monitor.last_text,
        )
        try:
            self._results.write(result_file_path, record)
            written = True
        except OSError as exc:
            written = False
            logger.warning(
                "Could not write agent result file",
                extra={"path": str(result_file_path), "error": str(exc)},
            )

        existing = self._session(session_id)
        if existing is not None:
            update: dict[str, object] = {"exited_at": completed_at, "exit_code": exit_code}
            if monitor.session_id:
                update["claude_session_id"] = monitor.session_id
            if written:
                update["result_file"] = str(result_file_path)
            self.record_session(existing.model_copy(update=update))

        self._agents.pop(session_id, None)
        level = logging.INFO if exit_code == 0 else logging.WARNING
        logger.log(
            level,
            "Agent completed" if exit_code == 0 else "Agent failed",
            extra={
                "session": session_id,
                "issue": spec.issue_number,
                "phase": spec.phase,
                "exit_code": exit_code,
            },
        )

    def reconcile_results(self) -> list[AgentSession]:
        """Import result files that no ledger session points at yet."""

        processed = {s.result_file for s in self._data.sessions if s.result_file}
        imported: list[AgentSession] = []
        for path in self._results.find_unprocessed(processed):
            record = self._results.read(path)
            if record is None:
                continue
            imported.append(self.record_session(session_from_result(record, path)))
        if imported:
            logger.info("Reconciled background agent results", extra={"count": len(imported)})
        return imported

    def reap_stale_sessions(self) -> list[AgentSession]:
        """Close background sessions whose process died while nobody watched.

        A result file written by that run supplies the real exit details;
        otherwise the session is marked failed.
        """

        reaped: list[AgentSession] = []
        for session in list(self._data.sessions):
            if session.mode != "background" or session.exited_at or not session.pid:
                continue
            if session.id in self._agents or self._liveness(session.pid):
                continue

            path = self._results.build_path(session.repo, session.issue_number, session.phase)
            record = self._results.read(path) if path.exists() else None
            if record is not None and record.started_at == session.started_at:
                update = {
                    "exited_at": record.completed_at,
                    "exit_code": record.exit_code,
                    "claude_session_id": record.session_id,
                    "result_file": str(path),
                }
                closed = self.record_session(session.model_copy(update=update))
            else:
                closed = self.mark_exited(session.id, 1)
            if closed is not None:
                reaped.append(closed)
            logger.info(
                "Background agent exited while untracked",
                extra={"session": session.id, "issue": session.issue_number, "phase": session.phase},
            )
        return reaped

    def catch_up(self) -> dict[str, list[AgentSession]]:
        """Run the restart pass: reap dead sessions, then import leftover results."""

        reaped = self.reap_stale_sessions()
        imported = self.reconcile_results()
        return {"reaped": reaped, "imported": imported}


__all__ = ["AgentTracker", "TrackedAgent"]
