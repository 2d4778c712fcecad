from __future__ import annotations

import asyncio
import json
from pathlib import Path

from hog_agents.agents import AgentTracker, DetachedLaunch, LaunchResult, LaunchSpec
from hog_agents.config import HogSettings
from hog_agents.storage import (
    AgentResultFile,
    AgentSession,
    EnrichmentData,
    EnrichmentStore,
    ResultFileStore,
)

NOW = "2026-03-01T12:00:00+00:00"
STARTED = "2026-03-01T10:00:00+00:00"


class StubLauncher:
    def __init__(self, result: LaunchResult) -> None:
        self.result = result
        self.specs: list[LaunchSpec] = []

    def launch(self, spec: LaunchSpec) -> LaunchResult:
        self.specs.append(spec)
        return self.result


def _spec(project_dir: Path, **overrides) -> LaunchSpec:
    payload = {
        "local_path": project_dir,
        "issue_number": 5,
        "issue_title": "Add retries",
        "issue_url": "https://github.com/owner/repo/issues/5",
        "phase": "implement",
        "repo_full_name": "owner/repo",
    }
    payload.update(overrides)
    return LaunchSpec(**payload)


def _background(session_id: str, pid: int, **overrides) -> AgentSession:
    payload = {
        "id": session_id,
        "repo": "owner/repo",
        "issue_number": 5,
        "phase": "implement",
        "mode": "background",
        "pid": pid,
        "started_at": STARTED,
    }
    payload.update(overrides)
    return AgentSession(**payload)


def _seed(settings: HogSettings, *sessions: AgentSession) -> None:
    EnrichmentStore(settings.enrichment_path).save(EnrichmentData(sessions=list(sessions)))


def _tracker(settings: HogSettings, **kwargs) -> AgentTracker:
    kwargs.setdefault("clock", lambda: NOW)
    return AgentTracker(settings, **kwargs)


def test_reconcile_imports_each_result_once(settings: HogSettings) -> None:
    results = ResultFileStore(settings.results_dir)
    path = results.build_path("owner/repo", 9, "plan")
    results.write(
        path,
        AgentResultFile(
            session_id="claude-9",
            phase="plan",
            issue_ref="owner/repo#9",
            started_at=STARTED,
            completed_at=NOW,
            exit_code=0,
            summary="Plan written",
        ),
    )

    tracker = _tracker(settings)
    imported = tracker.reconcile_results()

    assert len(imported) == 1
    session = imported[0]
    assert (session.repo, session.issue_number, session.mode) == ("owner/repo", 9, "background")
    assert session.claude_session_id == "claude-9"
    assert session.result_file == str(path)
    assert tracker.reconcile_results() == []
    assert _tracker(settings).reconcile_results() == []


def test_reap_marks_dead_sessions_failed_and_leaves_live_ones(settings: HogSettings) -> None:
    _seed(
        settings,
        _background("dead", 111),
        _background("alive", 222, issue_number=6),
        _background("done", 333, issue_number=7, exited_at=STARTED, exit_code=0),
        AgentSession(
            id="window",
            repo="owner/repo",
            issue_number=8,
            phase="research",
            mode="interactive",
            pid=444,
            started_at=STARTED,
        ),
    )
    tracker = _tracker(settings, liveness=lambda pid: pid == 222)

    reaped = tracker.reap_stale_sessions()

    assert [session.id for session in reaped] == ["dead"]
    assert reaped[0].exit_code == 1
    assert reaped[0].exited_at == NOW
    stored = {s.id: s for s in EnrichmentStore(settings.enrichment_path).load().sessions}
    assert stored["dead"].exit_code == 1
    assert stored["alive"].exited_at is None
    assert stored["window"].exited_at is None


def test_reap_adopts_result_file_from_same_run(settings: HogSettings) -> None:
    _seed(settings, _background("finished", 111))
    results = ResultFileStore(settings.results_dir)
    path = results.build_path("owner/repo", 5, "implement")
    results.write(
        path,
        AgentResultFile(
            session_id="claude-5",
            phase="implement",
            issue_ref="owner/repo#5",
            started_at=STARTED,
            completed_at="2026-03-01T11:00:00+00:00",
            exit_code=0,
        ),
    )
    tracker = _tracker(settings, liveness=lambda pid: False)

    outcome = tracker.catch_up()

    assert [s.id for s in outcome["reaped"]] == ["finished"]
    assert outcome["imported"] == []
    session = outcome["reaped"][0]
    assert session.exit_code == 0
    assert session.exited_at == "2026-03-01T11:00:00+00:00"
    assert session.claude_session_id == "claude-5"
    assert session.result_file == str(path)


def test_reap_ignores_result_file_from_another_run(settings: HogSettings) -> None:
    _seed(settings, _background("stale", 111))
    results = ResultFileStore(settings.results_dir)
    results.write(
        results.build_path("owner/repo", 5, "implement"),
        AgentResultFile(
            session_id="claude-old",
            phase="implement",
            issue_ref="owner/repo#5",
            started_at="2026-02-01T10:00:00+00:00",
            completed_at="2026-02-01T11:00:00+00:00",
            exit_code=0,
        ),
    )

    outcome = _tracker(settings, liveness=lambda pid: False).catch_up()

    assert outcome["reaped"][0].exit_code == 1
    assert [s.claude_session_id for s in outcome["imported"]] == ["claude-old"]


def test_launch_interactive_records_session(settings: HogSettings, project_dir: Path) -> None:
    launcher = StubLauncher(LaunchResult.success(DetachedLaunch(strategy="WezTerm", pid=77)))
    tracker = _tracker(settings, launcher=launcher)

    result, session = tracker.launch_interactive(_spec(project_dir, phase="research"))

    assert result.ok
    assert session is not None
    assert (session.mode, session.pid, session.phase, session.started_at) == ("interactive", 77, "research", NOW)
    raw = json.loads(settings.enrichment_path.read_text(encoding="utf-8"))
    assert raw["sessions"][0]["issueNumber"] == 5
    assert raw["sessions"][0]["mode"] == "interactive"


def test_failed_interactive_launch_records_nothing(settings: HogSettings, project_dir: Path) -> None:
    launcher = StubLauncher(LaunchResult.failure("ssh-no-tmux", "Running over SSH without tmux."))
    tracker = _tracker(settings, launcher=launcher)

    result, session = tracker.launch_interactive(_spec(project_dir))

    assert result.error is not None and result.error.kind == "ssh-no-tmux"
    assert session is None
    assert tracker.data.sessions == []
    assert not settings.enrichment_path.exists()


def test_background_launch_writes_result_and_closes_session(
    settings: HogSettings, project_dir: Path, install_agent
) -> None:
    install_agent(
        "\n".join(
            [
                """printf '%s\\n' '{"type":"system","session_id":"claude-bg"}'""",
                """printf '%s\\n' '{"type":"assistant","message":{"content":[{"type":"text","text":"All done"}]}}'""",
                "exit 0",
            ]
        )
        + "\n"
    )
    tracker = _tracker(settings)

    async def scenario():
        result, agent = await tracker.launch_background(_spec(project_dir))
        assert result.ok and agent is not None
        running = tracker.data.sessions[0]
        await agent.monitor.wait()
        return agent, running

    agent, running = asyncio.run(scenario())

    assert running.exited_at is None and running.pid == agent.pid
    assert tracker.agents == []
    assert tracker.running_count == 0

    record = ResultFileStore(settings.results_dir).read(agent.result_file_path)
    assert record is not None
    assert record.session_id == "claude-bg"
    assert record.issue_ref == "owner/repo#5"
    assert record.summary == "All done"
    assert (record.started_at, record.completed_at, record.exit_code) == (NOW, NOW, 0)

    session = tracker.data.sessions[0]
    assert session.exit_code == 0
    assert session.claude_session_id == "claude-bg"
    assert session.result_file == str(agent.result_file_path)
    assert tracker.reconcile_results() == []


def test_background_launch_failure_is_not_recorded(settings: HogSettings, tmp_path: Path, install_agent) -> None:
    install_agent()
    tracker = _tracker(settings)

    result, agent = asyncio.run(tracker.launch_background(_spec(tmp_path / "gone")))

    assert result.error is not None and result.error.kind == "directory-not-found"
    assert agent is None
    assert tracker.data.sessions == []


def test_mark_exited_persists_and_returns_session(settings: HogSettings) -> None:
    _seed(settings, _background("running", 111))
    tracker = _tracker(settings)

    closed = tracker.mark_exited("running", 4)

    assert closed is not None
    assert (closed.exit_code, closed.exited_at) == (4, NOW)
    assert EnrichmentStore(settings.enrichment_path).load().sessions == [closed]
    assert tracker.mark_exited("unknown", 1) is None
