from __future__ import annotations

import asyncio
from pathlib import Path

from hog_agents.agents import AgentTracker, DEFAULT_PHASE_PROMPTS, DetachedLaunch, LaunchResult, LaunchSpec
from hog_agents.config import HogSettings
from hog_agents.storage import AgentResultFile, ResultFileStore
from hog_agents.templates import TemplateLoader
from hog_agents.tools import register_tools


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubLauncher:
    def __init__(self, result: LaunchResult) -> None:
        self.result = result
        self.specs: list[LaunchSpec] = []

    def launch(self, spec: LaunchSpec) -> LaunchResult:
        self.specs.append(spec)
        return self.result


ISSUE_ARGS = {
    "repo": "owner/repo",
    "issue_number": 12,
    "issue_title": "Flaky test",
    "issue_url": "https://github.com/owner/repo/issues/12",
}


def _register(settings: HogSettings, tmp_path: Path, launcher: StubLauncher | None = None):
    server = StubServer()
    launcher = launcher or StubLauncher(LaunchResult.success(DetachedLaunch(strategy="tmux")))
    tracker = AgentTracker(settings, launcher=launcher, clock=lambda: "2026-03-01T12:00:00+00:00")
    templates_dir = tmp_path / "templates"
    templates_dir.mkdir(exist_ok=True)
    handles = register_tools(server, tracker=tracker, templates=TemplateLoader([templates_dir]))
    return server, handles, launcher, templates_dir


def test_registers_all_tools(settings: HogSettings, tmp_path: Path) -> None:
    server, handles, _, _ = _register(settings, tmp_path)

    assert set(server._tools) == {
        "launch_interactive",
        "spawn_background_agent",
        "agent_status",
        "list_sessions",
        "reconcile_results",
        "phase_templates",
    }
    assert handles.list_sessions is server._tools["list_sessions"]


def test_launch_interactive_tool_builds_spec_and_records(settings: HogSettings, tmp_path: Path, project_dir: Path) -> None:
    server, _, launcher, _ = _register(settings, tmp_path)

    payload = server._tools["launch_interactive"].fn(
        local_path=str(project_dir),
        phase="brainstorm",
        body="Fails one run in ten",
        command="claude",
        extra_args=["--model", "sonnet"],
        launch_mode="tmux",
        **ISSUE_ARGS,
    )

    assert payload["ok"] is True
    assert payload["strategy"] == "tmux"
    spec = launcher.specs[0]
    assert spec.launch_mode == "tmux"
    assert spec.start_command is not None and spec.start_command.extra_args == ("--model", "sonnet")
    assert spec.build_prompt().endswith("Fails one run in ten")

    sessions = server._tools["list_sessions"].fn(repo="owner/repo", issue_number=12)
    assert [s["id"] for s in sessions] == [payload["session_id"]]
    assert sessions[0]["mode"] == "interactive"
    assert "exitedAt" not in sessions[0]


def test_launch_interactive_tool_reports_failure(settings: HogSettings, tmp_path: Path, project_dir: Path) -> None:
    failing = StubLauncher(LaunchResult.failure("terminal-app-not-found", "Unknown terminal app: Hyper"))
    server, _, _, _ = _register(settings, tmp_path, failing)

    payload = server._tools["launch_interactive"].fn(
        local_path=str(project_dir), phase="plan", terminal_app="Hyper", **ISSUE_ARGS
    )

    assert payload == {"ok": False, "kind": "terminal-app-not-found", "message": "Unknown terminal app: Hyper"}
    assert server._tools["list_sessions"].fn() == []


def test_spawn_tool_reports_missing_directory(settings: HogSettings, tmp_path: Path, install_agent) -> None:
    install_agent()
    server, _, _, _ = _register(settings, tmp_path)

    payload = asyncio.run(
        server._tools["spawn_background_agent"].fn(
            local_path=str(tmp_path / "missing"), phase="implement", **ISSUE_ARGS
        )
    )

    assert payload["ok"] is False
    assert payload["kind"] == "directory-not-found"
    assert server._tools["agent_status"].fn() == []


def test_spawn_tool_starts_agent(settings: HogSettings, tmp_path: Path, project_dir: Path, install_agent) -> None:
    install_agent("""printf '%s\\n' '{"type":"system","session_id":"claude-12"}'\nexit 0\n""")
    server, handles, _, _ = _register(settings, tmp_path)

    async def scenario():
        payload = await server._tools["spawn_background_agent"].fn(
            local_path=str(project_dir), phase="implement", **ISSUE_ARGS
        )
        status = server._tools["agent_status"].fn()
        for agent in handles.tracker.agents:
            await agent.monitor.wait()
        return payload, status

    payload, status = asyncio.run(scenario())

    assert payload["ok"] is True
    assert payload["result_file"].endswith("owner-repo-12-implement.json")
    assert [entry["session_id"] for entry in status] == [payload["session_id"]]
    assert status[0]["phase"] == "implement"
    assert server._tools["agent_status"].fn() == []

    active = server._tools["list_sessions"].fn(active_only=True)
    assert active == []
    finished = server._tools["list_sessions"].fn(repo="owner/repo")
    assert finished[0]["claudeSessionId"] == "claude-12"


def test_reconcile_tool_imports_results(settings: HogSettings, tmp_path: Path) -> None:
    server, _, _, _ = _register(settings, tmp_path)
    results = ResultFileStore(settings.results_dir)
    results.write(
        results.build_path("owner/repo", 3, "review"),
        AgentResultFile(
            session_id="claude-3",
            phase="review",
            issue_ref="owner/repo#3",
            started_at="2026-03-01T10:00:00+00:00",
            completed_at="2026-03-01T10:30:00+00:00",
            exit_code=2,
        ),
    )

    outcome = server._tools["reconcile_results"].fn()

    assert outcome["reaped"] == []
    assert [(s["issueNumber"], s["exitCode"]) for s in outcome["imported"]] == [(3, 2)]
    assert server._tools["reconcile_results"].fn()["imported"] == []


def test_phase_templates_tool_merges_overrides(settings: HogSettings, tmp_path: Path) -> None:
    server, _, _, templates_dir = _register(settings, tmp_path)
    (templates_dir / "review.yaml").write_text(
        "phase: review\ntemplate: Review {number} carefully\n", encoding="utf-8"
    )

    templates = server._tools["phase_templates"].fn()

    assert templates["review"] == "Review {number} carefully"
    assert templates["plan"] == DEFAULT_PHASE_PROMPTS["plan"]
    assert set(templates) == set(DEFAULT_PHASE_PROMPTS)
