"""Tool registration for the hog agents MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from fastmcp import Context, FastMCP

from ..agents import (
    DEFAULT_PHASE_PROMPTS,
    AgentTracker,
    LaunchResult,
    LaunchSpec,
    PromptVariables,
    StartCommand,
)
from ..storage import AgentSession, find_sessions
from ..templates import TemplateLoader

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    launch_interactive: Any
    spawn_background_agent: Any
    agent_status: Any
    list_sessions: Any
    reconcile_results: Any
    phase_templates: Any
    tracker: AgentTracker


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log through the MCP context logger when one is available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


def _session_payload(session: AgentSession) -> dict[str, Any]:
    return session.to_json_dict()


def _error_payload(result: LaunchResult) -> dict[str, Any]:
    assert result.error is not None
    return {"ok": False, "kind": result.error.kind, "message": result.error.message}


def _failure_extra(result: LaunchResult) -> dict[str, Any]:
    assert result.error is not None
    return {"kind": result.error.kind, "error": result.error.message}


def _build_spec(
    *,
    local_path: str,
    repo: str,
    issue_number: int,
    issue_title: str,
    issue_url: str,
    phase: str,
    body: str | None,
    slug: str | None,
    prompt_template: str | None,
    command: str | None,
    extra_args: list[str] | None,
    launch_mode: Literal["auto", "tmux", "terminal"] = "auto",
    terminal_app: str | None = None,
) -> LaunchSpec:
    start = StartCommand(command=command, extra_args=tuple(extra_args or ())) if command else None
    return LaunchSpec(
        local_path=Path(local_path).expanduser(),
        issue_number=issue_number,
        issue_title=issue_title,
        issue_url=issue_url,
        phase=phase,
        repo_full_name=repo,
        start_command=start,
        launch_mode=launch_mode,
        terminal_app=terminal_app,
        prompt_template=prompt_template,
        prompt_variables=PromptVariables(body=body, slug=slug, phase=phase, repo=repo),
    )


def register_tools(
    server: FastMCP,
    *,
    tracker: AgentTracker,
    templates: TemplateLoader,
) -> ToolHandles:
    """Register the agent orchestration tools on the server."""

    def _launch_interactive(
        local_path: str,
        repo: str,
        issue_number: int,
        issue_title: str,
        issue_url: str,
        phase: str,
        launch_mode: Literal["auto", "tmux", "terminal"] = "auto",
        terminal_app: str | None = None,
        body: str | None = None,
        slug: str | None = None,
        prompt_template: str | None = None,
        command: str | None = None,
        extra_args: list[str] | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Open an agent for an issue in tmux or a terminal window."""

        spec = _build_spec(
            local_path=local_path,
            repo=repo,
            issue_number=issue_number,
            issue_title=issue_title,
            issue_url=issue_url,
            phase=phase,
            body=body,
            slug=slug,
            prompt_template=prompt_template,
            command=command,
            extra_args=extra_args,
            launch_mode=launch_mode,
            terminal_app=terminal_app,
        )
        result, session = tracker.launch_interactive(spec)
        if not result.ok:
            _emit_log(context, "warning", "Interactive launch failed", extra=_failure_extra(result))
            return _error_payload(result)

        _emit_log(
            context,
            "info",
            "Launched interactive agent",
            extra={"session": session.id if session else None, "issue": issue_number},
        )
        return {
            "ok": True,
            "strategy": getattr(result.value, "strategy", None),
            "session_id": session.id if session else None,
        }

    async def _spawn_background_agent(
        local_path: str,
        repo: str,
        issue_number: int,
        issue_title: str,
        issue_url: str,
        phase: str,
        body: str | None = None,
        slug: str | None = None,
        prompt_template: str | None = None,
        command: str | None = None,
        extra_args: list[str] | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Start a headless agent for an issue phase and follow its output."""

        spec = _build_spec(
            local_path=local_path,
            repo=repo,
            issue_number=issue_number,
            issue_title=issue_title,
            issue_url=issue_url,
            phase=phase,
            body=body,
            slug=slug,
            prompt_template=prompt_template,
            command=command,
            extra_args=extra_args,
        )
        result, agent = await tracker.launch_background(spec)
        if not result.ok or agent is None:
            _emit_log(context, "warning", "Background spawn failed", extra=_failure_extra(result))
            return _error_payload(result)

        _emit_log(
            context,
            "info",
            "Spawned background agent",
            extra={"session": agent.session_id, "pid": agent.pid, "phase": phase},
        )
        return {
            "ok": True,
            "session_id": agent.session_id,
            "pid": agent.pid,
            "result_file": str(agent.result_file_path),
        }

    def _agent_status(context: Context | None = None) -> list[dict[str, Any]]:
        """Live monitor snapshots of background agents started by this server."""

        return [
            {
                "session_id": agent.session_id,
                "repo": agent.repo,
                "issue_number": agent.issue_number,
                "phase": agent.phase,
                "pid": agent.pid,
                "started_at": agent.started_at,
                "monitor": agent.monitor.snapshot(),
            }
            for agent in tracker.agents
        ]

    def _list_sessions(
        repo: str | None = None,
        issue_number: int | None = None,
        active_only: bool = False,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        """List ledger sessions, optionally for one issue."""

        data = tracker.data
        if repo is not None and issue_number is not None:
            sessions = find_sessions(data, repo, issue_number)
        else:
            sessions = [s for s in data.sessions if repo is None or s.repo == repo]
        if active_only:
            sessions = [s for s in sessions if not s.exited_at]
        _emit_log(context, "debug", "Listing sessions", extra={"count": len(sessions)})
        return [_session_payload(s) for s in sessions]

    def _reconcile_results(context: Context | None = None) -> dict[str, Any]:
        """Close dead background sessions and import unprocessed result files."""

        outcome = tracker.catch_up()
        _emit_log(
            context,
            "info",
            "Reconciled agent state",
            extra={"reaped": len(outcome["reaped"]), "imported": len(outcome["imported"])},
        )
        return {key: [_session_payload(s) for s in sessions] for key, sessions in outcome.items()}

    def _phase_templates(context: Context | None = None) -> dict[str, str]:
        """Prompt templates per phase, with configured overrides applied."""

        return {**DEFAULT_PHASE_PROMPTS, **templates.overrides()}

    tool_launch = server.tool(
        name="launch_interactive",
        description=(
            "Open a coding agent for an issue in a new tmux window or terminal. "
            "Returns immediately; the agent is not monitored."
        ),
    )(_launch_interactive)

    tool_spawn = server.tool(
        name="spawn_background_agent",
        description=(
            "Start a headless coding agent for an issue phase. Progress is visible "
            "through agent_status and a result file is written when it exits."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "The agent runs unattended in the given working directory",
            }
        },
    )(_spawn_background_agent)

    tool_status = server.tool(
        name="agent_status",
        description="Show live status of background agents started by this server.",
    )(_agent_status)

    tool_sessions = server.tool(
        name="list_sessions",
        description="List recorded agent sessions, optionally filtered by repo and issue.",
    )(_list_sessions)

    tool_reconcile = server.tool(
        name="reconcile_results",
        description="Mark dead background sessions as exited and import unprocessed result files.",
    )(_reconcile_results)

    tool_templates = server.tool(
        name="phase_templates",
        description="List the prompt template used for each workflow phase.",
    )(_phase_templates)

    return ToolHandles(
        launch_interactive=tool_launch,
        spawn_background_agent=tool_spawn,
        agent_status=tool_status,
        list_sessions=tool_sessions,
        reconcile_results=tool_reconcile,
        phase_templates=tool_templates,
        tracker=tracker,
    )


__all__ = ["register_tools", "ToolHandles"]
