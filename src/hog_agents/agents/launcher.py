"""Interactive agent launches in tmux or a terminal window."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Mapping

from ..config import HogSettings, get_settings
from .launch_spec import LaunchSpec
from .outcomes import DetachedLaunch, LaunchResult
from .terminals import TerminalRequest, detect_terminal_app, launch_in_terminal
from .utils import AgentNotFoundError, issue_environment, resolve_agent_executable, sanitize_environment

logger = logging.getLogger(__name__)

_TMUX_TIMEOUT_S = 5.0

Strategy = Callable[[LaunchSpec, TerminalRequest], LaunchResult]


class InteractiveLauncher:
    """Open an agent where the user can watch it.

    Preconditions are checked first and fail without spawning anything.
    The launch itself tries tmux, then a terminal app; in ``auto`` mode a
    failed tmux launch falls through to the terminal.
    """

    def __init__(
        self,
        settings: HogSettings | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
        template_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._environ = environ if environ is not None else os.environ
        self._platform = platform
        self._template_overrides = template_overrides

    @property
    def in_tmux(self) -> bool:
        return bool(self._environ.get("TMUX"))

    @property
    def in_ssh(self) -> bool:
        return bool(self._environ.get("SSH_CLIENT") or self._environ.get("SSH_TTY"))

    def launch(self, spec: LaunchSpec) -> LaunchResult:
        local_path = Path(spec.local_path)
        if not local_path.is_dir():
            return LaunchResult.failure(
                "directory-not-found",
                f"Directory not found: {local_path}. Check localPath config.",
            )

        start = spec.resolve_command(self._settings.agent_command)
        try:
            resolve_agent_executable(start.command)
        except AgentNotFoundError as exc:
            return LaunchResult.failure("claude-not-found", str(exc), exc)

        mode = spec.launch_mode
        if self.in_ssh and not self.in_tmux and mode != "tmux":
            return LaunchResult.failure(
                "ssh-no-tmux",
                "Running over SSH without tmux. Start tmux to enable agent launch.",
            )

        request = TerminalRequest(
            cwd=local_path,
            argv=(start.command, *start.extra_args, "--", spec.build_prompt(self._template_overrides)),
            env=issue_environment(spec.repo_full_name, spec.issue_number),
        )

        result = LaunchResult.failure("terminal-failed", "No launch strategy available")
        for name, strategy in self._strategies(spec):
            result = strategy(spec, request)
            if result.ok:
                return result
            logger.info(
                "Launch strategy failed",
                extra={"strategy": name, "kind": result.error.kind, "issue": spec.issue_number},
            )
            if name == "tmux" and mode == "tmux":
                return LaunchResult.failure(
                    "tmux-failed", "tmux launch failed. Is tmux running?", result.error.cause
                )
        return result

    def _strategies(self, spec: LaunchSpec) -> list[tuple[str, Strategy]]:
        mode = spec.launch_mode
        strategies: list[tuple[str, Strategy]] = []
        if mode == "tmux" or (mode == "auto" and self.in_tmux):
            strategies.append(("tmux", self._launch_tmux))
        if mode != "tmux":
            strategies.append(("terminal", self._launch_terminal))
        return strategies

    def _launch_tmux(self, spec: LaunchSpec, request: TerminalRequest) -> LaunchResult:
        args = ["tmux", "new-window", "-d", "-c", str(request.cwd), "-n", f"claude-{spec.issue_number}"]
        for key, value in sorted(request.env.items()):
            args.extend(["-e", f"{key}={value}"])
        args.extend(request.argv)

        try:
            completed = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=_TMUX_TIMEOUT_S,
                env=sanitize_environment(),
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            return LaunchResult.failure("tmux-failed", f"tmux launch failed: {exc}", exc)
        if completed.returncode != 0:
            return LaunchResult.failure("tmux-failed", f"tmux new-window failed: {completed.stderr.strip()}")

        logger.info("Launched agent in tmux window", extra={"issue": spec.issue_number, "cwd": str(request.cwd)})
        return LaunchResult.success(DetachedLaunch(strategy="tmux"))

    def _launch_terminal(self, spec: LaunchSpec, request: TerminalRequest) -> LaunchResult:
        app = (
            spec.terminal_app
            or self._settings.terminal_app
            or detect_terminal_app(self._environ, self._platform)
        )
        return launch_in_terminal(app, request)


def launch_interactive(spec: LaunchSpec, settings: HogSettings | None = None) -> LaunchResult:
    """Launch ``spec`` interactively using the process environment."""

    return InteractiveLauncher(settings).launch(spec)


__all__ = ["InteractiveLauncher", "launch_interactive"]
