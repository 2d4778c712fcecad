"""Launch recipes for terminal applications.

Each supported terminal app maps to one recipe in ``TERMINAL_RECIPES``.
Recipes that compose a shell command line (the AppleScript ones) quote
every argument with :func:`shlex.quote`; the others pass argv elements
straight to the new process, so no shell ever parses issue text.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from .outcomes import DetachedLaunch, LaunchResult
from .utils import LauncherError, sanitize_environment

logger = logging.getLogger(__name__)

GENERIC_TERMINAL = "xdg-terminal-exec"

# TERM_PROGRAM values set by terminals that advertise themselves
_TERM_PROGRAM_APPS = {
    "iTerm.app": "iTerm",
    "Apple_Terminal": "Terminal",
    "WezTerm": "WezTerm",
    "ghostty": "Ghostty",
}


class TerminalLaunchError(LauncherError):
    """Raised by a recipe when its terminal could not be started."""


@dataclass(slots=True, frozen=True)
class TerminalRequest:
    """What every recipe needs: where to start and what to run there."""

    cwd: Path
    argv: tuple[str, ...]
    env: Mapping[str, str]

    def shell_command(self) -> str:
        """``cd`` into the directory and run argv, every piece quoted."""

        exports = " ".join(f"{key}={shlex.quote(value)}" for key, value in sorted(self.env.items()))
        run = " ".join(shlex.quote(part) for part in self.argv)
        if exports:
            run = f"env {exports} {run}"
        return f"cd {shlex.quote(str(self.cwd))} && {run}"


Recipe = Callable[[TerminalRequest], DetachedLaunch]


def _applescript_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _run_osascript(script: str, app: str) -> None:
    result = subprocess.run(
        ["osascript", "-e", script],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise TerminalLaunchError(
            f"{app} launch failed. Is {app} installed and running? {result.stderr.strip()}".strip()
        )


def spawn_detached(
    args: Sequence[str], *, cwd: Path | None = None, env: Mapping[str, str] | None = None
) -> int:
    """Start ``args`` in its own session with no stdio and never wait on it."""

    process = subprocess.Popen(
        list(args),
        cwd=str(cwd) if cwd is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        env=sanitize_environment(env),
        start_new_session=True,
    )
    return process.pid


def _iterm(request: TerminalRequest) -> DetachedLaunch:
    script = "\n".join(
        [
            'tell application "iTerm"',
            "  create window with default profile",
            "  tell current session of current window",
            f"    write text {_applescript_string(request.shell_command())}",
            "  end tell",
            "end tell",
        ]
    )
    _run_osascript(script, "iTerm2")
    return DetachedLaunch(strategy="iTerm")


def _apple_terminal(request: TerminalRequest) -> DetachedLaunch:
    script = "\n".join(
        [
            'tell application "Terminal"',
            f"  do script {_applescript_string(request.shell_command())}",
            "  activate",
            "end tell",
        ]
    )
    _run_osascript(script, "Terminal")
    return DetachedLaunch(strategy="Terminal")


def _ghostty(request: TerminalRequest) -> DetachedLaunch:
    pid = spawn_detached(
        ["open", "-na", "Ghostty", "--args", f"--working-directory={request.cwd}", "-e", *request.argv],
        env=request.env,
    )
    return DetachedLaunch(strategy="Ghostty", pid=pid)


def _wezterm(request: TerminalRequest) -> DetachedLaunch:
    pid = spawn_detached(
        ["wezterm", "start", "--cwd", str(request.cwd), "--", *request.argv],
        env=request.env,
    )
    return DetachedLaunch(strategy="WezTerm", pid=pid)


def _kitty(request: TerminalRequest) -> DetachedLaunch:
    pid = spawn_detached(["kitty", "--directory", str(request.cwd), *request.argv], env=request.env)
    return DetachedLaunch(strategy="Kitty", pid=pid)


def _alacritty(request: TerminalRequest) -> DetachedLaunch:
    pid = spawn_detached(
        ["alacritty", "--working-directory", str(request.cwd), "--command", *request.argv],
        env=request.env,
    )
    return DetachedLaunch(strategy="Alacritty", pid=pid)


def _generic(request: TerminalRequest) -> DetachedLaunch:
    pid = spawn_detached([GENERIC_TERMINAL, *request.argv], cwd=request.cwd, env=request.env)
    return DetachedLaunch(strategy=GENERIC_TERMINAL, pid=pid)


TERMINAL_RECIPES: dict[str, Recipe] = {
    "iTerm": _iterm,
    "Terminal": _apple_terminal,
    "Ghostty": _ghostty,
    "WezTerm": _wezterm,
    "Kitty": _kitty,
    "Alacritty": _alacritty,
    GENERIC_TERMINAL: _generic,
}


def detect_terminal_app(environ: Mapping[str, str], platform: str | None = None) -> str:
    """Pick the terminal app from the environment, else the OS default."""

    detected = _TERM_PROGRAM_APPS.get(environ.get("TERM_PROGRAM", ""))
    if detected:
        return detected
    # kitty does not set TERM_PROGRAM
    if environ.get("KITTY_WINDOW_ID"):
        return "Kitty"
    if (platform or sys.platform) == "darwin":
        return "Terminal"
    return GENERIC_TERMINAL


def launch_in_terminal(app: str, request: TerminalRequest) -> LaunchResult:
    recipe = TERMINAL_RECIPES.get(app)
    if recipe is None:
        return LaunchResult.failure("terminal-app-not-found", f"Unknown terminal app: {app}")
    try:
        launched = recipe(request)
    except (OSError, TerminalLaunchError) as exc:
        logger.warning("Terminal launch failed", extra={"terminal_app": app, "error": str(exc)})
        return LaunchResult.failure("terminal-failed", f"{app} launch failed: {exc}", exc)
    logger.info("Launched agent in terminal", extra={"terminal_app": app, "cwd": str(request.cwd)})
    return LaunchResult.success(launched)


__all__ = [
    "GENERIC_TERMINAL",
    "TERMINAL_RECIPES",
    "TerminalLaunchError",
    "TerminalRequest",
    "detect_terminal_app",
    "launch_in_terminal",
    "spawn_detached",
]
