"""Utility helpers shared by the launchers."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}


class LauncherError(RuntimeError):
    """Base class for launcher errors."""


class AgentNotFoundError(LauncherError):
    """Raised when the agent executable cannot be located."""


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


def issue_environment(repo_full_name: str | None, issue_number: int) -> dict[str, str]:
    """Variables exported to agent processes so they know what they work on."""

    env = {"HOG_ISSUE": str(issue_number)}
    if repo_full_name:
        env["HOG_REPO"] = repo_full_name
    return env


def resolve_agent_executable(command: str) -> Path:
    """Locate ``command`` either as an explicit path or on ``PATH``."""

    if os.sep in command:
        candidate = Path(command).expanduser()
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
        raise AgentNotFoundError(f"Agent executable not found at {candidate}")

    binary = shutil.which(command)
    if binary is None:
        raise AgentNotFoundError(f"{command} binary not found in PATH. Install Claude Code first.")
    return Path(binary)


__all__ = [
    "AgentNotFoundError",
    "LauncherError",
    "issue_environment",
    "resolve_agent_executable",
    "sanitize_environment",
]
