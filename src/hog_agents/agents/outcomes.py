"""Result types shared by the interactive and background launch paths."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

LaunchFailureReason = Literal[
    "directory-not-found",
    "claude-not-found",
    "tmux-failed",
    "terminal-failed",
    "terminal-app-not-found",
    "ssh-no-tmux",
]

SpawnFailureReason = Literal["directory-not-found", "claude-not-found", "spawn-failed"]


@dataclass(slots=True, frozen=True)
class LaunchError:
    """A tagged failure returned by a launch entry point."""

    kind: str
    message: str
    cause: BaseException | None = None

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(slots=True, frozen=True)
class DetachedLaunch:
    """An interactive launch; the child is never observed again."""

    strategy: str
    pid: int | None = None


@dataclass(slots=True)
class SupervisedLaunch:
    """A background launch with a live handle and piped output."""

    process: asyncio.subprocess.Process
    pid: int
    result_file_path: Path


Launched = Union[DetachedLaunch, SupervisedLaunch]


@dataclass(slots=True, frozen=True)
class LaunchResult:
    value: Launched | None = None
    error: LaunchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Launched) -> "LaunchResult":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: str, message: str, cause: BaseException | None = None) -> "LaunchResult":
        return cls(error=LaunchError(kind=kind, message=message, cause=cause))


__all__ = [
    "DetachedLaunch",
    "LaunchError",
    "LaunchFailureReason",
    "LaunchResult",
    "Launched",
    "SpawnFailureReason",
    "SupervisedLaunch",
]
