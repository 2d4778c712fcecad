"""Headless agent processes and their stream monitors."""

from __future__ import annotations

import asyncio
import codecs
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from ..config import HogSettings, get_settings
from ..storage import ResultFileStore
from .launch_spec import LaunchSpec
from .outcomes import LaunchResult, SupervisedLaunch
from .stream import StreamEvent, parse_stream_line
from .utils import AgentNotFoundError, issue_environment, resolve_agent_executable, sanitize_environment

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass(slots=True)
class AgentMonitor:
    """Live view of a background agent, updated as its output streams in."""

    session_id: str | None = None
    last_tool_use: str | None = None
    last_text: str | None = None
    is_running: bool = True
    exit_code: int | None = None
    _task: asyncio.Task | None = field(default=None, repr=False, compare=False)

    def apply(self, event: StreamEvent) -> None:
        if event.session_id:
            self.session_id = event.session_id
        if event.type == "tool_use" and event.tool_name:
            self.last_tool_use = event.tool_name
        if event.type == "text" and event.text:
            self.last_text = event.text

    async def wait(self) -> int | None:
        """Wait until the process has exited and the exit callback has run."""

        if self._task is not None:
            await self._task
        return self.exit_code

    def snapshot(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "last_tool_use": self.last_tool_use,
            "last_text": self.last_text,
            "is_running": self.is_running,
            "exit_code": self.exit_code,
        }


EventCallback = Callable[[StreamEvent], None]
ExitCallback = Callable[[int, AgentMonitor], None]


async def spawn_background_agent(
    spec: LaunchSpec,
    *,
    settings: HogSettings | None = None,
    results: ResultFileStore | None = None,
    template_overrides: Mapping[str, str] | None = None,
) -> LaunchResult:
    """Start a headless agent for ``spec`` with piped ``stream-json`` output."""

    if not spec.repo_full_name:
        return LaunchResult.failure(
            "spawn-failed",
            f"Background launch for #{spec.issue_number} needs repo_full_name for its result file",
        )

    settings = settings or get_settings()
    results = results or ResultFileStore(settings.results_dir)

    local_path = Path(spec.local_path)
    if not local_path.is_dir():
        return LaunchResult.failure(
            "directory-not-found",
            f"Directory not found: {local_path}. Check localPath config.",
        )

    start = spec.resolve_command(settings.agent_command)
    try:
        executable = resolve_agent_executable(start.command)
    except AgentNotFoundError as exc:
        return LaunchResult.failure("claude-not-found", str(exc), exc)

    prompt = spec.build_prompt(template_overrides)
    args = [*start.extra_args, "-p", prompt, "--output-format", "stream-json"]

    try:
        process = await asyncio.create_subprocess_exec(
            str(executable),
            *args,
            cwd=str(local_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sanitize_environment(issue_environment(spec.repo_full_name, spec.issue_number)),
        )
    except OSError as exc:
        return LaunchResult.failure(
            "spawn-failed",
            f"Failed to spawn background agent for #{spec.issue_number}",
            exc,
        )

    result_file_path = results.build_path(spec.repo_full_name, spec.issue_number, spec.phase)
    logger.info(
        "Spawned background agent",
        extra={
            "pid": process.pid,
            "repo": spec.repo_full_name,
            "issue": spec.issue_number,
            "phase": spec.phase,
        },
    )
    return LaunchResult.success(
        SupervisedLaunch(process=process, pid=process.pid, result_file_path=result_file_path)
    )


def _dispatch(line: str, monitor: AgentMonitor, on_event: EventCallback | None) -> None:
    event = parse_stream_line(line)
    if event is None:
        return
    monitor.apply(event)
    if on_event is None:
        return
    try:
        on_event(event)
    except Exception:
        logger.exception("Stream event callback failed", extra={"event_type": event.type})


async def _read_stdout(
    stream: asyncio.StreamReader,
    monitor: AgentMonitor,
    on_event: EventCallback | None,
) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            _dispatch(line, monitor, on_event)
    return buffer + decoder.decode(b"", final=True)


async def _read_stderr(stream: asyncio.StreamReader, monitor: AgentMonitor) -> None:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        text = decoder.decode(chunk).strip()
        if text:
            monitor.last_text = text


async def _supervise(
    process: asyncio.subprocess.Process,
    monitor: AgentMonitor,
    on_event: EventCallback | None,
    on_exit: ExitCallback | None,
) -> None:
    pending = ""
    try:
        readers = []
        if process.stdout is not None:
            readers.append(_read_stdout(process.stdout, monitor, on_event))
        if process.stderr is not None:
            readers.append(_read_stderr(process.stderr, monitor))
        outputs = await asyncio.gather(*readers)
        if process.stdout is not None:
            pending = outputs[0]
        returncode = await process.wait()
        if pending.strip():
            _dispatch(pending, monitor, on_event)
    finally:
        monitor.is_running = False

    # a signal-terminated child reports a negative code
    monitor.exit_code = returncode if returncode >= 0 else 1
    logger.info("Background agent exited", extra={"pid": process.pid, "exit_code": monitor.exit_code})
    if on_exit is None:
        return
    try:
        on_exit(monitor.exit_code, monitor)
    except Exception:
        logger.exception("Agent exit callback failed", extra={"pid": process.pid})


def attach_stream_monitor(
    process: asyncio.subprocess.Process,
    on_event: EventCallback | None = None,
    on_exit: ExitCallback | None = None,
) -> AgentMonitor:
    """Follow ``process`` output on the running loop and return its live monitor."""

    monitor = AgentMonitor()
    monitor._task = asyncio.get_running_loop().create_task(
        _supervise(process, monitor, on_event, on_exit)
    )
    return monitor


__all__ = [
    "AgentMonitor",
    "EventCallback",
    "ExitCallback",
    "attach_stream_monitor",
    "spawn_background_agent",
]
