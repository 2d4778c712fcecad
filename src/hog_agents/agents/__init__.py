"""Agent launching, supervision and stream parsing."""

from .launch_spec import LaunchSpec, StartCommand
from .launcher import InteractiveLauncher, launch_interactive
from .liveness import is_process_alive
from .outcomes import DetachedLaunch, LaunchError, LaunchResult, SupervisedLaunch
from .prompts import DEFAULT_PHASE_PROMPTS, IssueRef, PromptVariables, build_prompt, phase_template
from .stream import StreamEvent, parse_stream_line
from .supervisor import AgentMonitor, attach_stream_monitor, spawn_background_agent
from .tracker import AgentTracker, TrackedAgent
from .utils import AgentNotFoundError, LauncherError

__all__ = [
    "DEFAULT_PHASE_PROMPTS",
    "AgentMonitor",
    "AgentNotFoundError",
    "AgentTracker",
    "DetachedLaunch",
    "InteractiveLauncher",
    "IssueRef",
    "LaunchError",
    "LaunchResult",
    "LaunchSpec",
    "LauncherError",
    "PromptVariables",
    "StartCommand",
    "StreamEvent",
    "SupervisedLaunch",
    "TrackedAgent",
    "attach_stream_monitor",
    "build_prompt",
    "is_process_alive",
    "launch_interactive",
    "parse_stream_line",
    "phase_template",
    "spawn_background_agent",
]
