"""FastMCP server bootstrap for hog agents."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .agents import AgentTracker
from .config import HogSettings, get_settings
from .templates import TemplateLoadError, TemplateLoader
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[HogSettings] = None,
    tracker: AgentTracker | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server and catch up on agents that ran while it was down."""

    settings = settings or get_settings()
    template_loader = TemplateLoader(settings.template_paths)

    template_error: str | None = None
    try:
        overrides = template_loader.overrides()
    except TemplateLoadError as exc:
        logging.getLogger(__name__).warning("Ignoring phase template overrides", extra={"error": str(exc)})
        template_error = str(exc)
        overrides = {}

    tracker = tracker or AgentTracker(settings, template_overrides=overrides)

    startup = tracker.catch_up()
    startup_summary = {
        "checked_at": datetime.now(timezone.utc).isoformat(),
        "reaped": [session.id for session in startup["reaped"]],
        "imported": [session.id for session in startup["imported"]],
    }

    server = FastMCP(
        name="hog agents",
        version=__version__,
        instructions=(
            "Launches coding agents against tracked issues, interactively in tmux or a "
            "terminal, or headless in the background, and records every session. Use "
            "the tools to launch, watch and reconcile agents."
        ),
    )

    handles = register_tools(server, tracker=tracker, templates=template_loader)

    @server.resource(
        "resource://hog/status",
        name="hog_status",
        title="hog agents status",
        description="Running agents, ledger totals and the startup reconciliation summary.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing agent state."""

        sessions = tracker.data.sessions
        mode_counts: dict[str, int] = {}
        for session in sessions:
            mode_counts[session.mode] = mode_counts.get(session.mode, 0) + 1

        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "config_dir": str(settings.config_dir),
            "agent_command": settings.agent_command,
            "templates": {
                "search_paths": [str(path) for path in template_loader.search_paths],
                "overrides": sorted(overrides),
                "error": template_error,
            },
            "agents": {
                "running": tracker.running_count,
                "tracked": [agent.session_id for agent in tracker.agents],
            },
            "sessions": {
                "count": len(sessions),
                "active": sum(1 for session in sessions if not session.exited_at),
                "by_mode": mode_counts,
            },
            "startup": startup_summary,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "tracker", tracker)
    setattr(server, "startup_summary", startup_summary)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching hog agents MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "config_dir": str(settings.config_dir),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
