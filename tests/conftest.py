from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from hog_agents.config import HogSettings

_HOG_VARS = (
    "HOG_CONFIG_DIR",
    "HOG_AGENT_COMMAND",
    "HOG_LAUNCH_MODE",
    "HOG_TERMINAL_APP",
    "HOG_TEMPLATE_PATHS",
    "HOG_LOG_LEVEL",
)


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> HogSettings:
    for name in _HOG_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOG_CONFIG_DIR", str(tmp_path / "config"))
    return HogSettings()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def install_agent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[[str], Path]:
    """Put a shell script named ``claude`` first on PATH."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def install(body: str = "exit 0\n") -> Path:
        script = bin_dir / "claude"
        script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        script.chmod(0o755)
        return script

    return install
