"""On-disk result files written when a background agent exits."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import AbstractSet

from pydantic import ValidationError

from .models import AgentResultFile, AgentSessionDraft

logger = logging.getLogger(__name__)

_ISSUE_REF = re.compile(r"(.+)#([0-9]+)")
_PRIVATE_MODE = 0o600


def write_private_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` readable and writable by the owner only."""

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _PRIVATE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(text)
    # O_CREAT leaves the mode of a pre-existing file alone
    os.chmod(path, _PRIVATE_MODE)


class ResultFileStore:
    """Read and write agent result files in a single directory."""

    def __init__(self, results_dir: Path) -> None:
        self._results_dir = Path(results_dir)

    @property
    def results_dir(self) -> Path:
        return self._results_dir

    def build_path(self, repo_full_name: str, issue_number: int, phase: str) -> Path:
        """Return the deterministic result path for one (repo, issue, phase)."""

        slug = repo_full_name.replace("/", "-", 1)
        return self._results_dir / f"{slug}-{issue_number}-{phase}.json"

    def write(self, path: Path, result: AgentResultFile) -> None:
        self._results_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(result.to_json_dict(), indent=2) + "\n"
        write_private_text(Path(path), payload)
        logger.debug(
            "Wrote agent result file",
            extra={"path": str(path), "exit_code": result.exit_code},
        )

    def read(self, path: Path) -> AgentResultFile | None:
        """Return the parsed result, or None when it is missing or unreadable."""

        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            return AgentResultFile.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable result file", extra={"path": str(path), "error": str(exc)})
            return None

    def list_paths(self) -> list[Path]:
        if not self._results_dir.is_dir():
            return []
        try:
            return sorted(path for path in self._results_dir.glob("*.json") if path.is_file())
        except OSError as exc:
            logger.warning(
                "Cannot list result directory",
                extra={"path": str(self._results_dir), "error": str(exc)},
            )
            return []

    def find_unprocessed(self, processed: AbstractSet[str]) -> list[Path]:
        """Return result files on disk whose path is not in ``processed``."""

        return [path for path in self.list_paths() if str(path) not in processed]


def session_from_result(result: AgentResultFile, result_file_path: Path | str) -> AgentSessionDraft:
    """Build a ledger entry for a result file found during reconciliation."""

    match = _ISSUE_REF.fullmatch(result.issue_ref)
    repo = match.group(1) if match else ""
    issue_number = int(match.group(2)) if match else 0

    return AgentSessionDraft(
        repo=repo,
        issue_number=issue_number,
        phase=result.phase,
        mode="background",
        claude_session_id=result.session_id,
        started_at=result.started_at,
        exited_at=result.completed_at,
        exit_code=result.exit_code,
        result_file=str(result_file_path),
    )


__all__ = ["ResultFileStore", "session_from_result", "write_private_text"]
