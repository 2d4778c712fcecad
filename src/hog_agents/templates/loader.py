"""Phase template overrides read from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

import yaml
from pydantic import ValidationError

from .models import PhaseTemplate

_SUFFIXES = (".yml", ".yaml")


class TemplateLoadError(RuntimeError):
    """Raised when one or more template files cannot be parsed."""


def _template_files(directory: Path) -> Iterator[Path]:
    for suffix in _SUFFIXES:
        yield from sorted(directory.glob(f"*{suffix}"))


def _read_template(path: Path) -> PhaseTemplate | None:
    """Parse one file; an empty document means no override."""

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise TemplateLoadError(f"{path}: invalid YAML: {exc}") from exc
    if document is None:
        return None
    try:
        return PhaseTemplate.model_validate(document)
    except ValidationError as exc:
        raise TemplateLoadError(f"{path}: invalid phase template: {exc}") from exc


class TemplateLoader:
    """Collects per-phase prompt overrides from a list of directories.

    Directories that do not exist are skipped. When two files name the same
    phase, the one in the later directory is used. Every broken file is
    reported in a single ``TemplateLoadError``.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        self._search_paths = [Path(path) for path in search_paths or () if Path(path).exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, PhaseTemplate]:
        templates: dict[str, PhaseTemplate] = {}
        problems: list[str] = []
        for directory in self._search_paths:
            for path in _template_files(directory):
                try:
                    template = _read_template(path)
                except TemplateLoadError as exc:
                    problems.append(str(exc))
                    continue
                if template is not None:
                    templates[template.phase] = template
        if problems:
            raise TemplateLoadError("; ".join(problems))
        return templates

    def overrides(self) -> dict[str, str]:
        """Phase name to prompt text, ready for ``phase_template``."""

        return {phase: template.template for phase, template in self.load_all().items()}


__all__ = ["PhaseTemplate", "TemplateLoadError", "TemplateLoader"]
