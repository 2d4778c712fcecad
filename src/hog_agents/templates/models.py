"""Phase template models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PhaseTemplate(BaseModel):
    """Prompt template used when launching an agent for one workflow phase."""

    model_config = ConfigDict(frozen=True)

    phase: str = Field(..., description="Workflow phase this template applies to.")
    template: str = Field(
        ...,
        description="Prompt text with {number} {title} {url} {body} {slug} {phase} {repo} placeholders.",
    )
    description: str | None = Field(
        default=None,
        description="Optional note shown when listing templates.",
    )

    @field_validator("phase")
    @classmethod
    def _normalize_phase(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Phase template phase must not be empty")
        return normalized

    @field_validator("template")
    @classmethod
    def _require_template(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Phase template text must not be empty")
        return value


__all__ = ["PhaseTemplate"]
