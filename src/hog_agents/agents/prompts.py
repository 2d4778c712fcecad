"""Prompt construction from phase templates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

DEFAULT_PHASE_PROMPTS: dict[str, str] = {
    "research": "\n".join(
        [
            "Research context for Issue #{number}: {title}",
            "URL: {url}",
            "",
            "Explore the codebase and gather context that would help brainstorm this issue.",
            "Write a short research summary to docs/research/{slug}.md.",
            "Do NOT implement anything. Just gather information.",
        ]
    ),
    "brainstorm": "\n".join(
        ["Let's brainstorm Issue #{number}: {title}", "URL: {url}", "", "{body}"]
    ),
    "plan": "\n".join(
        [
            "Create an implementation plan for Issue #{number}: {title}",
            "URL: {url}",
            "",
            "If a brainstorm doc exists in docs/brainstorms/, use it as context.",
            "Write the plan to docs/plans/.",
        ]
    ),
    "implement": "\n".join(
        [
            "Implement Issue #{number}: {title}",
            "URL: {url}",
            "",
            "If a plan exists in docs/plans/, follow it.",
            "Commit frequently. Create a PR when done.",
        ]
    ),
    "review": "\n".join(
        [
            "Review the changes for Issue #{number}: {title}",
            "URL: {url}",
            "",
            "Check the current branch diff against main.",
            "Run tests and linting.",
            "Write a review summary.",
        ]
    ),
    "compound": "\n".join(
        [
            "Document the solution for Issue #{number}: {title}",
            "URL: {url}",
            "",
            "Write a solution document to docs/solutions/.",
            "Include: symptoms, root cause, solution, prevention.",
        ]
    ),
    "completion-check": "\n".join(
        [
            "Check the status of Issue #{number}: {title}",
            "URL: {url}",
            "",
            "Read the plan doc if it exists in docs/plans/.",
            "Run `git diff main...HEAD --stat` to see what's changed.",
            "Run the project's test suite.",
            "Report: what's done, what's remaining, what's blocking.",
        ]
    ),
}

_PLACEHOLDER = re.compile(r"\{(number|title|url|body|slug|phase|repo)\}")


@dataclass(slots=True, frozen=True)
class IssueRef:
    number: int
    title: str
    url: str


@dataclass(slots=True, frozen=True)
class PromptVariables:
    """Extra template values beyond the issue's number, title and url."""

    body: str | None = None
    slug: str | None = None
    phase: str | None = None
    repo: str | None = None


def build_prompt(
    issue: IssueRef,
    template: str | None = None,
    variables: PromptVariables | None = None,
) -> str:
    """Render ``template`` for ``issue``.

    Without a template the prompt is ``Issue #N: title`` followed by the URL.
    Placeholders are substituted in a single pass, so placeholder-like text
    inside the issue title or body is left as written.
    """

    if not template:
        return f"Issue #{issue.number}: {issue.title}\nURL: {issue.url}"

    extra = variables or PromptVariables()
    values = {
        "number": str(issue.number),
        "title": issue.title,
        "url": issue.url,
        "body": extra.body or "",
        "slug": extra.slug or "",
        "phase": extra.phase or "",
        "repo": extra.repo or "",
    }
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], template)


def phase_template(phase: str, overrides: Mapping[str, str] | None = None) -> str | None:
    """Return the template for ``phase``: an override, the default, or None."""

    if overrides and overrides.get(phase):
        return overrides[phase]
    return DEFAULT_PHASE_PROMPTS.get(phase)


__all__ = [
    "DEFAULT_PHASE_PROMPTS",
    "IssueRef",
    "PromptVariables",
    "build_prompt",
    "phase_template",
]
