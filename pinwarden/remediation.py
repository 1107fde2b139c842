"""
Remediation engine: applies a check's issues to the workflow text.

Every edit is a single-line substitution of the `uses:` value, so line counts
never change within a batch and the issues of one batch can be applied in any
order. Between batches the scanner re-parses the text; line numbers from an
older snapshot are never reused.
"""

import logging
import re

from pinwarden.errors import RemediationError
from pinwarden.issue import Issue

logger = logging.getLogger(__name__)

# Line breaks as PyYAML counts them
_LINE_BREAK = re.compile(r"(\r\n|[\r\n\x85\u2028\u2029])")


def _split_lines(content: str) -> list[str]:
    """Split into lines that keep their own line break."""
    parts = _LINE_BREAK.split(content)
    return [
        parts[i] + (parts[i + 1] if i + 1 < len(parts) else "")
        for i in range(0, len(parts), 2)
    ]


def apply_issue(content: str, issue: Issue) -> str:
    """
    Replace the issue's original span with its remediation.

    Issues that cannot be remediated leave the content untouched.

    Raises:
        RemediationError: If the original span is not at the recorded line.
    """
    if not issue.can_remediate or issue.remediation is None:
        return content
    if issue.line_number is None:
        raise RemediationError(f"{issue.check_type}: issue has no line number")

    lines = _split_lines(content)
    index = issue.line_number - 1
    if index < 0 or index >= len(lines):
        raise RemediationError(
            f"{issue.check_type}: line {issue.line_number} is outside the document "
            f"({len(lines)} line(s))"
        )

    line = lines[index]
    start = line.find(issue.original, issue.column or 0)
    if start == -1:
        start = line.find(issue.original)
    if start == -1:
        raise RemediationError(
            f"{issue.check_type}: {issue.original!r} not found on line {issue.line_number}"
        )

    lines[index] = line[:start] + issue.remediation + line[start + len(issue.original):]
    logger.debug(
        "Line %d: %s -> %s", issue.line_number, issue.original, issue.remediation,
    )
    return "".join(lines)


def apply_issues(content: str, issues: list[Issue]) -> str:
    """Apply a batch of issues computed from the same snapshot of `content`."""
    updated = content
    for issue in issues:
        updated = apply_issue(updated, issue)
    return updated
