"""
Scanner: runs the enabled checks over one workflow document.

Checks run one at a time in priority order. Before each check the current
text is parsed again, so a check always sees line numbers that match the
text its remediations will edit. A check's edits are applied as one batch:
if detection or any remediation in the batch fails, none of it is applied.
"""

import logging
from typing import Iterable, Optional

from pinwarden.checks import CheckContext, available_checks, get_check, run_check, sort_by_priority
from pinwarden.errors import PinwardenError, ScanCancelled, ScanError
from pinwarden.issue import Issue
from pinwarden.parser.workflow_parser import parse_workflow_text

logger = logging.getLogger(__name__)


class Scanner:
    """Detects and remediates issues in a single workflow document."""

    def __init__(self, content: str, context: CheckContext, file_path: str = "<string>"):
        self.original_content = content
        self.remediated_content = content
        self.context = context
        self.file_path = file_path
        self.issues: list[Issue] = []
        self.enabled_checks: list[str] = []

    def enable_checks(self, names: Iterable[str]) -> None:
        """Enable the named checks; raises ValueError for unknown names."""
        names = list(names)
        for name in names:
            get_check(name)
        self.enabled_checks = sort_by_priority(names)

    def enable_all_checks(self) -> None:
        self.enabled_checks = available_checks()

    @property
    def has_changes(self) -> bool:
        return self.remediated_content != self.original_content

    def _run_one(self, name: str) -> None:
        check = get_check(name)
        content = self.remediated_content

        try:
            workflow = parse_workflow_text(content, file_path=self.file_path)
        except PinwardenError as e:
            raise ScanError("parse", name, e) from e

        try:
            issues = run_check(check, workflow, self.context)
        except ScanCancelled:
            raise
        except PinwardenError as e:
            raise ScanError("detect", name, e) from e

        self.context.check_cancelled()
        updated = content
        try:
            for issue in issues:
                updated = check.remediate(updated, issue)
        except PinwardenError as e:
            raise ScanError("remediate", name, e) from e

        # Commit the whole batch only once every edit succeeded
        self.issues.extend(issues)
        self.remediated_content = updated
        logger.info(
            "Check '%s' finished: %d issue(s), %d remediated",
            name, len(issues), sum(1 for i in issues if i.can_remediate),
        )

    def scan(self) -> list[Issue]:
        """
        Run every enabled check in priority order.

        Returns:
            All issues found, in check order then document order.

        Raises:
            ScanError: If a check fails; later checks are not run.
            ScanCancelled: If the scan was cancelled.
        """
        if not self.enabled_checks:
            self.enable_all_checks()

        logger.info("Scanning %s with checks: %s", self.file_path, ", ".join(self.enabled_checks))
        for name in self.enabled_checks:
            self._run_one(name)
        return self.issues

    def get_output(self, issues: Optional[list[Issue]] = None) -> str:
        """Plain-text list of issue messages."""
        return "".join(f"* {issue.message}\n" for issue in (issues if issues is not None else self.issues))
