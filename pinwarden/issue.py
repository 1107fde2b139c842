"""
Issue model shared by the checks, the remediation engine and the reporters.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Issue:
    """A single recommendation produced by a check against one document snapshot.

    `line_number` and `column` locate `original` in the exact text the check
    parsed; they go stale as soon as that text is edited.
    """
    check_type: str                  # e.g. "unstable-github-ref"
    job_name: str
    step_index: int
    line_number: Optional[int]       # 1-based line of the `uses:` value
    message: str
    original: str                    # text span to replace
    remediation: Optional[str] = None
    can_remediate: bool = False
    reason: Optional[str] = None     # machine-readable cause, e.g. "is-branch"
    column: Optional[int] = None     # 0-based column of the `uses:` value
    file_path: str = ""
    step_name: str = ""
