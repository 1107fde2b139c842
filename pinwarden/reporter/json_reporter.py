"""
JSON reporter: outputs issues as structured JSON for programmatic use.
"""

import json
import logging

from pinwarden.issue import Issue

logger = logging.getLogger(__name__)


def report_json(issues: list[Issue]) -> str:
    """
    Format issues as a JSON string.

    Args:
        issues: List of Issue objects to report.

    Returns:
        A JSON string with all issues.
    """
    data = {
        "total": len(issues),
        "remediable": sum(1 for i in issues if i.can_remediate),
        "issues": [
            {
                "check_type": i.check_type,
                "reason": i.reason,
                "message": i.message,
                "file_path": i.file_path,
                "job_name": i.job_name,
                "step_index": i.step_index,
                "step_name": i.step_name,
                "line_number": i.line_number,
                "original": i.original,
                "remediation": i.remediation,
                "can_remediate": i.can_remediate,
            }
            for i in issues
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d issue(s), %d bytes", len(issues), len(output))
    return output
