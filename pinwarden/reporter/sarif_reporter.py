"""
SARIF reporter: outputs issues in SARIF 2.1.0 format for GitHub Code Scanning.

Upload the output to GitHub and each recommendation appears as an annotation
on the `uses:` line it refers to. Remediable issues carry a SARIF `fixes`
entry describing the replacement.

Reference: https://docs.github.com/en/code-security/code-scanning/integrating-with-code-scanning/sarif-support-for-code-scanning
"""

import json
import logging
from typing import Any

from pinwarden import __version__
from pinwarden.issue import Issue

logger = logging.getLogger(__name__)

# Map check types to SARIF notification levels
_SARIF_LEVEL: dict[str, str] = {
    "unstable-github-ref": "error",
    "unfork-action": "warning",
    "unstable-docker-tag": "warning",
    "outdated-action": "note",
}

_RULE_TITLES: dict[str, str] = {
    "unstable-github-ref": "Action reference can change without the workflow changing",
    "unfork-action": "Action referenced through a fork of its upstream",
    "unstable-docker-tag": "Container image uses a floating tag",
    "outdated-action": "Pinned action commit is behind its default branch",
}

TOOL_NAME = "pinwarden"
TOOL_URI = "https://github.com/pinwarden/pinwarden"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
SARIF_VERSION = "2.1.0"


def _build_rules(issues: list[Issue]) -> list[dict[str, Any]]:
    """Build the SARIF rules array: one entry per check type present."""
    seen: list[str] = []
    for i in issues:
        if i.check_type not in seen:
            seen.append(i.check_type)

    rules = []
    for check_type in seen:
        title = _RULE_TITLES.get(check_type, check_type)
        rules.append({
            "id": check_type,
            "name": check_type.replace("-", " ").title().replace(" ", ""),
            "shortDescription": {"text": title},
            "fullDescription": {"text": title},
            "helpUri": f"{TOOL_URI}#check-{check_type}",
            "properties": {
                "tags": ["security", "supply-chain", "github-actions"],
            },
        })
    return rules


def _region(i: Issue) -> dict[str, int]:
    """Region covering exactly the `uses:` value."""
    region = {"startLine": i.line_number or 1}
    if i.column is not None:
        # SARIF columns are 1-based; endColumn is exclusive
        region["startColumn"] = i.column + 1
        region["endColumn"] = i.column + 1 + len(i.original)
    return region


def _build_result(i: Issue) -> dict[str, Any]:
    """Build a single SARIF result object from an Issue."""
    artifact = {"uri": i.file_path, "uriBaseId": "%SRCROOT%"}
    result: dict[str, Any] = {
        "ruleId": i.check_type,
        "level": _SARIF_LEVEL.get(i.check_type, "warning"),
        "message": {"text": i.message},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": artifact,
                    "region": _region(i),
                },
                "logicalLocations": [
                    {"name": i.job_name, "kind": "job"},
                    {"name": i.step_name or str(i.step_index), "kind": "step"},
                ],
            }
        ],
    }
    if i.can_remediate and i.remediation:
        result["fixes"] = [
            {
                "description": {"text": f"Replace with {i.remediation}"},
                "artifactChanges": [
                    {
                        "artifactLocation": artifact,
                        "replacements": [
                            {
                                "deletedRegion": _region(i),
                                "insertedContent": {"text": i.remediation},
                            }
                        ],
                    }
                ],
            }
        ]
    return result


def report_sarif(issues: list[Issue]) -> str:
    """
    Format issues as a SARIF 2.1.0 JSON string.

    The output can be uploaded to GitHub Code Scanning via:
      gh code-scanning upload-results --sarif results.sarif
    """
    sarif: dict[str, Any] = {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": __version__,
                        "informationUri": TOOL_URI,
                        "rules": _build_rules(issues),
                    }
                },
                "results": [_build_result(i) for i in issues],
            }
        ],
    }

    output = json.dumps(sarif, indent=2)
    logger.info("SARIF report: %d issue(s), %d bytes", len(issues), len(output))
    return output
