"""
Console reporter: prints issues to the terminal with colors and formatting.
"""

from pinwarden.checks import CHECK_ORDER
from pinwarden.issue import Issue


# ANSI color codes for terminal output
COLORS = {
    "unfork-action":       "\033[35m",  # magenta
    "unstable-docker-tag": "\033[33m",  # yellow
    "unstable-github-ref": "\033[31m",  # red
    "outdated-action":     "\033[36m",  # cyan
}
BOLD = "\033[1m"
GREEN = "\033[32m"
DIM = "\033[2m"
RESET = "\033[0m"


def _check_badge(check_type: str) -> str:
    color = COLORS.get(check_type, "")
    return f"{color}{BOLD}[{check_type}]{RESET}"


def report_console(issues: list[Issue], file_path: str = "") -> str:
    """
    Format issues as a colored console report.

    Args:
        issues: List of Issue objects to report.
        file_path: Optional label for the report header.

    Returns:
        The formatted report string (also prints it).
    """
    lines = []

    # Header
    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  Workflow Reference Pinning Report{RESET}")
    if file_path:
        lines.append(f"  File: {file_path}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not issues:
        lines.append("  No recommendations found!")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    # Summary counts
    counts: dict[str, int] = {}
    for issue in issues:
        counts[issue.check_type] = counts.get(issue.check_type, 0) + 1
    fixable = sum(1 for issue in issues if issue.can_remediate)

    lines.append(f"  Found {BOLD}{len(issues)}{RESET} recommendation(s), {fixable} fixable:")
    for check_type in CHECK_ORDER:
        if check_type in counts:
            lines.append(f"    {_check_badge(check_type)} × {counts[check_type]}")
    lines.append("")
    lines.append(f"  {'-' * 56}")

    # Individual issues
    for i, issue in enumerate(issues, 1):
        lines.append("")
        lines.append(f"  {_check_badge(issue.check_type)} #{i}: {BOLD}{issue.original}{RESET}")
        if issue.file_path:
            location = issue.file_path
            if issue.line_number:
                location = f"{location}:{issue.line_number}"
            lines.append(f"    File:  {location}")
        lines.append(f"    Job:   {issue.job_name}")
        if issue.step_name:
            lines.append(f"    Step:  {issue.step_name}")
        lines.append("")
        lines.append(f"    {issue.message}")
        if issue.can_remediate:
            lines.append(f"    {GREEN}Fix:   {issue.original} -> {issue.remediation}{RESET}")
        else:
            lines.append(f"    {DIM}No automatic fix available.{RESET}")

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report
