"""
Check: Detect actions referenced through a fork of their canonical repository.

The reference is re-pointed at the upstream repository only when the commit
it runs today is part of upstream's history. Behaviour that only exists in
the fork is never silently dropped.
"""

import logging
from typing import Optional

from pinwarden.checks.engine import register_check, CheckContext
from pinwarden.errors import NotFoundError, UnsupportedRefForm
from pinwarden.issue import Issue
from pinwarden.parser.references import DOCKER_PREFIX, ActionReference, parse_reference
from pinwarden.parser.workflow_parser import Job, Step, Workflow

logger = logging.getLogger(__name__)

CHECK_NAME = "unfork-action"


@register_check(CHECK_NAME)
def check_unfork_action(
    workflow: Workflow, job: Job, step: Step, context: CheckContext,
) -> Optional[Issue]:
    if step.uses.startswith(DOCKER_PREFIX):
        return None

    try:
        ref = parse_reference(step.uses)
    except UnsupportedRefForm:
        return None
    if not isinstance(ref, ActionReference):
        return None

    upstream = context.forks.resolve_upstream(ref.owner, ref.repo)
    if not upstream.is_fork:
        return None

    try:
        commit = context.classifier.resolve_commit(ref)
    except NotFoundError:
        commit = None
    if commit is None:
        logger.debug("%s does not resolve to a commit; leaving fork reference", step.uses)
        return None

    if not context.forks.is_commit_in_upstream(upstream.owner, upstream.repo, commit):
        logger.info(
            "%s: commit %s is not in %s/%s; not unforking",
            step.uses, commit[:12], upstream.owner, upstream.repo,
        )
        return None

    short = context.classifier.short_sha(commit)
    remediation = ref.with_repository(upstream.owner, upstream.repo).with_version(short).format()
    return Issue(
        check_type=CHECK_NAME,
        job_name=job.job_id,
        step_index=step.index,
        line_number=step.uses_line,
        column=step.uses_column,
        message=(
            f"The job named '{job.job_id}' in the '{workflow.name or workflow.file_path}' "
            f"workflow uses '{step.uses}' from a fork of {upstream.owner}/{upstream.repo}. "
            f"The same commit is available upstream."
        ),
        original=step.uses,
        remediation=remediation,
        can_remediate=True,
        reason="is-fork",
        step_name=step.display_name,
    )
