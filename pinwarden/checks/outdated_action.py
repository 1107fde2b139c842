"""
Check: Detect commit pins that have fallen behind the action's default branch.

Only references already pinned to a commit are considered; moving a pin
forward is offered as a rewrite to the current head of the default branch.
"""

import logging
from typing import Optional

from pinwarden.checks.engine import register_check, CheckContext
from pinwarden.classifier import Reason
from pinwarden.errors import NotFoundError, UnsupportedRefForm
from pinwarden.issue import Issue
from pinwarden.parser.references import DOCKER_PREFIX, ActionReference, parse_reference
from pinwarden.parser.workflow_parser import Job, Step, Workflow

logger = logging.getLogger(__name__)

CHECK_NAME = "outdated-action"


@register_check(CHECK_NAME)
def check_outdated_action(
    workflow: Workflow, job: Job, step: Step, context: CheckContext,
) -> Optional[Issue]:
    if step.uses.startswith(DOCKER_PREFIX):
        return None

    try:
        ref = parse_reference(step.uses)
    except UnsupportedRefForm:
        # reported by unstable-github-ref
        return None
    if not isinstance(ref, ActionReference) or not ref.looks_like_commit:
        return None

    classifier = context.classifier
    if classifier.classify(ref).reason is not Reason.IS_STABLE_COMMIT:
        return None

    try:
        branch = context.client.get_default_branch(ref.owner, ref.repo)
        latest = context.client.get_branch_head(ref.owner, ref.repo, branch)
    except NotFoundError:
        logger.debug("No default branch head for %s; skipping", ref.repository)
        return None

    # The pin may be shorter or longer than pin_length; compare against the full head
    if latest.lower().startswith(ref.version.lower()):
        return None

    latest_short = classifier.short_sha(latest)
    remediation = ref.with_version(latest_short).format()
    return Issue(
        check_type=CHECK_NAME,
        job_name=job.job_id,
        step_index=step.index,
        line_number=step.uses_line,
        column=step.uses_column,
        message=(
            f"The job named '{job.job_id}' in the '{workflow.name or workflow.file_path}' "
            f"workflow is referencing an outdated commit from '{step.uses}'. The latest "
            f"commit on '{branch}' is {latest_short}."
        ),
        original=step.uses,
        remediation=remediation,
        can_remediate=True,
        reason="outdated-commit",
        step_name=step.display_name,
    )
