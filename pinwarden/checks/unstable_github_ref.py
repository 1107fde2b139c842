"""
Check: Detect action references that can change without the workflow changing.

Branches (including the default branch), unpinned references, and tags that
have been re-pointed are all mutable. Where possible the reference is
rewritten to the commit it resolves to today.
"""

from typing import Optional

from pinwarden.checks.engine import register_check, CheckContext
from pinwarden.classifier import Reason
from pinwarden.errors import UnsupportedRefForm
from pinwarden.issue import Issue
from pinwarden.parser.references import DOCKER_PREFIX, ActionReference, parse_reference
from pinwarden.parser.workflow_parser import Job, Step, Workflow

CHECK_NAME = "unstable-github-ref"


def _message(workflow: Workflow, job: Job, step: Step, reason: Reason, version: str) -> str:
    workflow_name = workflow.name or workflow.file_path
    if reason is Reason.IS_DEFAULT_BRANCH:
        return (
            f"The job named '{job.job_id}' in the '{workflow_name}' workflow is referencing "
            f"an action on the {version} branch of '{step.uses}'. The {version} branch is "
            f"likely to change."
        )
    if reason is Reason.IS_BRANCH:
        return (
            f"The job named '{job.job_id}' in the '{workflow_name}' workflow is using an action "
            f"from '{step.uses}'. This is unstable because '{version}' is a branch, and the "
            f"contents might change."
        )
    if reason is Reason.NO_SPECIFIED_VERSION:
        return (
            f"The job named '{job.job_id}' in the '{workflow_name}' workflow references "
            f"'{step.uses}' without a version, so it runs whatever is on the default branch."
        )
    if reason is Reason.UNSTABLE_TAG_HISTORY:
        return (
            f"The job named '{job.job_id}' in the '{workflow_name}' workflow references tag "
            f"'{version}' of '{step.uses}', which has been moved to a different commit before."
        )
    if reason is Reason.TAG_NOT_FOUND:
        return (
            f"The job named '{job.job_id}' in the '{workflow_name}' workflow references "
            f"'{step.uses}', but '{version}' is not a tag, branch, or commit of that repository."
        )
    return (
        f"The job named '{job.job_id}' in the '{workflow_name}' workflow uses '{step.uses}', "
        f"which is not a reference form that can be verified."
    )


@register_check(CHECK_NAME)
def check_unstable_github_ref(
    workflow: Workflow, job: Job, step: Step, context: CheckContext,
) -> Optional[Issue]:
    if step.uses.startswith(DOCKER_PREFIX):
        return None

    try:
        ref = parse_reference(step.uses)
    except UnsupportedRefForm:
        reason, ref = Reason.UNSUPPORTED_FORM, None
        remediation = None
    else:
        if not isinstance(ref, ActionReference):
            return None
        classification = context.classifier.classify(ref)
        if classification.is_stable:
            return None
        reason = classification.reason
        remediation = context.classifier.resolve_pin(ref, classification)

    return Issue(
        check_type=CHECK_NAME,
        job_name=job.job_id,
        step_index=step.index,
        line_number=step.uses_line,
        column=step.uses_column,
        message=_message(workflow, job, step, reason, ref.version if ref else ""),
        original=step.uses,
        remediation=remediation,
        can_remediate=remediation is not None,
        reason=reason.value,
        step_name=step.display_name,
    )
