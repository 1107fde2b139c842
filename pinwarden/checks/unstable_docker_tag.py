"""
Check: Detect container images referenced by the floating 'latest' tag.

'latest' is re-pointed on every push. There is no safe pin to suggest
without registry history, so these issues are reported but not remediated.
"""

from typing import Optional

from pinwarden.checks.engine import register_check, CheckContext
from pinwarden.classifier import Reason
from pinwarden.errors import UnsupportedRefForm
from pinwarden.issue import Issue
from pinwarden.parser.references import DOCKER_PREFIX, ContainerReference, parse_reference
from pinwarden.parser.workflow_parser import Job, Step, Workflow

CHECK_NAME = "unstable-docker-tag"
IS_LATEST_TAG = "is-latest-tag"


@register_check(CHECK_NAME)
def check_unstable_docker_tag(
    workflow: Workflow, job: Job, step: Step, context: CheckContext,
) -> Optional[Issue]:
    if not step.uses.startswith(DOCKER_PREFIX):
        return None

    workflow_name = workflow.name or workflow.file_path
    try:
        ref = parse_reference(step.uses)
    except UnsupportedRefForm as e:
        return Issue(
            check_type=CHECK_NAME,
            job_name=job.job_id,
            step_index=step.index,
            line_number=step.uses_line,
            column=step.uses_column,
            message=(
                f"The job named '{job.job_id}' in the '{workflow_name}' workflow "
                f"uses an image reference that cannot be verified: {e}"
            ),
            original=step.uses,
            reason=Reason.UNSUPPORTED_FORM.value,
            step_name=step.display_name,
        )

    if not isinstance(ref, ContainerReference) or not ref.is_latest:
        return None

    return Issue(
        check_type=CHECK_NAME,
        job_name=job.job_id,
        step_index=step.index,
        line_number=step.uses_line,
        column=step.uses_column,
        message=(
            f"The job named '{job.job_id}' in the '{workflow_name}' "
            f"workflow is referencing an action that uses the latest tag of the "
            f"'{ref.image}' docker image. The latest tag is likely to change."
        ),
        original=step.uses,
        remediation=None,
        can_remediate=False,
        reason=IS_LATEST_TAG,
        step_name=step.display_name,
    )
