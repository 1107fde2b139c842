"""
Check engine: the check registry and the per-check detection driver.

A check is registered under its name with two capabilities: inspecting one
step (returning at most one Issue) and remediating the document text for one
of its issues. The scanner looks checks up by name and never branches on
which check it is running.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from pinwarden.classifier import DEFAULT_BRANCH_NAMES, DEFAULT_PIN_LENGTH, ReferenceClassifier
from pinwarden.errors import ScanCancelled
from pinwarden.forks import ForkResolver
from pinwarden.github.client import HostingProvider
from pinwarden.issue import Issue
from pinwarden.parser.workflow_parser import Job, Step, Workflow
from pinwarden.remediation import apply_issue

logger = logging.getLogger(__name__)

# Fixed run order. Unfork rewrites owner/repo, so it has to run before the
# checks that judge stability or staleness of the (possibly new) reference.
CHECK_ORDER = (
    "unfork-action",
    "unstable-docker-tag",
    "unstable-github-ref",
    "outdated-action",
)


@dataclass
class CheckContext:
    """Collaborators shared by every check in one scan."""
    client: HostingProvider
    classifier: ReferenceClassifier
    forks: ForkResolver
    max_workers: int = 1
    cancel_event: Optional[threading.Event] = None

    @classmethod
    def build(
        cls,
        client: HostingProvider,
        cache,
        pin_length: int = DEFAULT_PIN_LENGTH,
        default_branch_names: Sequence[str] = DEFAULT_BRANCH_NAMES,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> "CheckContext":
        """Wire one client and one cache into the classifier and fork resolver."""
        return cls(
            client=client,
            classifier=ReferenceClassifier(
                client, cache,
                pin_length=pin_length,
                default_branch_names=default_branch_names,
            ),
            forks=ForkResolver(client),
            max_workers=max_workers,
            cancel_event=cancel_event,
        )

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ScanCancelled("scan cancelled")


# Type aliases for the two capabilities of a check
StepInspector = Callable[[Workflow, Job, Step, CheckContext], Optional[Issue]]
Remediator = Callable[[str, Issue], str]


@dataclass(frozen=True)
class Check:
    name: str
    priority: int
    inspect_step: StepInspector
    remediate: Remediator


# Registry of all checks, keyed by name
_checks: dict[str, Check] = {}


def register_check(name: str, remediate: Remediator = apply_issue):
    """Decorator to register a step inspector as the check `name`."""
    def decorator(func: StepInspector) -> StepInspector:
        priority = CHECK_ORDER.index(name) if name in CHECK_ORDER else len(CHECK_ORDER)
        _checks[name] = Check(name=name, priority=priority, inspect_step=func, remediate=remediate)
        logger.debug("Registered check: %s (priority %d)", name, priority)
        return func
    return decorator


def get_check(name: str) -> Check:
    try:
        return _checks[name]
    except KeyError:
        raise ValueError(
            f"Unknown check '{name}'. Available checks: {', '.join(available_checks())}"
        ) from None


def available_checks() -> list[str]:
    """Names of all registered checks in run order."""
    return sort_by_priority(_checks)


def sort_by_priority(names: Iterable[str]) -> list[str]:
    return sorted(set(names), key=lambda name: get_check(name).priority)


def run_check(check: Check, workflow: Workflow, context: CheckContext) -> list[Issue]:
    """Inspect every step with a `uses:` value and return issues in document order."""
    targets = [(job, step) for job, step in workflow.iter_steps() if step.uses]
    logger.info(
        "Running check '%s' on %d reference(s) in %s",
        check.name, len(targets), workflow.file_path,
    )
    t0 = time.monotonic()

    def inspect(target: tuple[Job, Step]) -> Optional[Issue]:
        context.check_cancelled()
        job, step = target
        issue = check.inspect_step(workflow, job, step, context)
        if issue is not None and not issue.file_path:
            issue.file_path = workflow.file_path
        return issue

    if context.max_workers > 1 and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=context.max_workers) as pool:
            results = list(pool.map(inspect, targets))
    else:
        results = [inspect(target) for target in targets]

    issues = [issue for issue in results if issue is not None]
    elapsed_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Check '%s': %d issue(s) in %.1fms", check.name, len(issues), elapsed_ms,
    )
    return issues
