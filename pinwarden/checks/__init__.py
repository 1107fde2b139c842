from .engine import (
    CHECK_ORDER,
    Check,
    CheckContext,
    available_checks,
    get_check,
    run_check,
    sort_by_priority,
)

__all__ = [
    "CHECK_ORDER",
    "Check",
    "CheckContext",
    "available_checks",
    "get_check",
    "run_check",
    "sort_by_priority",
]

# Import all check modules so they register themselves via @register_check
from . import unfork_action
from . import unstable_docker_tag
from . import unstable_github_ref
from . import outdated_action
