from .workflow_parser import (
    parse_workflow,
    parse_workflow_text,
    parse_workflows_dir,
    find_workflow_files,
)
from .references import parse_reference

__all__ = [
    "parse_workflow",
    "parse_workflow_text",
    "parse_workflows_dir",
    "find_workflow_files",
    "parse_reference",
]
