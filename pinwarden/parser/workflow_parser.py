"""
Parser for GitHub Actions workflow files.

Reads workflow YAML and normalizes it into jobs and steps, recording the
source line of every `uses:` value. Line numbers are only valid for the exact
text that was parsed: any edit to the document means it must be parsed again
before line numbers can be trusted.
"""

import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Optional

import yaml

from pinwarden.errors import ParseError

logger = logging.getLogger(__name__)


class _LineLoader(yaml.SafeLoader):
    """PyYAML loader that stores line numbers on every mapping node.

    `__line__` is the line the mapping starts on; `__value_marks__` maps each
    scalar key to the (line, column) its value starts at.
    """


def _construct_mapping(loader: _LineLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping: dict[Any, Any] = loader.construct_mapping(node, deep=True)
    mapping["__line__"] = node.start_mark.line + 1  # YAML lines are 0-indexed
    value_marks = {}
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode):
            mark = value_node.start_mark
            column = mark.column
            if isinstance(value_node, yaml.ScalarNode) and value_node.style in ('"', "'"):
                column += 1  # skip the opening quote
            value_marks[key_node.value] = (mark.line + 1, column)
    mapping["__value_marks__"] = value_marks
    return mapping


_LineLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)

_META_KEYS = ("__line__", "__value_marks__")


@dataclass
class Step:
    """A single step within a job."""
    index: int
    name: Optional[str]
    uses: Optional[str]          # raw `uses:` value, stripped
    uses_line: Optional[int]     # 1-based line of the `uses:` value
    uses_column: Optional[int]   # 0-based column of the `uses:` value
    run: Optional[str]
    with_args: dict[str, Any]
    raw: dict[str, Any]
    line_number: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.name or self.uses or f"step {self.index}"


@dataclass
class Job:
    """A single job within a workflow."""
    job_id: str
    name: Optional[str]
    steps: list[Step]
    raw: dict[str, Any]
    line_number: Optional[int] = None


@dataclass
class Workflow:
    """A parsed GitHub Actions workflow."""
    file_path: str
    name: Optional[str]
    jobs: list[Job]
    raw: dict[str, Any]
    line_number: Optional[int] = None

    def iter_steps(self):
        """Yield (job, step) pairs in document order."""
        for job in self.jobs:
            for step in job.steps:
                yield job, step


def _parse_step(index: int, step_raw: dict[str, Any]) -> Step:
    """Parse a raw step dictionary into a Step dataclass."""
    uses = step_raw.get("uses")
    uses_line = uses_column = None
    if isinstance(uses, str):
        uses = uses.strip()
        uses_line, uses_column = step_raw.get("__value_marks__", {}).get("uses", (None, None))
    else:
        uses = None
    return Step(
        index=index,
        name=step_raw.get("name"),
        uses=uses or None,
        uses_line=uses_line,
        uses_column=uses_column,
        run=step_raw.get("run"),
        with_args=step_raw.get("with") or {},
        raw=step_raw,
        line_number=step_raw.get("__line__"),
    )


def _parse_job(job_id: str, job_raw: Any) -> Job:
    """Parse a raw job dictionary into a Job dataclass."""
    if not isinstance(job_raw, dict):
        raise ParseError(f"Job '{job_id}' is not a mapping")
    steps_raw = job_raw.get("steps") or []
    if not isinstance(steps_raw, list):
        raise ParseError(f"Steps of job '{job_id}' are not a list")
    logger.debug("Parsing job '%s' with %d step(s)", job_id, len(steps_raw))
    return Job(
        job_id=str(job_id),
        name=job_raw.get("name"),
        steps=[
            _parse_step(index, step)
            for index, step in enumerate(steps_raw)
            if isinstance(step, dict)
        ],
        raw=job_raw,
        line_number=job_raw.get("__line__"),
    )


def parse_workflow_text(content: str, file_path: str = "<string>") -> Workflow:
    """
    Parse workflow YAML from a string.

    Args:
        content: The full workflow document.
        file_path: Label used in messages and findings.

    Returns:
        A Workflow whose steps carry line numbers into `content`.

    Raises:
        ParseError: If the text is not valid YAML or not a workflow mapping.
    """
    try:
        raw = yaml.load(content, Loader=_LineLoader)  # noqa: S506  # _LineLoader is safe
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {file_path}: {e}") from e

    if not isinstance(raw, dict):
        logger.error("File is not a valid YAML mapping: %s", file_path)
        raise ParseError(f"Workflow file is not a valid YAML mapping: {file_path}")

    jobs_raw = raw.get("jobs") or {}
    if not isinstance(jobs_raw, dict):
        raise ParseError(f"'jobs' is not a mapping in {file_path}")
    jobs = [
        _parse_job(job_id, job_data)
        for job_id, job_data in jobs_raw.items()
        if job_id not in _META_KEYS
    ]
    logger.debug(
        "Parsed '%s': %d job(s), %d step(s)",
        raw.get("name", "(unnamed)"), len(jobs), sum(len(j.steps) for j in jobs),
    )

    return Workflow(
        file_path=file_path,
        name=raw.get("name"),
        jobs=jobs,
        raw=raw,
        line_number=raw.get("__line__"),
    )


def parse_workflow(file_path: str) -> Workflow:
    """
    Parse a single GitHub Actions workflow YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ParseError: If the file isn't a valid workflow.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Workflow file not found: {file_path}")

    logger.info("Parsing workflow: %s", file_path)
    with open(path, "r", newline="") as f:
        content = f.read()
    return parse_workflow_text(content, file_path=str(path))


def find_workflow_files(dir_path: str) -> list[str]:
    """Return the sorted .yml/.yaml files directly inside a directory, skipping dotfiles."""
    path = Path(dir_path)
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {dir_path}")

    yaml_files = sorted(
        str(f) for f in path.iterdir()
        if f.suffix in (".yml", ".yaml") and not f.name.startswith(".")
    )
    logger.debug("Found %d YAML file(s) in %s", len(yaml_files), dir_path)
    return yaml_files


def parse_workflows_dir(dir_path: str) -> list[Workflow]:
    """
    Parse all workflow files in a directory, skipping invalid ones.

    Args:
        dir_path: Path to a directory containing .yml/.yaml files
                  (typically .github/workflows/).
    """
    workflows = []
    for file in find_workflow_files(dir_path):
        try:
            workflows.append(parse_workflow(file))
        except ParseError as e:
            logger.warning("Skipping invalid workflow %s: %s", Path(file).name, e)

    logger.info("Parsed %d workflow(s) from %s", len(workflows), dir_path)
    return workflows
