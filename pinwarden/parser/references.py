"""
Parser for `uses:` reference strings.

A step can reference three kinds of things:

  ./path/to/action              local action inside the calling repository
  docker://image[:tag]          container image
  owner/repo[/subpath][@ref]    action hosted in a GitHub repository

Parsing is pure string work; deciding whether the ref is stable needs the
hosting provider and lives in the classifier.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Optional, Union

from pinwarden.errors import UnsupportedRefForm

logger = logging.getLogger(__name__)

DOCKER_PREFIX = "docker://"
DEFAULT_DOCKER_TAG = "latest"

# Abbreviated or full SHA-1 commit id
COMMIT_PATTERN = re.compile(r"^[0-9a-f]{7,40}$")


@dataclass(frozen=True)
class LocalReference:
    """An action stored in the calling repository, e.g. './.github/actions/x'."""
    raw: str


@dataclass(frozen=True)
class ContainerReference:
    """A container image reference, e.g. 'docker://node:18'."""
    raw: str
    image: str   # e.g. "node" or "ghcr.io/org/image"
    tag: str     # "latest" when none was given

    @property
    def is_latest(self) -> bool:
        return self.tag == DEFAULT_DOCKER_TAG


@dataclass(frozen=True)
class ActionReference:
    """A reference to an action hosted in a GitHub repository."""
    raw: str
    owner: str
    repo: str
    path: Optional[str]   # subdirectory inside the repo, e.g. "upload-sarif"
    version: str          # tag, branch, or commit; empty when unpinned

    @property
    def has_version(self) -> bool:
        return bool(self.version)

    @property
    def looks_like_commit(self) -> bool:
        return bool(COMMIT_PATTERN.match(self.version.lower()))

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def with_version(self, version: str) -> "ActionReference":
        """Return a copy pinned to another version, subpath preserved."""
        updated = replace(self, version=version)
        return replace(updated, raw=updated.format())

    def with_repository(self, owner: str, repo: str) -> "ActionReference":
        """Return a copy pointing at another repository, subpath and version preserved."""
        updated = replace(self, owner=owner, repo=repo)
        return replace(updated, raw=updated.format())

    def format(self) -> str:
        location = self.repository
        if self.path:
            location = f"{location}/{self.path}"
        if self.version:
            return f"{location}@{self.version}"
        return location


Reference = Union[LocalReference, ContainerReference, ActionReference]


def _parse_container(raw: str) -> ContainerReference:
    image = raw[len(DOCKER_PREFIX):]
    if not image:
        raise UnsupportedRefForm(raw, "empty image name")

    # Digest references (image@sha256:...) are already immutable
    if "@" in image:
        name, tag = image.split("@", 1)
    else:
        # A ':' before the last '/' belongs to a registry host:port, not a tag
        last_slash = image.rfind("/")
        last_colon = image.rfind(":")
        if last_colon > last_slash:
            name, tag = image[:last_colon], image[last_colon + 1:]
        else:
            name, tag = image, DEFAULT_DOCKER_TAG

    if not name or not tag:
        raise UnsupportedRefForm(raw, "missing image name or tag")

    return ContainerReference(raw=raw, image=name, tag=tag)


def _parse_action(raw: str) -> ActionReference:
    if "@" in raw:
        location, version = raw.rsplit("@", 1)
        if not version:
            raise UnsupportedRefForm(raw, "empty version after '@'")
    else:
        location, version = raw, ""

    parts = location.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise UnsupportedRefForm(raw, "expected owner/repo")

    path = "/".join(parts[2:]) or None
    return ActionReference(
        raw=raw,
        owner=parts[0],
        repo=parts[1],
        path=path,
        version=version,
    )


def parse_reference(raw: str) -> Reference:
    """
    Parse a `uses:` value into its structural parts.

    Args:
        raw: The reference exactly as written in the workflow.

    Returns:
        A LocalReference, ContainerReference, or ActionReference.

    Raises:
        UnsupportedRefForm: If the string matches none of the known shapes.
    """
    value = (raw or "").strip()
    if not value:
        raise UnsupportedRefForm(raw, "empty reference")

    if value.startswith("."):
        return LocalReference(raw=value)

    if value.startswith(DOCKER_PREFIX):
        ref = _parse_container(value)
        logger.debug("Parsed container %s (tag=%s)", ref.image, ref.tag)
        return ref

    ref = _parse_action(value)
    logger.debug(
        "Parsed action %s/%s path=%s version=%s",
        ref.owner, ref.repo, ref.path, ref.version[:12] or "(none)",
    )
    return ref
