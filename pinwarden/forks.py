"""
Fork resolution for the unfork-action check.

A reference into a fork is only re-pointed at the upstream repository when
the commit it runs is provably part of the upstream's default-branch history.
Anything that only exists in the fork stays as it is.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from pinwarden.errors import NotFoundError
from pinwarden.github.client import HostingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Upstream:
    is_fork: bool
    owner: Optional[str] = None
    repo: Optional[str] = None


NOT_A_FORK = Upstream(is_fork=False)


class ForkResolver:
    """Looks up fork parents and checks commit containment upstream."""

    def __init__(self, client: HostingProvider):
        self.client = client
        self._upstreams: dict[tuple[str, str], Upstream] = {}
        self._lock = threading.Lock()

    def resolve_upstream(self, owner: str, repo: str) -> Upstream:
        """Return the parent repository of owner/repo if it is a fork."""
        key = (owner, repo)
        with self._lock:
            if key in self._upstreams:
                return self._upstreams[key]

        try:
            repository = self.client.get_repository(owner, repo)
        except NotFoundError:
            logger.debug("Repository %s/%s not found; treating as not a fork", owner, repo)
            upstream = NOT_A_FORK
        else:
            if repository.is_fork and repository.parent_owner and repository.parent_repo:
                upstream = Upstream(True, repository.parent_owner, repository.parent_repo)
                logger.debug(
                    "%s/%s is a fork of %s/%s", owner, repo, upstream.owner, upstream.repo,
                )
            else:
                upstream = NOT_A_FORK

        with self._lock:
            self._upstreams[key] = upstream
        return upstream

    def is_commit_in_upstream(self, upstream_owner: str, upstream_repo: str, commit: str) -> bool:
        """True if `commit` is an ancestor of the upstream default branch head."""
        try:
            branch = self.client.get_default_branch(upstream_owner, upstream_repo)
            contained = self.client.is_ancestor(upstream_owner, upstream_repo, commit, branch)
        except NotFoundError:
            contained = False
        logger.debug(
            "Commit %s %s in %s/%s",
            commit[:12], "is" if contained else "is not", upstream_owner, upstream_repo,
        )
        return contained
