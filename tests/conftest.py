"""Shared fixtures for all tests."""

import os
import pytest

from pinwarden.cache import ClassificationCache
from pinwarden.checks import CheckContext
from pinwarden.errors import NotFoundError
from pinwarden.github.client import Repository, TagRef


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures/.github/workflows")


def sha(prefix: str) -> str:
    """Expand a short hex prefix into a full 40-character SHA."""
    return prefix + "0" * (40 - len(prefix))


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory HostingProvider that records every call it receives."""

    def __init__(self):
        self.repositories: dict[tuple[str, str], Repository] = {}
        self.branches: dict[tuple[str, str], dict[str, str]] = {}
        self.tags: dict[tuple[str, str], dict[str, TagRef]] = {}
        self.tag_objects: dict[tuple[str, str, str], str] = {}
        self.commits: dict[tuple[str, str], list[str]] = {}
        self.files: dict[tuple[str, str, str, str], str] = {}
        self.calls: list[tuple] = []

    # -- setup helpers -------------------------------------------------

    def add_repo(self, owner, repo, default_branch="main", head=None, parent=None):
        parent_owner, parent_repo = parent.split("/") if parent else (None, None)
        self.repositories[(owner, repo)] = Repository(
            owner=owner,
            name=repo,
            default_branch=default_branch,
            is_fork=parent is not None,
            parent_owner=parent_owner,
            parent_repo=parent_repo,
        )
        self.branches.setdefault((owner, repo), {})
        self.tags.setdefault((owner, repo), {})
        self.commits.setdefault((owner, repo), [])
        if head:
            self.add_branch(owner, repo, default_branch, head)

    def add_branch(self, owner, repo, name, commit):
        self.branches.setdefault((owner, repo), {})[name] = commit
        self.add_commit(owner, repo, commit)

    def add_tag(self, owner, repo, name, commit, annotated=False):
        if annotated:
            object_sha = sha("7a9")
            self.tag_objects[(owner, repo, object_sha)] = commit
            tag = TagRef(name=name, object_sha=object_sha, object_type="tag")
        else:
            tag = TagRef(name=name, object_sha=commit, object_type="commit")
        self.tags.setdefault((owner, repo), {})[name] = tag
        self.add_commit(owner, repo, commit)

    def add_commit(self, owner, repo, commit):
        history = self.commits.setdefault((owner, repo), [])
        if commit not in history:
            history.append(commit)

    def calls_to(self, method):
        return [c for c in self.calls if c[0] == method]

    # -- HostingProvider -----------------------------------------------

    def get_repository(self, owner, repo):
        self.calls.append(("get_repository", owner, repo))
        try:
            return self.repositories[(owner, repo)]
        except KeyError:
            raise NotFoundError(f"{owner}/{repo}") from None

    def get_default_branch(self, owner, repo):
        self.calls.append(("get_default_branch", owner, repo))
        try:
            return self.repositories[(owner, repo)].default_branch
        except KeyError:
            raise NotFoundError(f"{owner}/{repo}") from None

    def get_branch_head(self, owner, repo, name):
        self.calls.append(("get_branch_head", owner, repo, name))
        try:
            return self.branches[(owner, repo)][name]
        except KeyError:
            raise NotFoundError(f"{owner}/{repo} heads/{name}") from None

    def get_tag(self, owner, repo, name):
        self.calls.append(("get_tag", owner, repo, name))
        try:
            return self.tags[(owner, repo)][name]
        except KeyError:
            raise NotFoundError(f"{owner}/{repo} tags/{name}") from None

    def get_tag_target_commit(self, owner, repo, tag_object_sha):
        self.calls.append(("get_tag_target_commit", owner, repo, tag_object_sha))
        try:
            return self.tag_objects[(owner, repo, tag_object_sha)]
        except KeyError:
            raise NotFoundError(tag_object_sha) from None

    def get_commit(self, owner, repo, commit):
        self.calls.append(("get_commit", owner, repo, commit))
        for candidate in self.commits.get((owner, repo), []):
            if candidate.startswith(commit.lower()):
                return candidate
        raise NotFoundError(f"{owner}/{repo} commit {commit}")

    def is_ancestor(self, owner, repo, commit, of_ref):
        self.calls.append(("is_ancestor", owner, repo, commit, of_ref))
        if (owner, repo) not in self.repositories:
            raise NotFoundError(f"{owner}/{repo}")
        return any(c.startswith(commit) for c in self.commits.get((owner, repo), []))

    def get_file_contents(self, owner, repo, path, ref):
        self.calls.append(("get_file_contents", owner, repo, path, ref))
        try:
            return self.files[(owner, repo, path, ref)]
        except KeyError:
            raise NotFoundError(path) from None


@pytest.fixture
def provider():
    """A provider pre-populated with a handful of action repositories."""
    p = FakeProvider()
    # org/action: default branch master, a stable tag, a feature branch
    p.add_repo("org", "action", default_branch="master", head=sha("1234567"))
    p.add_tag("org", "action", "v1", sha("abc1234"))
    p.add_branch("org", "action", "develop", sha("dddd111"))
    p.add_commit("org", "action", sha("abcdef1"))
    # fork-owner/action: a fork of org/action with one extra commit
    p.add_repo("fork-owner", "action", default_branch="master", head=sha("f0f0f0f"), parent="org/action")
    p.add_commit("fork-owner", "action", sha("abcdef1"))
    # actions/checkout: annotated tag
    p.add_repo("actions", "checkout", default_branch="main", head=sha("c0ffee1"))
    p.add_tag("actions", "checkout", "v4", sha("b4ffde6"), annotated=True)
    return p


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    c = ClassificationCache(clock=clock)
    yield c
    c.close()


@pytest.fixture
def context(provider, cache):
    return CheckContext.build(provider, cache)


@pytest.fixture
def fixtures_dir():
    """Path to the fixtures workflow directory."""
    return FIXTURES_DIR


@pytest.fixture
def example_workflow_path():
    return os.path.join(FIXTURES_DIR, "unpinned-example.yml")
