"""
Reference classifier: decides whether a `uses:` reference is immutable.

The decision walks a fixed ladder:

  1. local action                      -> stable
  2. no version                        -> mutable (no specified version)
  3. version is a default branch name  -> mutable, never cached
  4. cached, unexpired verdict         -> returned without provider calls
  5. resolve tag, then branch, then commit against the provider
       tag    -> stable, unless the tag-history log saw another target
       branch -> mutable (is-default-branch if it is the repository default)
       commit -> stable
       none   -> mutable (tag not found)
  6. store the verdict; tag verdicts expire sooner than the rest

Verdicts are cached, remediation targets are not: `resolve_pin` always looks
up the current head so a pin suggested from a cached verdict is fresh.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, Sequence, Union

from pinwarden.errors import CacheError, NotFoundError
from pinwarden.github.client import HostingProvider
from pinwarden.parser.references import ActionReference, LocalReference

logger = logging.getLogger(__name__)

TAG_TTL = timedelta(days=3)
DEFAULT_TTL = timedelta(days=30)
DEFAULT_PIN_LENGTH = 7
DEFAULT_BRANCH_NAMES = ("master", "main")


class Kind(Enum):
    STABLE = "stable"
    MUTABLE = "mutable"


class Reason(Enum):
    NO_SPECIFIED_VERSION = "no-specified-version"
    IS_DEFAULT_BRANCH = "is-default-branch"
    IS_BRANCH = "is-branch"
    UNSTABLE_TAG_HISTORY = "unstable-tag-history"
    TAG_NOT_FOUND = "tag-not-found"
    UNSUPPORTED_FORM = "unsupported-form"
    IS_STABLE_COMMIT = "is-stable-commit"
    IS_STABLE_TAG = "is-stable-tag"
    IS_LOCAL = "is-local"


# Mutable verdicts that have no commit to pin to
UNPINNABLE_REASONS = (Reason.TAG_NOT_FOUND, Reason.UNSUPPORTED_FORM)


@dataclass(frozen=True)
class Classification:
    """Verdict for one (owner, repo, version); replaced, never edited."""
    kind: Kind
    reason: Reason
    resolved_commit: Optional[str] = None

    @property
    def is_stable(self) -> bool:
        return self.kind is Kind.STABLE

    @classmethod
    def stable(cls, reason: Reason, resolved_commit: Optional[str] = None) -> "Classification":
        return cls(Kind.STABLE, reason, resolved_commit)

    @classmethod
    def mutable(cls, reason: Reason, resolved_commit: Optional[str] = None) -> "Classification":
        return cls(Kind.MUTABLE, reason, resolved_commit)


@dataclass(frozen=True)
class ResolvedRef:
    """What a version token turned out to be on the provider."""
    tag_commit: Optional[str] = None
    branch_commit: Optional[str] = None
    commit: Optional[str] = None

    @property
    def is_tag(self) -> bool:
        return self.tag_commit is not None

    @property
    def is_branch(self) -> bool:
        return self.branch_commit is not None

    @property
    def is_commit(self) -> bool:
        return self.commit is not None

    @property
    def sha(self) -> Optional[str]:
        return self.tag_commit or self.branch_commit or self.commit


class ReferenceClassifier:
    """Classifies action references using a shared provider client and cache."""

    def __init__(
        self,
        client: HostingProvider,
        cache,
        pin_length: int = DEFAULT_PIN_LENGTH,
        default_branch_names: Sequence[str] = DEFAULT_BRANCH_NAMES,
    ):
        self.client = client
        self.cache = cache
        self.pin_length = pin_length
        self.default_branch_names = tuple(default_branch_names)

    def short_sha(self, sha: str) -> str:
        return sha[:self.pin_length]

    # ------------------------------------------------------------------
    # Provider resolution
    # ------------------------------------------------------------------

    def ref_type(self, ref: ActionReference) -> ResolvedRef:
        """Resolve the version token as a tag, then a branch, then a commit."""
        owner, repo, version = ref.owner, ref.repo, ref.version

        try:
            tag = self.client.get_tag(owner, repo, version)
        except NotFoundError:
            pass
        else:
            if tag.object_type == "tag":
                target = self.client.get_tag_target_commit(owner, repo, tag.object_sha)
            else:
                target = tag.object_sha
            logger.debug("%s@%s is a tag -> %s", ref.repository, version, target[:12])
            return ResolvedRef(tag_commit=target)

        try:
            head = self.client.get_branch_head(owner, repo, version)
        except NotFoundError:
            pass
        else:
            logger.debug("%s@%s is a branch -> %s", ref.repository, version, head[:12])
            return ResolvedRef(branch_commit=head)

        if ref.looks_like_commit:
            try:
                sha = self.client.get_commit(owner, repo, version)
            except NotFoundError:
                pass
            else:
                logger.debug("%s@%s is a commit", ref.repository, version)
                return ResolvedRef(commit=sha)

        logger.debug("%s@%s did not resolve", ref.repository, version)
        return ResolvedRef()

    def _is_default_branch(self, ref: ActionReference) -> bool:
        """True if the version is the repository's actual default branch."""
        try:
            return self.client.get_default_branch(ref.owner, ref.repo) == ref.version
        except NotFoundError:
            return False

    def resolve_commit(self, ref: ActionReference) -> Optional[str]:
        """Full SHA the reference currently points at, or None."""
        if not ref.has_version:
            branch = self.client.get_default_branch(ref.owner, ref.repo)
            return self.client.get_branch_head(ref.owner, ref.repo, branch)
        return self.ref_type(ref).sha

    def resolve_pin(
        self,
        ref: ActionReference,
        classification: Optional[Classification] = None,
    ) -> Optional[str]:
        """
        Build the immutable form of a reference: owner/repo[/path]@<sha>.

        Returns None when the reference has nothing to pin to.
        """
        if classification is not None and classification.reason in UNPINNABLE_REASONS:
            return None
        sha = classification.resolved_commit if classification else None
        if sha is None:
            try:
                sha = self.resolve_commit(ref)
            except NotFoundError:
                sha = None
        if sha is None:
            return None
        return ref.with_version(self.short_sha(sha)).format()

    # ------------------------------------------------------------------
    # Cache access (never fatal)
    # ------------------------------------------------------------------

    def _cached(self, ref: ActionReference) -> Optional[Classification]:
        try:
            return self.cache.get(ref.owner, ref.repo, ref.version)
        except CacheError as e:
            logger.warning("Cache read failed for %s@%s: %s", ref.repository, ref.version, e)
            return None

    def _store(self, ref: ActionReference, classification: Classification, ttl: timedelta) -> None:
        try:
            self.cache.put(ref.owner, ref.repo, ref.version, classification, ttl)
        except CacheError as e:
            # Not fatal, but every later run pays the provider calls again
            logger.warning("Cache write failed for %s@%s: %s", ref.repository, ref.version, e)

    def _tag_moved(self, ref: ActionReference, commit: str) -> bool:
        try:
            moved = self.cache.has_unstable_history(ref.owner, ref.repo, ref.version, commit)
            self.cache.record_tag_target(ref.owner, ref.repo, ref.version, commit)
        except CacheError as e:
            logger.warning("Tag history unavailable for %s@%s: %s", ref.repository, ref.version, e)
            return False
        return moved

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, ref: Union[ActionReference, LocalReference]) -> Classification:
        """
        Classify a reference as stable or mutable.

        Raises:
            TransientProviderError: If the provider stays unavailable.
        """
        if isinstance(ref, LocalReference):
            return Classification.stable(Reason.IS_LOCAL)

        if not ref.has_version:
            return Classification.mutable(Reason.NO_SPECIFIED_VERSION)

        if ref.version in self.default_branch_names:
            return Classification.mutable(Reason.IS_DEFAULT_BRANCH)

        cached = self._cached(ref)
        if cached is not None:
            logger.debug("Cache hit for %s@%s: %s", ref.repository, ref.version, cached.reason.value)
            return cached

        resolved = self.ref_type(ref)
        if resolved.is_tag:
            if self._tag_moved(ref, resolved.tag_commit):
                result = Classification.mutable(Reason.UNSTABLE_TAG_HISTORY, resolved.tag_commit)
            else:
                result = Classification.stable(Reason.IS_STABLE_TAG, resolved.tag_commit)
        elif resolved.is_branch:
            reason = Reason.IS_DEFAULT_BRANCH if self._is_default_branch(ref) else Reason.IS_BRANCH
            result = Classification.mutable(reason, resolved.branch_commit)
        elif resolved.is_commit:
            result = Classification.stable(Reason.IS_STABLE_COMMIT, resolved.commit)
        else:
            result = Classification.mutable(Reason.TAG_NOT_FOUND)

        self._store(ref, result, TAG_TTL if resolved.is_tag else DEFAULT_TTL)
        logger.debug("Classified %s@%s: %s", ref.repository, ref.version, result.reason.value)
        return result
