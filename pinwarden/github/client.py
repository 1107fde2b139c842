"""
GitHub REST client: the hosting-provider side of reference classification.

One client instance is created per scan and shared by the classifier, the
fork resolver and every check. Each lookup either returns an answer, raises
NotFoundError (a permanent answer that callers turn into classification
input), or raises TransientProviderError once retries are exhausted.

Rate limiting follows GitHub's conventions: a 403/429 with
X-RateLimit-Remaining: 0 waits until X-RateLimit-Reset, and a Retry-After
header always wins. 5xx responses and connection errors back off
exponentially.
"""

import base64
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlparse

import requests

from pinwarden.errors import (
    NotFoundError,
    ProviderError,
    ScanCancelled,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "pinwarden"

# Statuses GitHub uses for "no such object"; 422 comes back for unknown SHAs
_NOT_FOUND_STATUSES = (404, 422)
_MAX_TAG_DEPTH = 5

GITHUB_BLOB_PATH = re.compile(r"^/([^/?=]+)/([^/?=]+)/blob/([^/?=]+)/(.+)$")


@dataclass(frozen=True)
class Repository:
    """Repository metadata needed for classification and fork resolution."""
    owner: str
    name: str
    default_branch: str
    is_fork: bool
    parent_owner: Optional[str] = None
    parent_repo: Optional[str] = None
    archived: bool = False


@dataclass(frozen=True)
class TagRef:
    """A tag ref; object_type is "commit" for lightweight tags, "tag" for annotated ones."""
    name: str
    object_sha: str
    object_type: str


class HostingProvider(Protocol):
    """Capability surface the classifier, fork resolver and checks rely on."""

    def get_repository(self, owner: str, repo: str) -> Repository: ...

    def get_default_branch(self, owner: str, repo: str) -> str: ...

    def get_branch_head(self, owner: str, repo: str, name: str) -> str: ...

    def get_tag(self, owner: str, repo: str, name: str) -> TagRef: ...

    def get_tag_target_commit(self, owner: str, repo: str, tag_object_sha: str) -> str: ...

    def get_commit(self, owner: str, repo: str, sha: str) -> str: ...

    def is_ancestor(self, owner: str, repo: str, commit: str, of_ref: str) -> bool: ...

    def get_file_contents(self, owner: str, repo: str, path: str, ref: str) -> str: ...


class GitHubClient:
    """HTTP implementation of HostingProvider on top of a requests.Session."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        backoff: float = 1.0,
        max_backoff: float = 60.0,
        timeout: float = 30.0,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.max_retries = max_retries
        self.backoff = backoff
        self.max_backoff = max_backoff
        self.timeout = timeout
        self.cancel_event = cancel_event
        self._sleep = sleep
        self.request_count = 0

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ScanCancelled("scan cancelled")

    def _wait(self, delay: float) -> None:
        if self.cancel_event is not None:
            if self.cancel_event.wait(delay):
                raise ScanCancelled("scan cancelled")
            return
        self._sleep(delay)

    def _retry_delay(self, response: Optional[requests.Response], attempt: int) -> float:
        delay = self.backoff * (2 ** attempt)
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            reset = response.headers.get("X-RateLimit-Reset")
            if retry_after and retry_after.isdigit():
                delay = float(retry_after)
            elif response.headers.get("X-RateLimit-Remaining") == "0" and reset and reset.isdigit():
                delay = max(float(reset) - time.time(), 0.0) + 1.0
        return min(delay, self.max_backoff)

    @staticmethod
    def _is_retryable(response: requests.Response) -> bool:
        if response.status_code == 429 or response.status_code >= 500:
            return True
        if response.status_code == 403:
            return (
                response.headers.get("X-RateLimit-Remaining") == "0"
                or "Retry-After" in response.headers
            )
        return False

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET an API path and return the decoded JSON body."""
        url = f"{self.api_url}{path}"
        last_error: Optional[TransientProviderError] = None

        # Not urllib3's Retry on the adapter: its backoff sleeps ignore cancel_event
        for attempt in range(self.max_retries + 1):
            self._check_cancelled()
            response = None
            self.request_count += 1
            t0 = time.monotonic()
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                last_error = TransientProviderError(f"GET {path} failed: {e}")
            else:
                elapsed_ms = (time.monotonic() - t0) * 1000
                logger.debug("GET %s -> %d (%.0fms)", path, response.status_code, elapsed_ms)

                if response.status_code in _NOT_FOUND_STATUSES:
                    raise NotFoundError(f"GET {path}: not found")
                if self._is_retryable(response):
                    last_error = TransientProviderError(
                        f"GET {path} returned {response.status_code}",
                        status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    raise ProviderError(
                        f"GET {path} returned {response.status_code}: {response.text[:200]}"
                    )
                else:
                    return response.json()

            if attempt < self.max_retries:
                delay = self._retry_delay(response, attempt)
                logger.warning(
                    "%s; retrying in %.1fs (attempt %d/%d)",
                    last_error, delay, attempt + 1, self.max_retries,
                )
                self._wait(delay)

        assert last_error is not None
        raise last_error

    # ------------------------------------------------------------------
    # HostingProvider
    # ------------------------------------------------------------------

    def get_repository(self, owner: str, repo: str) -> Repository:
        data = self._get(f"/repos/{owner}/{repo}")
        parent = data.get("parent") or {}
        return Repository(
            owner=(data.get("owner") or {}).get("login", owner),
            name=data.get("name", repo),
            default_branch=data.get("default_branch", ""),
            is_fork=bool(data.get("fork")),
            parent_owner=(parent.get("owner") or {}).get("login"),
            parent_repo=parent.get("name"),
            archived=bool(data.get("archived")),
        )

    def get_default_branch(self, owner: str, repo: str) -> str:
        return self.get_repository(owner, repo).default_branch

    def _get_ref(self, owner: str, repo: str, ref: str) -> dict[str, Any]:
        data = self._get(f"/repos/{owner}/{repo}/git/ref/{ref}")
        # The singular endpoint returns one object; a list means a prefix match only
        if not isinstance(data, dict) or "object" not in data:
            raise NotFoundError(f"{owner}/{repo}: no exact ref {ref}")
        return data

    def get_branch_head(self, owner: str, repo: str, name: str) -> str:
        return self._get_ref(owner, repo, f"heads/{name}")["object"]["sha"]

    def get_tag(self, owner: str, repo: str, name: str) -> TagRef:
        obj = self._get_ref(owner, repo, f"tags/{name}")["object"]
        return TagRef(name=name, object_sha=obj["sha"], object_type=obj.get("type", "commit"))

    def get_tag_target_commit(self, owner: str, repo: str, tag_object_sha: str) -> str:
        sha = tag_object_sha
        for _ in range(_MAX_TAG_DEPTH):
            obj = self._get(f"/repos/{owner}/{repo}/git/tags/{sha}")["object"]
            if obj.get("type") != "tag":
                return obj["sha"]
            sha = obj["sha"]
        raise ProviderError(f"{owner}/{repo}: tag {tag_object_sha} nests too deeply")

    def get_commit(self, owner: str, repo: str, sha: str) -> str:
        return self._get(f"/repos/{owner}/{repo}/commits/{sha}")["sha"]

    def is_ancestor(self, owner: str, repo: str, commit: str, of_ref: str) -> bool:
        data = self._get(f"/repos/{owner}/{repo}/compare/{of_ref}...{commit}")
        return data.get("status") in ("behind", "identical")

    def get_file_contents(self, owner: str, repo: str, path: str, ref: str) -> str:
        data = self._get(f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref})
        if data.get("encoding") != "base64":
            raise ProviderError(f"{owner}/{repo}/{path}: unexpected encoding {data.get('encoding')!r}")
        return base64.b64decode(data.get("content", "")).decode("utf-8")


def parse_blob_url(url: str) -> Optional[tuple[str, str, str, str]]:
    """Split a github.com blob URL into (owner, repo, ref, path), or None."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or parsed.hostname != "github.com":
        return None
    match = GITHUB_BLOB_PATH.match(parsed.path)
    if not match:
        return None
    owner, repo, ref, path = match.groups()
    return owner, repo, ref, path
