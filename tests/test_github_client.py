"""Tests for the GitHub REST client."""

import base64
import threading
from unittest.mock import MagicMock

import pytest
import requests

from pinwarden.errors import NotFoundError, ProviderError, ScanCancelled, TransientProviderError
from pinwarden.github.client import GitHubClient, parse_blob_url

from conftest import sha


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _response(status=200, body=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = body
    response.text = "" if body is None else str(body)
    return response


def _client(*responses, **kwargs):
    session = requests.Session()
    session.get = MagicMock(side_effect=list(responses))
    sleeps = []
    client = GitHubClient(session=session, sleep=sleeps.append, **kwargs)
    return client, session, sleeps


def _requested_path(session, call=0):
    return session.get.call_args_list[call].args[0].replace("https://api.github.com", "")


REPO = {
    "name": "action",
    "owner": {"login": "fork-owner"},
    "default_branch": "master",
    "fork": True,
    "parent": {"name": "action", "owner": {"login": "org"}},
}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestEndpoints:
    def test_get_repository(self):
        client, session, _ = _client(_response(body=REPO))
        repo = client.get_repository("fork-owner", "action")
        assert repo.is_fork
        assert (repo.parent_owner, repo.parent_repo) == ("org", "action")
        assert repo.default_branch == "master"
        assert _requested_path(session) == "/repos/fork-owner/action"

    def test_get_default_branch(self):
        client, _, _ = _client(_response(body=REPO))
        assert client.get_default_branch("fork-owner", "action") == "master"

    def test_get_branch_head(self):
        client, session, _ = _client(_response(body={"object": {"sha": sha("1234567"), "type": "commit"}}))
        assert client.get_branch_head("org", "action", "master") == sha("1234567")
        assert _requested_path(session) == "/repos/org/action/git/ref/heads/master"

    def test_get_tag_lightweight(self):
        client, _, _ = _client(_response(body={"object": {"sha": sha("abc1234"), "type": "commit"}}))
        tag = client.get_tag("org", "action", "v1")
        assert tag.object_type == "commit"
        assert tag.object_sha == sha("abc1234")

    def test_prefix_match_is_not_an_exact_ref(self):
        client, _, _ = _client(_response(body=[{"ref": "refs/tags/v1.0"}, {"ref": "refs/tags/v1.1"}]))
        with pytest.raises(NotFoundError):
            client.get_tag("org", "action", "v1")

    def test_annotated_tag_is_peeled(self):
        client, session, _ = _client(
            _response(body={"object": {"sha": sha("7a91"), "type": "tag"}}),
            _response(body={"object": {"sha": sha("7a92"), "type": "tag"}}),
            _response(body={"object": {"sha": sha("b4ffde6"), "type": "commit"}}),
        )
        assert client.get_tag_target_commit("actions", "checkout", sha("7a90")) == sha("b4ffde6")
        assert _requested_path(session, 0) == f"/repos/actions/checkout/git/tags/{sha('7a90')}"
        assert _requested_path(session, 1) == f"/repos/actions/checkout/git/tags/{sha('7a91')}"

    def test_get_commit_expands_short_sha(self):
        client, session, _ = _client(_response(body={"sha": sha("abcdef1")}))
        assert client.get_commit("org", "action", "abcdef1") == sha("abcdef1")
        assert _requested_path(session) == "/repos/org/action/commits/abcdef1"

    @pytest.mark.parametrize("status,expected", [
        ("behind", True),
        ("identical", True),
        ("ahead", False),
        ("diverged", False),
    ])
    def test_is_ancestor(self, status, expected):
        client, session, _ = _client(_response(body={"status": status}))
        assert client.is_ancestor("org", "action", "abcdef1", "master") is expected
        assert _requested_path(session) == "/repos/org/action/compare/master...abcdef1"

    def test_get_file_contents(self):
        content = base64.b64encode(b"name: CI\n").decode()
        client, session, _ = _client(_response(body={"encoding": "base64", "content": content}))
        assert client.get_file_contents("org", "repo", ".github/workflows/ci.yml", "main") == "name: CI\n"
        assert session.get.call_args.kwargs["params"] == {"ref": "main"}

    def test_token_header(self):
        client, session, _ = _client(token="secret")
        assert session.headers["Authorization"] == "Bearer secret"


# ---------------------------------------------------------------------------
# Errors and retries
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.parametrize("status", [404, 422])
    def test_not_found(self, status):
        client, _, sleeps = _client(_response(status=status))
        with pytest.raises(NotFoundError):
            client.get_commit("org", "action", "9999999")
        assert sleeps == []

    def test_client_error_is_not_retried(self):
        client, session, _ = _client(_response(status=401, body={"message": "Bad credentials"}))
        with pytest.raises(ProviderError):
            client.get_repository("org", "action")
        assert session.get.call_count == 1

    def test_server_error_retried_with_backoff(self):
        client, session, sleeps = _client(
            _response(status=502),
            _response(status=503),
            _response(body={"sha": sha("abcdef1")}),
        )
        assert client.get_commit("org", "action", "abcdef1") == sha("abcdef1")
        assert sleeps == [1.0, 2.0]
        assert client.request_count == 3

    def test_retry_after_is_honoured(self):
        client, _, sleeps = _client(
            _response(status=429, headers={"Retry-After": "7"}),
            _response(body={"sha": sha("abcdef1")}),
        )
        client.get_commit("org", "action", "abcdef1")
        assert sleeps == [7.0]

    def test_rate_limited_403_is_retried(self):
        client, _, sleeps = _client(
            _response(status=403, headers={"X-RateLimit-Remaining": "0", "Retry-After": "3"}),
            _response(body={"sha": sha("abcdef1")}),
        )
        client.get_commit("org", "action", "abcdef1")
        assert sleeps == [3.0]

    def test_plain_403_is_not_retried(self):
        client, _, sleeps = _client(_response(status=403))
        with pytest.raises(ProviderError):
            client.get_commit("org", "action", "abcdef1")
        assert sleeps == []

    def test_retries_exhausted(self):
        client, session, sleeps = _client(*[_response(status=500)] * 3, max_retries=2)
        with pytest.raises(TransientProviderError) as exc_info:
            client.get_commit("org", "action", "abcdef1")
        assert exc_info.value.status_code == 500
        assert session.get.call_count == 3
        assert len(sleeps) == 2

    def test_connection_error_is_transient(self):
        client, _, _ = _client(
            requests.exceptions.ConnectionError("refused"),
            requests.exceptions.ConnectionError("refused"),
            max_retries=1,
        )
        with pytest.raises(TransientProviderError):
            client.get_commit("org", "action", "abcdef1")

    def test_backoff_is_capped(self):
        client, _, sleeps = _client(
            _response(status=429, headers={"Retry-After": "3600"}),
            _response(body={"sha": sha("abcdef1")}),
            max_backoff=10.0,
        )
        client.get_commit("org", "action", "abcdef1")
        assert sleeps == [10.0]

    def test_cancelled_before_request(self):
        event = threading.Event()
        event.set()
        client, session, _ = _client(cancel_event=event)
        with pytest.raises(ScanCancelled):
            client.get_commit("org", "action", "abcdef1")
        session.get.assert_not_called()


# ---------------------------------------------------------------------------
# parse_blob_url
# ---------------------------------------------------------------------------

class TestParseBlobUrl:
    def test_blob_url(self):
        url = "https://github.com/org/repo/blob/main/.github/workflows/ci.yml"
        assert parse_blob_url(url) == ("org", "repo", "main", ".github/workflows/ci.yml")

    def test_non_github_host(self):
        assert parse_blob_url("https://example.com/org/repo/blob/main/ci.yml") is None

    def test_local_path(self):
        assert parse_blob_url(".github/workflows/ci.yml") is None

    def test_tree_url(self):
        assert parse_blob_url("https://github.com/org/repo/tree/main/.github") is None
