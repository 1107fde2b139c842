"""Tests for the reference classifier."""

from unittest.mock import MagicMock

import pytest

from pinwarden.classifier import Kind, Reason, ReferenceClassifier
from pinwarden.errors import CacheError, TransientProviderError
from pinwarden.parser import parse_reference

from conftest import sha


@pytest.fixture
def classifier(provider, cache):
    return ReferenceClassifier(provider, cache)


# ---------------------------------------------------------------------------
# Classification ladder
# ---------------------------------------------------------------------------

class TestClassify:
    def test_default_branch(self, classifier, provider):
        result = classifier.classify(parse_reference("org/action@master"))
        assert result.kind is Kind.MUTABLE
        assert result.reason is Reason.IS_DEFAULT_BRANCH
        assert provider.calls == []

    def test_main_is_a_default_branch_name(self, classifier):
        result = classifier.classify(parse_reference("actions/checkout@main"))
        assert result.reason is Reason.IS_DEFAULT_BRANCH

    def test_stable_tag(self, classifier):
        result = classifier.classify(parse_reference("org/action@v1"))
        assert result.is_stable
        assert result.reason is Reason.IS_STABLE_TAG
        assert result.resolved_commit == sha("abc1234")

    def test_moved_tag(self, classifier, cache):
        cache.record_tag_target("org", "action", "v1", sha("def5678"))
        result = classifier.classify(parse_reference("org/action@v1"))
        assert result.kind is Kind.MUTABLE
        assert result.reason is Reason.UNSTABLE_TAG_HISTORY

    def test_tag_target_is_recorded(self, classifier, cache):
        classifier.classify(parse_reference("org/action@v1"))
        assert cache.tag_targets("org", "action", "v1") == [sha("abc1234")]

    def test_annotated_tag_is_peeled(self, classifier, provider):
        result = classifier.classify(parse_reference("actions/checkout@v4"))
        assert result.reason is Reason.IS_STABLE_TAG
        assert result.resolved_commit == sha("b4ffde6")
        assert len(provider.calls_to("get_tag_target_commit")) == 1

    def test_branch(self, classifier):
        result = classifier.classify(parse_reference("org/action@develop"))
        assert result.reason is Reason.IS_BRANCH
        assert result.resolved_commit == sha("dddd111")

    def test_commit(self, classifier):
        result = classifier.classify(parse_reference("org/action@abcdef1"))
        assert result.is_stable
        assert result.reason is Reason.IS_STABLE_COMMIT

    def test_unknown_version(self, classifier):
        result = classifier.classify(parse_reference("org/action@nope"))
        assert result.kind is Kind.MUTABLE
        assert result.reason is Reason.TAG_NOT_FOUND

    def test_unknown_commit_like_version(self, classifier):
        result = classifier.classify(parse_reference("org/action@9999999"))
        assert result.reason is Reason.TAG_NOT_FOUND

    def test_non_hex_version_skips_commit_lookup(self, classifier, provider):
        classifier.classify(parse_reference("org/action@nope"))
        assert provider.calls_to("get_commit") == []

    def test_no_version(self, classifier, provider):
        result = classifier.classify(parse_reference("org/action"))
        assert result.reason is Reason.NO_SPECIFIED_VERSION
        assert provider.calls == []

    def test_local_reference(self, classifier, provider):
        result = classifier.classify(parse_reference("./local-action"))
        assert result.is_stable
        assert result.reason is Reason.IS_LOCAL
        assert provider.calls == []

    def test_custom_default_branch_names(self, provider, cache):
        classifier = ReferenceClassifier(provider, cache, default_branch_names=["trunk"])
        assert classifier.classify(parse_reference("org/action@trunk")).reason is Reason.IS_DEFAULT_BRANCH
        # master is still org/action's actual default branch
        assert classifier.classify(parse_reference("org/action@master")).reason is Reason.IS_DEFAULT_BRANCH
        assert classifier.classify(parse_reference("org/action@develop")).reason is Reason.IS_BRANCH

    def test_actual_default_branch_with_unconventional_name(self, classifier, provider):
        provider.add_repo("acme", "tool", default_branch="develop", head=sha("aaaa111"))
        result = classifier.classify(parse_reference("acme/tool@develop"))
        assert result.kind is Kind.MUTABLE
        assert result.reason is Reason.IS_DEFAULT_BRANCH
        assert result.resolved_commit == sha("aaaa111")

    def test_existing_non_default_branch(self, classifier, provider):
        provider.add_repo("acme", "tool", default_branch="develop", head=sha("aaaa111"))
        provider.add_branch("acme", "tool", "release", sha("bbbb222"))
        assert classifier.classify(parse_reference("acme/tool@release")).reason is Reason.IS_BRANCH


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------

class TestCaching:
    def test_cache_hit_makes_no_provider_calls(self, classifier, provider):
        first = classifier.classify(parse_reference("org/action@v1"))
        calls = len(provider.calls)
        second = classifier.classify(parse_reference("org/action@v1"))
        assert len(provider.calls) == calls
        assert second.reason is first.reason

    def test_default_branch_is_never_cached(self, classifier, cache):
        classifier.classify(parse_reference("org/action@master"))
        assert cache.get("org", "action", "master") is None

    def test_tag_verdict_expires_after_three_days(self, classifier, provider, clock):
        classifier.classify(parse_reference("org/action@v1"))
        clock.advance(3 * 24 * 3600 + 1)
        calls = len(provider.calls_to("get_tag"))
        classifier.classify(parse_reference("org/action@v1"))
        assert len(provider.calls_to("get_tag")) == calls + 1

    def test_branch_verdict_outlives_tag_ttl(self, classifier, provider, clock):
        classifier.classify(parse_reference("org/action@develop"))
        clock.advance(3 * 24 * 3600 + 1)
        calls = len(provider.calls)
        assert classifier.classify(parse_reference("org/action@develop")).reason is Reason.IS_BRANCH
        assert len(provider.calls) == calls

    def test_moved_tag_detected_after_expiry(self, classifier, provider, clock):
        assert classifier.classify(parse_reference("org/action@v1")).is_stable
        provider.add_tag("org", "action", "v1", sha("def5678"))
        clock.advance(3 * 24 * 3600 + 1)
        result = classifier.classify(parse_reference("org/action@v1"))
        assert result.reason is Reason.UNSTABLE_TAG_HISTORY

    def test_cache_failure_is_not_fatal(self, provider):
        broken = MagicMock()
        broken.get.side_effect = CacheError("disk I/O error")
        broken.put.side_effect = CacheError("disk I/O error")
        broken.has_unstable_history.side_effect = CacheError("disk I/O error")
        classifier = ReferenceClassifier(provider, broken)
        assert classifier.classify(parse_reference("org/action@v1")).reason is Reason.IS_STABLE_TAG

    def test_transient_provider_error_propagates(self, cache):
        client = MagicMock()
        client.get_tag.side_effect = TransientProviderError("rate limited", status_code=429)
        classifier = ReferenceClassifier(client, cache)
        with pytest.raises(TransientProviderError):
            classifier.classify(parse_reference("org/action@v1"))
        assert cache.get("org", "action", "v1") is None


# ---------------------------------------------------------------------------
# Pin resolution
# ---------------------------------------------------------------------------

class TestResolvePin:
    def test_default_branch_pins_to_head(self, classifier):
        ref = parse_reference("org/action@master")
        pin = classifier.resolve_pin(ref, classifier.classify(ref))
        assert pin == "org/action@1234567"

    def test_branch_pins_to_branch_head(self, classifier):
        ref = parse_reference("org/action@develop")
        assert classifier.resolve_pin(ref, classifier.classify(ref)) == "org/action@dddd111"

    def test_no_version_pins_to_default_branch_head(self, classifier):
        ref = parse_reference("org/action")
        assert classifier.resolve_pin(ref, classifier.classify(ref)) == "org/action@1234567"

    def test_subpath_is_preserved(self, classifier):
        ref = parse_reference("org/action/sub@develop")
        assert classifier.resolve_pin(ref) == "org/action/sub@dddd111"

    def test_tag_not_found_has_no_pin(self, classifier):
        ref = parse_reference("org/action@nope")
        assert classifier.resolve_pin(ref, classifier.classify(ref)) is None

    def test_cached_verdict_resolves_fresh_head(self, classifier, provider):
        ref = parse_reference("org/action@develop")
        classifier.classify(ref)
        provider.add_branch("org", "action", "develop", sha("eeee222"))
        cached = classifier.classify(ref)
        assert cached.resolved_commit is None
        assert classifier.resolve_pin(ref, cached) == "org/action@eeee222"

    def test_pin_length(self, provider, cache):
        classifier = ReferenceClassifier(provider, cache, pin_length=12)
        ref = parse_reference("org/action@develop")
        assert classifier.resolve_pin(ref) == "org/action@dddd11100000"

    def test_unknown_repository_has_no_pin(self, classifier):
        assert classifier.resolve_pin(parse_reference("ghost/action")) is None


class TestResolveCommit:
    def test_tag(self, classifier):
        assert classifier.resolve_commit(parse_reference("org/action@v1")) == sha("abc1234")

    def test_abbreviated_commit_expands(self, classifier):
        assert classifier.resolve_commit(parse_reference("org/action@abcdef1")) == sha("abcdef1")

    def test_unknown_returns_none(self, classifier):
        assert classifier.resolve_commit(parse_reference("org/action@nope")) is None
