"""Tests for restore consent policies."""

from __future__ import annotations

import pytest

from skscp.consent import (
    AlwaysAccept,
    AlwaysReject,
    ConsentPolicy,
    PromptConsent,
    as_policy,
    policy_by_name,
)
from skscp.models import FileEntry, SoulManifest


@pytest.fixture
def manifest() -> SoulManifest:
    files = [FileEntry(path="SOUL.md", digest="a" * 64, size=3)]
    return SoulManifest.for_files(files, agent="lumina", source="studio")


class TestPolicies:
    """Tests for the built-in policies."""

    def test_accept(self, manifest: SoulManifest) -> None:
        assert AlwaysAccept().allow(manifest) is True

    def test_reject(self, manifest: SoulManifest) -> None:
        assert AlwaysReject().allow(manifest) is False

    def test_builtins_satisfy_protocol(self) -> None:
        for policy in (AlwaysAccept(), AlwaysReject(), PromptConsent()):
            assert isinstance(policy, ConsentPolicy)

    def test_prompt_yes(self, manifest: SoulManifest, monkeypatch) -> None:
        monkeypatch.setattr("click.confirm", lambda *a, **kw: True)
        assert PromptConsent().allow(manifest) is True

    def test_prompt_no(self, manifest: SoulManifest, monkeypatch) -> None:
        monkeypatch.setattr("click.confirm", lambda *a, **kw: False)
        assert PromptConsent().allow(manifest) is False

    def test_prompt_default_passed(self, manifest: SoulManifest, monkeypatch) -> None:
        seen = {}

        def fake_confirm(text, default=False):
            seen["default"] = default
            return default

        monkeypatch.setattr("click.confirm", fake_confirm)
        assert PromptConsent(default=True).allow(manifest) is True
        assert seen["default"] is True


class TestAsPolicy:
    """Tests for policy normalization."""

    def test_none(self) -> None:
        assert as_policy(None) is None

    def test_instance_passthrough(self) -> None:
        policy = AlwaysReject()
        assert as_policy(policy) is policy

    def test_callable_wrapped(self, manifest: SoulManifest) -> None:
        policy = as_policy(lambda m: m.agent == "lumina")
        assert policy.allow(manifest) is True

    def test_truthy_results_coerced(self, manifest: SoulManifest) -> None:
        assert as_policy(lambda m: 0).allow(manifest) is False
        assert as_policy(lambda m: "yes").allow(manifest) is True

    def test_not_a_policy(self) -> None:
        with pytest.raises(TypeError):
            as_policy(42)


class TestPolicyByName:
    """Tests for named policy lookup (used by `skscp serve --consent`)."""

    @pytest.mark.parametrize("name,cls", [
        ("accept", AlwaysAccept),
        ("reject", AlwaysReject),
        ("prompt", PromptConsent),
    ])
    def test_known(self, name: str, cls) -> None:
        assert isinstance(policy_by_name(name), cls)

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown consent policy"):
            policy_by_name("maybe")
