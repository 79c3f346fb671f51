"""
Unit tests for version negotiation and the field inclusion table.
"""

import dataclasses

import pytest

from shared.errors import InvalidVersionError
from service_catalog.app.versioning import FeatureFlags, negotiate
from service_catalog.app.versioning.negotiator import parse_version_range


KNOWN = ["7.2.0", "7.1.0", "7.0.0", "6.5.0"]


def ctx(requested, path="/alice/images", flags=None, login="alice", known=KNOWN):
    return negotiate(requested, known_versions=known, flags=flags, login=login, path=path)


class TestVersionRange:
    """Test cases for range parsing and evaluation."""

    def test_blank_means_any(self):
        assert parse_version_range(None, KNOWN).is_any
        assert parse_version_range("  ", KNOWN).is_any

    def test_satisfies(self):
        version = parse_version_range("~7.1", KNOWN)
        assert version.satisfies("7.1.0")
        assert not version.satisfies("7.2.0")

    def test_negotiate_picks_greatest_admitted(self):
        assert str(parse_version_range("*", KNOWN).negotiate()) == "7.2.0"
        assert str(parse_version_range("~7.0", KNOWN).negotiate()) == "7.0.0"
        assert str(parse_version_range("<7.0.0", KNOWN).negotiate()) == "6.5.0"

    def test_unsatisfiable_range(self):
        with pytest.raises(InvalidVersionError):
            parse_version_range("~5.0", KNOWN).negotiate()

    def test_malformed_range(self):
        with pytest.raises(InvalidVersionError):
            parse_version_range("not-a-version", KNOWN)


class TestNegotiate:
    """Test cases for negotiate."""

    def test_default_is_any_and_modern(self):
        version = ctx(None)
        assert version.requested == "*"
        assert version.negotiated == "7.2.0"
        assert not version.legacy
        assert version.image_endpoints

    def test_legacy_track(self):
        version = ctx("~6.5", path="/alice/datasets")
        assert version.legacy
        assert version.negotiated == "6.5.0"
        assert not version.image_endpoints

    def test_package_fields_always_present(self):
        for requested in ("~6.5", "~7.0", "*"):
            version = ctx(requested)
            for name in ("name", "memory", "disk", "swap", "vcpus", "default"):
                assert version.shows("package", name)

    def test_legacy_package_fields(self):
        version = ctx("~6.5")
        assert not version.shows("package", "id")
        assert not version.shows("package", "version")
        assert not version.shows("package", "group")

    def test_modern_package_fields(self):
        version = ctx("~7.0")
        for name in ("id", "version", "description", "group"):
            assert version.shows("package", name)

    def test_urn_only_on_deprecated_endpoint(self):
        assert ctx("~7.0", path="/alice/datasets").shows("image", "urn")
        assert ctx("~7.0", path="/alice/datasets/abc").shows("image", "urn")
        assert not ctx("~7.0", path="/alice/images").shows("image", "urn")

    def test_explicit_legacy_range_gets_default_and_created(self):
        version = ctx("~6.5", path="/alice/datasets")
        assert version.shows("image", "default")
        assert version.shows("image", "created")

    def test_any_range_never_gets_legacy_fields(self):
        version = ctx("*", path="/alice/datasets")
        assert not version.shows("image", "default")
        assert not version.shows("image", "created")

    def test_7_0_fields(self):
        version = ctx("~7.0")
        assert version.shows("image", "homepage")
        assert version.shows("image", "published_at")
        assert not version.shows("image", "state")

    def test_7_1_fields(self):
        version = ctx("~7.1")
        for name in ("owner", "public", "state", "eula", "acl", "origin", "error"):
            assert version.shows("image", name)

    def test_no_7_x_fields_on_deprecated_endpoint(self):
        version = ctx("~7.1", path="/alice/datasets")
        assert not version.shows("image", "homepage")
        assert not version.shows("image", "state")

    def test_tags_always(self):
        assert ctx("~6.5", path="/alice/datasets").shows("image", "tags")
        assert ctx("~7.0").shows("image", "tags")

    def test_img_mgmt_whitelisted_login(self):
        flags = FeatureFlags(features={"img_mgmt": True}, login_whitelist={"alice": True})
        assert ctx("~7.0", flags=flags, login="alice").shows("image", "state")
        assert not ctx("~7.0", flags=flags, login="bob").shows("image", "state")

    def test_img_mgmt_wildcard_whitelist(self):
        flags = FeatureFlags(features={"img_mgmt": True}, login_whitelist={"*": True})
        assert ctx("~7.0", flags=flags, login="bob").shows("image", "acl")

    def test_img_mgmt_feature_off(self):
        flags = FeatureFlags(features={"img_mgmt": False}, login_whitelist={"*": True})
        assert not ctx("~7.0", flags=flags).shows("image", "acl")

    def test_context_carries_only_evaluated_decisions(self):
        names = {f.name for f in dataclasses.fields(ctx("*"))}
        assert names == {
            "requested", "negotiated", "legacy", "deprecated_endpoint", "login",
            "package_fields", "image_fields", "image_endpoints",
        }

    def test_deterministic(self):
        assert ctx("~7.1") == ctx("~7.1")


class TestFeatureFlags:
    """Test cases for FeatureFlags."""

    def test_enabled_for(self):
        flags = FeatureFlags(features={"img_mgmt": True}, login_whitelist={"alice": True})
        assert flags.enabled_for("img_mgmt", "alice")
        assert not flags.enabled_for("img_mgmt", "bob")
        assert not flags.enabled_for("img_mgmt", None)
        assert not flags.enabled_for("unconfigured", "alice")
