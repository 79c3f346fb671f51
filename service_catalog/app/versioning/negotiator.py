"""
Protocol version negotiation.

Clients declare the API version they speak as an npm-style semver range in
``Accept-Version`` (or the older ``X-Api-Version``); ``*`` when absent. The
range is evaluated once per request into a :class:`VersionContext`, which
carries every version-dependent decision the rest of the pipeline needs:
which fields a translated entity exposes, whether the request is on the
legacy 6.5 track, and which bleeding-edge features apply to the caller.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import semantic_version

from shared.errors import InvalidVersionError


ANY_VERSION = "*"
LEGACY_TRACK = semantic_version.Version("6.5.0")

# Deprecated image endpoints live under /:account/datasets
DEPRECATED_ENDPOINT_RE = re.compile(r"^/[^/]+/datasets")


@dataclass(frozen=True)
class FeatureFlags:
    """Bleeding-edge feature toggles and the login whitelist guarding them."""

    features: Mapping[str, bool] = field(default_factory=dict)
    login_whitelist: Mapping[str, bool] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config) -> "FeatureFlags":
        return cls(
            features=dict(config.bleeding_edge_features),
            login_whitelist=dict(config.bleeding_edge_login_whitelist),
        )

    def is_configured(self, feature: str) -> bool:
        return bool(self.features.get(feature))

    def is_whitelisted(self, login: Optional[str]) -> bool:
        if self.login_whitelist.get("*"):
            return True
        return bool(login and self.login_whitelist.get(login))

    def enabled_for(self, feature: str, login: Optional[str]) -> bool:
        """True when ``feature`` is on and ``login`` may use it."""
        return self.is_configured(feature) and self.is_whitelisted(login)


@dataclass(frozen=True)
class VersionRange:
    """A declared version range checked against the versions this server knows."""

    raw: str
    spec: semantic_version.NpmSpec
    known_versions: Tuple[semantic_version.Version, ...]

    @property
    def is_any(self) -> bool:
        return self.raw == ANY_VERSION

    def satisfies(self, version: str) -> bool:
        """``semver.satisfies(version, range)``."""
        return semantic_version.Version(version) in self.spec

    def negotiate(self) -> semantic_version.Version:
        """Greatest known version admitted by the range."""
        admitted = [v for v in self.known_versions if v in self.spec]
        if not admitted:
            raise InvalidVersionError(
                f"{self.raw} is not supported by this API",
                details={"supported": [str(v) for v in self.known_versions]},
            )
        return max(admitted)


def parse_version_range(raw: Optional[str], known_versions: Iterable[str]) -> VersionRange:
    """Parse a client-declared range; blank means ``*``."""
    value = (raw or "").strip() or ANY_VERSION
    try:
        spec = semantic_version.NpmSpec(value)
    except ValueError as exc:
        raise InvalidVersionError(f"{value} is not a valid version range") from exc

    known = tuple(sorted({semantic_version.Version(v) for v in known_versions}, reverse=True))
    return VersionRange(raw=value, spec=spec, known_versions=known)


@dataclass(frozen=True)
class RequestTraits:
    """Per-request facts the field table predicates look at."""

    version: VersionRange
    legacy: bool
    deprecated_endpoint: bool
    login: Optional[str]
    flags: FeatureFlags


@dataclass(frozen=True)
class FieldRule:
    """Fields exposed whenever ``applies`` holds for the request."""

    name: str
    applies: Callable[[RequestTraits], bool]
    fields: Tuple[str, ...]


def _always(traits: RequestTraits) -> bool:
    return True


def _modern(traits: RequestTraits) -> bool:
    return not traits.legacy


def _explicit_legacy(traits: RequestTraits) -> bool:
    # `*` never gets the 6.5-only fields, even though it admits 6.5.0
    return not traits.version.is_any and traits.version.satisfies(str(LEGACY_TRACK))


def _images_7_0(traits: RequestTraits) -> bool:
    return not traits.deprecated_endpoint and traits.version.satisfies("7.0.0")


def _images_7_1(traits: RequestTraits) -> bool:
    if traits.deprecated_endpoint:
        return False
    return traits.version.satisfies("7.1.0") or traits.flags.enabled_for("img_mgmt", traits.login)


PACKAGE_FIELD_RULES: Tuple[FieldRule, ...] = (
    FieldRule("base", _always, ("name", "memory", "disk", "swap", "vcpus", "default")),
    FieldRule("modern", _modern, ("id", "version", "description", "group")),
)

IMAGE_FIELD_RULES: Tuple[FieldRule, ...] = (
    FieldRule("base", _always, ("id", "name", "version", "os", "requirements", "type", "description", "tags")),
    FieldRule("deprecated-urn", lambda t: t.deprecated_endpoint, ("urn",)),
    FieldRule("legacy-6.5", _explicit_legacy, ("default", "created")),
    FieldRule("7.0", _images_7_0, ("homepage", "published_at")),
    FieldRule(
        "7.1",
        _images_7_1,
        ("owner", "homepage", "published_at", "public", "state", "eula", "acl", "origin", "error"),
    ),
)


def evaluate_fields(rules: Sequence[FieldRule], traits: RequestTraits) -> Tuple[str, ...]:
    """Ordered, de-duplicated field list for the rules that apply."""
    selected: Dict[str, None] = {}
    for rule in rules:
        if rule.applies(traits):
            for name in rule.fields:
                selected.setdefault(name, None)
    return tuple(selected)


@dataclass(frozen=True)
class VersionContext:
    """Every version- and feature-dependent decision for one request."""

    requested: str
    negotiated: str
    legacy: bool
    deprecated_endpoint: bool
    login: Optional[str]
    package_fields: Tuple[str, ...]
    image_fields: Tuple[str, ...]
    image_endpoints: bool

    def shows(self, entity_type: str, field_name: str) -> bool:
        fields = self.package_fields if entity_type == "package" else self.image_fields
        return field_name in fields


def negotiate(
    requested: Optional[str],
    *,
    known_versions: Iterable[str],
    flags: Optional[FeatureFlags] = None,
    login: Optional[str] = None,
    path: str = "",
) -> VersionContext:
    """Evaluate a declared version range into a :class:`VersionContext`."""
    flags = flags or FeatureFlags()
    version = parse_version_range(requested, known_versions)
    negotiated = version.negotiate()
    legacy = (negotiated.major, negotiated.minor) == (LEGACY_TRACK.major, LEGACY_TRACK.minor)

    traits = RequestTraits(
        version=version,
        legacy=legacy,
        deprecated_endpoint=bool(DEPRECATED_ENDPOINT_RE.match(path)),
        login=login,
        flags=flags,
    )

    return VersionContext(
        requested=version.raw,
        negotiated=str(negotiated),
        legacy=legacy,
        deprecated_endpoint=traits.deprecated_endpoint,
        login=login,
        package_fields=evaluate_fields(PACKAGE_FIELD_RULES, traits),
        image_fields=evaluate_fields(IMAGE_FIELD_RULES, traits),
        image_endpoints=negotiated >= semantic_version.Version("7.0.0"),
    )