"""
Semantic-version ordering of catalog entities.

Every "newest wins" decision in the gateway (package by name, tenant default
package, legacy current-image selection) goes through
:func:`greatest_version` so the paths cannot drift apart.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

import semantic_version


def version_key(entity: Dict[str, Any]) -> Tuple[int, Optional[semantic_version.Version]]:
    """Sort key for an entity's ``version``.

    Entities whose version is not valid semver sort below every valid one.
    A leading ``v`` or ``=`` is accepted, as in ``v1.2.0``.
    """
    try:
        return (1, semantic_version.Version(str(entity.get("version")).strip().lstrip("=v")))
    except ValueError:
        return (0, None)


def compare_versions(a: Dict[str, Any], b: Dict[str, Any]) -> int:
    """-1, 0 or 1 as ``a``'s version is lower, equal or greater than ``b``'s."""
    key_a, key_b = version_key(a), version_key(b)
    if key_a == key_b:
        return 0
    if key_a[0] != key_b[0]:
        return -1 if key_a[0] < key_b[0] else 1
    return -1 if key_a[1] < key_b[1] else 1


def greatest_version(entities: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Entity with the greatest semantic version, or ``None`` when empty.

    Ties keep the earliest candidate. Names plus versions are expected to be
    unique per tenant in the backend, so a tie means duplicate records.
    """
    best: Optional[Dict[str, Any]] = None
    for entity in entities:
        if best is None or compare_versions(entity, best) > 0:
            best = entity
    return best
