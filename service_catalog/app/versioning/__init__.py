"""
API version negotiation and semantic-version ordering helpers.
"""

from .negotiator import FeatureFlags, VersionContext, negotiate
from .ordering import greatest_version

__all__ = [
    "FeatureFlags",
    "VersionContext",
    "negotiate",
    "greatest_version",
]
