"""
capurl Authorization Module

Path classification for the signed-URL gateway:
- Public tier: served directly
- Generate tier: issues signed URLs
- Protected tier: requires a valid signed URL
"""

from .policy import (
    AccessPolicy,
    PolicyRule,
    PathClassifier,
    DEFAULT_RULES,
    GENERATE_PREFIX,
    classify,
    strip_generate_prefix,
)

__all__ = [
    "AccessPolicy",
    "PolicyRule",
    "PathClassifier",
    "DEFAULT_RULES",
    "GENERATE_PREFIX",
    "classify",
    "strip_generate_prefix",
]
