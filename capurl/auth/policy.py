"""
capurl Access Policy - path classification

PUBLIC (no token required):
    - /assets/*

GENERATE (issues signed URLs):
    - /generate/*

PROTECTED (requires a valid `verify` token):
    - /uploads/*
    - /invoices/*

Anything else is DENIED.
"""

from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel


class AccessPolicy(str, Enum):
    """Access policy for a request path"""
    PUBLIC = "public"
    GENERATE = "generate"
    PROTECTED = "protected"
    DENIED = "denied"


class PolicyRule(BaseModel):
    """Maps a path prefix to an access policy"""
    prefix: str
    policy: AccessPolicy
    description: str = ""

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefix)


GENERATE_PREFIX = "/generate"

# Checked in order; first match wins
DEFAULT_RULES: List[PolicyRule] = [
    PolicyRule(
        prefix="/assets/",
        policy=AccessPolicy.PUBLIC,
        description="Public assets, served without a token"
    ),
    PolicyRule(
        prefix=GENERATE_PREFIX + "/",
        policy=AccessPolicy.GENERATE,
        description="Issue a signed URL for the remainder of the path"
    ),
    PolicyRule(
        prefix="/uploads/",
        policy=AccessPolicy.PROTECTED,
        description="User uploads (signed URL required)"
    ),
    PolicyRule(
        prefix="/invoices/",
        policy=AccessPolicy.PROTECTED,
        description="Invoices (signed URL required)"
    ),
]


class PathClassifier:
    """
    Classifies request paths into access policies.

    Pure function of the path: query strings are never part of the input
    and nothing is cached between calls.
    """

    def __init__(self, rules: Optional[Sequence[PolicyRule]] = None):
        self.rules = list(DEFAULT_RULES if rules is None else rules)

    def classify(self, path: str) -> AccessPolicy:
        """Return the policy of the first rule matching `path`."""
        rule = self.match(path)
        return rule.policy if rule else AccessPolicy.DENIED

    def match(self, path: str) -> Optional[PolicyRule]:
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None


_default_classifier = PathClassifier()


def classify(path: str) -> AccessPolicy:
    """Classify `path` with the default rules."""
    return _default_classifier.classify(path)


def strip_generate_prefix(path: str) -> str:
    """
    Map a generate request path to the object path it signs.

    `/generate/uploads/a.txt` -> `/uploads/a.txt`
    """
    if not path.startswith(GENERATE_PREFIX + "/"):
        raise ValueError(f"Not a generate path: {path}")
    return path[len(GENERATE_PREFIX):]
