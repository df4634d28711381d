"""
Route access policy.

A routing policy table: route pattern → required access class. The table is
data, loaded from YAML, and is consulted once per request independent of any
handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

DEFAULT_POLICY_PATH = Path(__file__).parent / "routes.yaml"


class RouteClass(str, Enum):
    """What a request must carry to reach a route."""

    EXEMPT = "exempt"                                   # Not gated at all
    PUBLIC = "public"
    AUTH_REQUIRED = "auth"
    AUTH_AND_VERIFICATION_REQUIRED = "auth_and_verification"

    @property
    def requires_token(self) -> bool:
        return self in (RouteClass.AUTH_REQUIRED, RouteClass.AUTH_AND_VERIFICATION_REQUIRED)


class MatchKind(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"


def _normalize(path: str) -> str:
    if len(path) > 1:
        return path.rstrip("/") or "/"
    return path or "/"


@dataclass(frozen=True)
class RouteRule:
    """One row of the policy table."""

    pattern: str
    match: MatchKind
    route_class: RouteClass

    def matches(self, path: str) -> bool:
        path = _normalize(path)
        pattern = _normalize(self.pattern)
        if self.match == MatchKind.EXACT:
            return path == pattern
        # Segment-aware: /library matches /library/x but not /libraryx
        if pattern == "/":
            return True
        return path == pattern or path.startswith(pattern + "/")


@dataclass
class RoutePolicy:
    """Ordered rules; first match wins."""

    rules: list[RouteRule] = field(default_factory=list)
    default: RouteClass = RouteClass.PUBLIC

    def classify(self, path: str) -> RouteClass:
        for rule in self.rules:
            if rule.matches(path):
                return rule.route_class
        return self.default

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutePolicy:
        """
        Build a policy from its YAML form.

        Raises ValueError on an unknown match kind or access class.
        """
        rules = [
            RouteRule(
                pattern=entry["pattern"],
                match=MatchKind(entry.get("match", "exact")),
                route_class=RouteClass(entry["access"]),
            )
            for entry in data.get("rules", [])
        ]
        return cls(
            rules=rules,
            default=RouteClass(data.get("default", RouteClass.PUBLIC.value)),
        )


def load_route_policy(path: Path | str | None = None) -> RoutePolicy:
    """Load the policy table from YAML (the bundled table by default)."""
    path = Path(path) if path else DEFAULT_POLICY_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return RoutePolicy.from_dict(data)
