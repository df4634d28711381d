"""Page route gating."""

from lexaccess.gate.middleware import GateDecision, RouteGate, RouteGateMiddleware
from lexaccess.gate.policy import RouteClass, RoutePolicy, RouteRule, load_route_policy

__all__ = [
    "GateDecision",
    "RouteClass",
    "RouteGate",
    "RouteGateMiddleware",
    "RoutePolicy",
    "RouteRule",
    "load_route_policy",
]
