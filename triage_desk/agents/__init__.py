"""
Agent registry and routing
"""
from .registry import AgentRegistry, DEFAULT_AGENTS, GENERALIST_ID, can_handle
from .router import AgentRouter, RouteDecision, RoutingRule, RuleTier, DEFAULT_RULES

__all__ = [
    "AgentRegistry",
    "DEFAULT_AGENTS",
    "GENERALIST_ID",
    "can_handle",
    "AgentRouter",
    "RouteDecision",
    "RoutingRule",
    "RuleTier",
    "DEFAULT_RULES",
]
