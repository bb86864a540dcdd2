"""
Agent Router - keyword rule table

Maps a task description (or a classified ticket) to the best-fit specialist.
Rules are grouped into tiers; domain-exclusive vendor/platform terms win over
category terms, which win over generic role terms. Within a tier the table
order decides. If no specialist matches, or the matching specialist cannot
handle the task type, the generalist takes the task.
"""
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from triage_desk.agents.registry import AgentRegistry, can_handle
from triage_desk.models.schemas import Agent, AnalysisResult, EscalationType, Ticket
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)


class RuleTier(IntEnum):
    """Lower value = higher precedence"""
    DOMAIN = 1
    CATEGORY = 2
    ROLE = 3


@dataclass(frozen=True)
class RoutingRule:
    """
    One row of the routing table.

    A rule matches when any of `keywords` occurs in the description and, if
    `requires` is non-empty, any of `requires` occurs as well.
    """
    name: str
    tier: RuleTier
    agent_id: str
    task_type: str
    keywords: Tuple[str, ...]
    requires: Tuple[str, ...] = field(default_factory=tuple)


TRADING_TERMS = ("trade", "trading", "drawdown", "challenge", "funded")

DEFAULT_RULES: List[RoutingRule] = [
    RoutingRule(
        name="highlevel_twilio",
        tier=RuleTier.DOMAIN,
        agent_id="highlevel-specialist",
        task_type="twilio",
        keywords=(
            "highlevel", "gohighlevel", "ghl", "twilio", "lc phone",
            "a2p", "10dlc", "suspension", "carrier",
        ),
    ),
    RoutingRule(
        name="trading_risk",
        tier=RuleTier.CATEGORY,
        agent_id="drawdown-defender",
        task_type="risk",
        keywords=("risk", "drawdown"),
        requires=TRADING_TERMS,
    ),
    RoutingRule(
        name="trading_kyc",
        tier=RuleTier.CATEGORY,
        agent_id="policy-pal",
        task_type="kyc",
        keywords=("kyc", "verify"),
        requires=TRADING_TERMS,
    ),
    RoutingRule(
        name="trading_payout",
        tier=RuleTier.CATEGORY,
        agent_id="payout-pilot",
        task_type="payout",
        keywords=("payout", "payment"),
        requires=TRADING_TERMS,
    ),
    RoutingRule(
        name="trading_performance",
        tier=RuleTier.CATEGORY,
        agent_id="trade-tracker",
        task_type="performance",
        keywords=("performance", "analytics"),
        requires=TRADING_TERMS,
    ),
    RoutingRule(
        name="trading_support",
        tier=RuleTier.CATEGORY,
        agent_id="helpbot",
        task_type="trader support",
        keywords=TRADING_TERMS,
    ),
    RoutingRule(
        name="development",
        tier=RuleTier.ROLE,
        agent_id="code-architect",
        task_type="development",
        keywords=("code", "develop", "bug", "feature"),
    ),
    RoutingRule(
        name="content",
        tier=RuleTier.ROLE,
        agent_id="content-creator",
        task_type="content",
        keywords=("content", "blog", "copy", "write"),
    ),
]

# Description hints for routing a classified ticket
ESCALATION_HINTS = {
    EscalationType.DEV: "development",
    EscalationType.BUG: "bug",
    EscalationType.TWILIO: "twilio",
    EscalationType.FEATURE: "feature",
    EscalationType.BILLING: "billing",
    EscalationType.SUPPORT: "",
}


@dataclass(frozen=True)
class RouteDecision:
    """Routing outcome with the rule that produced it"""
    agent: Agent
    rule: Optional[str] = None
    matched_keyword: Optional[str] = None


def _contains(text: str, keyword: str) -> bool:
    # Keywords match at a word start so "ghl" does not fire on "highlight"
    return re.search(r"\b" + re.escape(keyword), text) is not None


def _first_match(text: str, keywords: Sequence[str]) -> Optional[str]:
    for keyword in keywords:
        if _contains(text, keyword):
            return keyword
    return None


class AgentRouter:
    """Ordered rule-table router with generalist fallback"""

    def __init__(
        self,
        registry: Optional[AgentRegistry] = None,
        rules: Optional[Sequence[RoutingRule]] = None
    ):
        self.registry = registry or AgentRegistry()
        # Stable sort keeps table order within a tier
        self.rules: List[RoutingRule] = sorted(
            rules if rules is not None else DEFAULT_RULES,
            key=lambda r: r.tier
        )

    def match(self, task_description: str) -> RouteDecision:
        """
        Resolve a description to a routing decision

        Args:
            task_description: Free-text task or ticket description

        Returns:
            RouteDecision (rule is None when the generalist was chosen)
        """
        text = (task_description or "").lower()

        for rule in self.rules:
            keyword = _first_match(text, rule.keywords)
            if keyword is None:
                continue
            if rule.requires and _first_match(text, rule.requires) is None:
                continue

            agent = self.registry.get(rule.agent_id)
            if agent is None:
                logger.warning(f"Rule {rule.name} targets unknown agent {rule.agent_id}, skipping")
                continue
            if not can_handle(agent, rule.task_type):
                logger.warning(
                    f"Rule {rule.name} matched but {agent.id} cannot handle '{rule.task_type}', skipping"
                )
                continue

            logger.debug(f"Routed to {agent.id} via rule {rule.name} (keyword='{keyword}')")
            return RouteDecision(agent=agent, rule=rule.name, matched_keyword=keyword)

        logger.debug("No specialist matched, routing to generalist")
        return RouteDecision(agent=self.registry.generalist)

    def route(self, task_description: str) -> Agent:
        """Best-fit agent for a task description"""
        return self.match(task_description).agent

    def route_ticket(self, ticket: Ticket, analysis: Optional[AnalysisResult] = None) -> Agent:
        """Best-fit agent for a classified (or unclassified) ticket"""
        hint = ESCALATION_HINTS.get(analysis.escalation_type, "") if analysis else ""
        description = f"{hint} {ticket.subject}".strip()
        agent = self.route(description)
        logger.info(f"Ticket {ticket.id} routed to {agent.id}")
        return agent
