"""
Agent registry - static handler configuration loaded at startup

Only the commander is a generalist. Every other agent is strictly specialized
and declares the restrictions reviewers see next to a routing decision.
"""
from typing import Dict, Iterable, List, Optional

from triage_desk.models.schemas import Agent

GENERALIST_ID = "commander"

DEFAULT_AGENTS: List[Agent] = [
    Agent(
        id=GENERALIST_ID,
        name="Command Center Generalist",
        is_generalist=True,
        capabilities=frozenset({
            "Task delegation to specialized agents",
            "General knowledge & problem solving",
            "Business operations oversight",
            "Research & analysis",
        }),
        restrictions=[],
    ),
    Agent(
        id="highlevel-specialist",
        name="HighLevel & Twilio/A2P Specialist",
        capabilities=frozenset({
            "GoHighLevel setup & configuration",
            "LC Phone & LC Email troubleshooting",
            "Twilio/A2P 10DLC compliance",
            "Carrier suspension handling & RCA forms",
            "Campaign suspension remediation",
            "Workflow automation design",
            "SMS/Email campaign management",
        }),
        restrictions=[
            "ONLY handles GoHighLevel, Twilio, LC Phone, and A2P related issues",
            "Cannot handle trading, finance, or non-GHL technical issues",
            "Cannot promise timelines or resolutions",
        ],
    ),
    Agent(
        id="drawdown-defender",
        name="Drawdown Defender",
        capabilities=frozenset({
            "Real-time risk monitoring",
            "Drawdown alerts",
            "Violation detection",
        }),
        restrictions=["ONLY handles trading risk monitoring"],
    ),
    Agent(
        id="policy-pal",
        name="PolicyPal",
        capabilities=frozenset({
            "KYC processing",
            "Document verification",
            "Identity verification",
        }),
        restrictions=["ONLY handles trader KYC and compliance"],
    ),
    Agent(
        id="payout-pilot",
        name="PayoutPilot",
        capabilities=frozenset({
            "Payout processing",
            "Payment verification",
            "Transaction tracking",
        }),
        restrictions=["ONLY handles trader payouts and payments", "Cannot handle GHL billing"],
    ),
    Agent(
        id="trade-tracker",
        name="TradeTracker",
        capabilities=frozenset({
            "Performance tracking",
            "Trade analysis",
            "P&L reporting",
        }),
        restrictions=["ONLY handles trading analytics"],
    ),
    Agent(
        id="helpbot",
        name="Trading Helpbot",
        capabilities=frozenset({
            "Trader support",
            "Challenge questions",
            "Account inquiries",
        }),
        restrictions=["ONLY handles trader support"],
    ),
    Agent(
        id="code-architect",
        name="Code Architect",
        capabilities=frozenset({
            "Code review",
            "Bug fixing",
            "Feature development",
        }),
        restrictions=["ONLY handles software development", "Cannot handle business ops, GHL, or trading"],
    ),
    Agent(
        id="content-creator",
        name="Content Creator",
        capabilities=frozenset({
            "Copywriting",
            "Blog posts",
            "Social media content",
        }),
        restrictions=["ONLY handles content creation"],
    ),
]


class AgentRegistry:
    """Read-only lookup over the configured agents"""

    def __init__(self, agents: Optional[Iterable[Agent]] = None):
        agents = list(agents if agents is not None else DEFAULT_AGENTS)
        self._agents: Dict[str, Agent] = {agent.id: agent for agent in agents}

        generalists = [a for a in agents if a.is_generalist]
        if len(generalists) != 1:
            raise ValueError(f"Exactly one generalist agent required, found {len(generalists)}")
        self._generalist = generalists[0]

    def get(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    @property
    def generalist(self) -> Agent:
        return self._generalist

    def all(self) -> List[Agent]:
        return list(self._agents.values())


def can_handle(agent: Agent, task_type: str) -> bool:
    """
    Capability check for a task type

    Args:
        agent: Candidate agent
        task_type: Task label (e.g. "twilio", "bug fixing")

    Returns:
        True for the generalist, or when any capability and the task type
        contain one another (case-insensitive)
    """
    if agent.is_generalist:
        return True

    task_lower = task_type.lower()
    return any(
        task_lower in cap.lower() or cap.lower() in task_lower
        for cap in agent.capabilities
    )
