"""
Draft Generator

Builds the response prompt for a classified ticket (escalation-type guidelines,
routed agent, approved casebook precedents) and asks the generative capability
for a plain-text reply ready to paste into the helpdesk.
"""
from typing import Dict, Optional, Sequence

from triage_desk.exceptions import MalformedResponseError
from triage_desk.models.schemas import (
    Agent,
    AnalysisResult,
    EscalationType,
    SimilarMatch,
    Ticket,
)
from triage_desk.services.llm_service import TextGenerationService
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import sanitize_input

logger = get_logger(__name__)


TYPE_GUIDELINES: Dict[EscalationType, str] = {
    EscalationType.TWILIO: """
- Acknowledge the phone/SMS issue with empathy
- Ask for specific error messages, campaign IDs or screenshots
- Offer to review their Twilio / LC Phone / A2P 10DLC registration
- Explain that carrier reviews are outside our control, without promising timelines
- Mention escalation to the technical team if needed""",
    EscalationType.DEV: """
- Acknowledge the technical problem clearly
- Summarize the reproduction details you already have
- Ask for anything still missing (steps, browser, account, screenshots)
- Let them know the engineering team has been looped in""",
    EscalationType.BUG: """
- Thank them for reporting the problem
- Restate the unexpected behavior in your own words
- Offer a workaround if one is known
- Confirm the report has been passed to engineering""",
    EscalationType.BILLING: """
- Acknowledge the billing question professionally
- Never quote amounts or refunds you cannot verify
- Explain which details you need to look into the charge
- Provide clear next steps""",
    EscalationType.FEATURE: """
- Thank them for the suggestion
- Restate the requested capability
- Offer an existing alternative if there is one
- Do not promise delivery dates""",
    EscalationType.SUPPORT: """
- Acknowledge their inquiry with a friendly greeting
- Provide clear, helpful information
- Offer to clarify or assist further""",
}


def _casebook_context(similar: Sequence[SimilarMatch]) -> str:
    if not similar:
        return ""

    lines = [
        "HUMAN-APPROVED CASEBOOK RESPONSES (gold standard, match their tone and approach):"
    ]
    for i, match in enumerate(similar, 1):
        entry = match.entry
        lines.append(
            f"{i}. Issue: \"{entry.subject}\" ({match.match_score} keywords matched)\n"
            f"   Approved Response: {sanitize_input(entry.approved_response_text, 1500)}"
        )
    return "\n".join(lines)


def build_draft_prompt(
    ticket: Ticket,
    analysis: AnalysisResult,
    similar: Sequence[SimilarMatch] = (),
    agent: Optional[Agent] = None
) -> str:
    """Response prompt for one ticket"""
    agent_name = agent.name if agent else "Support Agent"
    customer_name = ticket.requester.name or "there"
    guidelines = TYPE_GUIDELINES.get(analysis.escalation_type, TYPE_GUIDELINES[EscalationType.SUPPORT])
    restrictions = ""
    if agent and agent.restrictions:
        restrictions = "YOUR RESTRICTIONS:\n" + "\n".join(f"- {r}" for r in agent.restrictions)

    return f"""You are {agent_name}, responding to a customer support ticket. Write a professional, helpful response.

CRITICAL FORMATTING RULES:
- Write PLAIN TEXT only, absolutely NO markdown
- NO asterisks, NO hashtags, NO backticks
- Use simple line breaks for paragraphs
- The response must be ready to paste directly into the helpdesk

{restrictions}

CUSTOMER NAME: {customer_name}

TICKET DETAILS:
Subject: {sanitize_input(ticket.subject, 1024)}
Description: {sanitize_input(ticket.body_text, 4000) or 'No description provided'}
Ticket Type: {analysis.escalation_type.value}
Issue Summary: {analysis.summary}

{_casebook_context(similar)}

RESPONSE GUIDELINES FOR {analysis.escalation_type.value} TICKETS:
{guidelines}

RESPONSE STRUCTURE:
1. Greeting with the customer's name (Hi [Name],)
2. Acknowledge their specific issue
3. Provide the solution or next steps
4. Offer further assistance
5. Sign off with: Best regards, {agent_name}"""


class DraftGenerator:
    """Generates candidate replies through the injected text service"""

    def __init__(self, text_service: TextGenerationService):
        self.text_service = text_service

    async def generate(
        self,
        ticket: Ticket,
        analysis: AnalysisResult,
        similar: Sequence[SimilarMatch] = (),
        agent: Optional[Agent] = None
    ) -> str:
        """
        Generate a draft reply

        Args:
            ticket: Ticket to answer
            analysis: Its latest analysis
            similar: Casebook precedents (best first)
            agent: Routed handler (name and restrictions go into the prompt)

        Returns:
            Non-empty plain-text draft

        Raises:
            MalformedResponseError: Generator returned empty text
            TransientExternalFailure: Provider unavailable / rate limited
        """
        prompt = build_draft_prompt(ticket, analysis, similar, agent)
        text = (await self.text_service.generate(prompt) or "").strip()

        if not text:
            raise MalformedResponseError(f"Empty draft generated for ticket {ticket.id}")

        logger.info(
            f"Draft generated for ticket {ticket.id} "
            f"({len(text)} chars, {len(similar)} casebook precedents)"
        )
        return text
