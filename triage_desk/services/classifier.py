"""
Classifier Adapter

Turns one call to the generative capability into a typed AnalysisResult.

Retry policy:
- Malformed or schema-invalid output is retried exactly once with a stricter
  prompt, then surfaced as MalformedResponseError
- Transient failures (unavailable / rate limited) are surfaced immediately
- A failed classification never produces a default AnalysisResult
"""
from typing import Any, Dict

from pydantic import ValidationError

from triage_desk.exceptions import MalformedResponseError
from triage_desk.models.schemas import AnalysisResult, ClassifierPayload, Ticket
from triage_desk.services.llm_service import TextGenerationService
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import sanitize_input

logger = get_logger(__name__)

ESCALATION_CHOICES = "DEV, TWILIO, BILLING, FEATURE, BUG, SUPPORT"


def build_classification_prompt(ticket: Ticket) -> str:
    """Standard classification prompt"""
    return f"""You are a support ticket analyzer. Analyze this support ticket and provide:
1. ESCALATION_TYPE: One of [{ESCALATION_CHOICES}]
2. URGENCY_SCORE: 0-10 (10 being most urgent)
3. SUMMARY: One sentence summary of the issue
4. ACTION_ITEMS: List of specific actions to resolve this

Ticket Subject: {sanitize_input(ticket.subject, 1024)}
Ticket Description: {sanitize_input(ticket.body_text, 4000) or 'No description'}
Priority: {ticket.priority.value}
Status: {ticket.status.value}

Respond in JSON format only. No markdown, just the raw JSON object."""


def build_strict_classification_prompt(ticket: Ticket) -> str:
    """Stricter prompt used for the single retry after malformed output"""
    return f"""Classify the support ticket below. Your previous answer could not be parsed.

Return EXACTLY one JSON object and nothing else. No markdown fences, no prose.
The object MUST have these keys and value types:
{{
  "escalation_type": one of "DEV" | "TWILIO" | "BILLING" | "FEATURE" | "BUG" | "SUPPORT",
  "urgency_score": integer between 0 and 10,
  "summary": non-empty string (one sentence),
  "action_items": array of strings
}}

Ticket Subject: {sanitize_input(ticket.subject, 1024)}
Ticket Description: {sanitize_input(ticket.body_text, 4000) or 'No description'}
Priority: {ticket.priority.value}"""


class ClassifierAdapter:
    """Typed wrapper around the external classification call"""

    def __init__(self, text_service: TextGenerationService):
        self.text_service = text_service

    @staticmethod
    def _validate(ticket: Ticket, payload: Dict[str, Any]) -> AnalysisResult:
        try:
            parsed = ClassifierPayload.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Classifier output failed validation for ticket {ticket.id}: "
                f"{e.error_count()} error(s)",
                details={"errors": e.errors(include_url=False)}
            ) from e

        return AnalysisResult(
            ticket_id=ticket.id,
            escalation_type=parsed.escalation_type,
            urgency_score=parsed.urgency_score,
            summary=parsed.summary,
            action_items=parsed.action_items,
        )

    async def _attempt(self, ticket: Ticket, prompt: str) -> AnalysisResult:
        payload = await self.text_service.classify(prompt)
        return self._validate(ticket, payload)

    async def classify(self, ticket: Ticket) -> AnalysisResult:
        """
        Classify a ticket

        Args:
            ticket: Ticket to analyze

        Returns:
            AnalysisResult

        Raises:
            MalformedResponseError: Output invalid on both attempts
            ServiceUnavailableError: Provider unreachable / timed out
            RateLimitedError: Provider rate limit hit
        """
        try:
            return await self._attempt(ticket, build_classification_prompt(ticket))
        except MalformedResponseError as e:
            logger.warning(f"Malformed classification for ticket {ticket.id}, retrying with strict schema: {e}")

        try:
            result = await self._attempt(ticket, build_strict_classification_prompt(ticket))
        except MalformedResponseError as e:
            logger.error(f"Classification failed twice for ticket {ticket.id}: {e}")
            raise

        logger.info(f"Ticket {ticket.id} classified on strict retry: {result.escalation_type.value}")
        return result
