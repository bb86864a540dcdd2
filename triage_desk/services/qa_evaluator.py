"""
QA Evaluator - scores a draft against support-quality criteria

The result is informational: it is stored on the draft for the reviewer and
never changes the draft's review status.
"""
from pydantic import ValidationError

from triage_desk.exceptions import MalformedResponseError
from triage_desk.models.schemas import QAResult, Ticket
from triage_desk.services.llm_service import TextGenerationService
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import sanitize_input

logger = get_logger(__name__)

QA_CRITERIA = (
    "sop_compliance",
    "no_hallucination",
    "proper_tone",
    "clear_next_steps",
    "completeness",
    "no_sensitive_data",
)


def build_qa_prompt(draft_text: str, ticket: Ticket) -> str:
    criteria_schema = ",\n".join(
        f'    "{name}": {{ "pass": true/false, "notes": "brief note" }}' for name in QA_CRITERIA
    )
    return f"""You are a QA evaluator for customer support ticket responses. Evaluate this draft response against the criteria below.

EVALUATION CRITERIA:
1. SOP_COMPLIANCE: Does the response follow standard support procedure?
2. NO_HALLUCINATION: Does it only promise things within realistic support capabilities? Does it avoid made-up features or timelines?
3. PROPER_TONE: Is it professional, empathetic, and not defensive?
4. CLEAR_NEXT_STEPS: Does it include specific, actionable steps for the customer?
5. COMPLETENESS: Does it address all parts of the customer's issue?
6. NO_SENSITIVE_DATA: Does it avoid exposing internal systems, credentials, or internal-only information?

TICKET:
Subject: {sanitize_input(ticket.subject, 1024)}
Description: {sanitize_input(ticket.body_text, 2000) or 'N/A'}

DRAFT RESPONSE TO EVALUATE:
{sanitize_input(draft_text, 6000)}

Return ONLY valid JSON (no markdown, no backticks):
{{
  "overall": "PASS" or "FAIL",
  "score": 0-100,
  "criteria": {{
{criteria_schema}
  }},
  "fixes": ["list of specific fixes if FAIL"]
}}"""


class QAEvaluator:
    """LLM-backed draft quality check"""

    def __init__(self, text_service: TextGenerationService):
        self.text_service = text_service

    async def evaluate(self, draft_text: str, ticket: Ticket) -> QAResult:
        """
        Evaluate a draft

        Raises:
            MalformedResponseError: Evaluator output missing or schema-invalid
            TransientExternalFailure: Provider unavailable / rate limited
        """
        payload = await self.text_service.classify(build_qa_prompt(draft_text, ticket))

        try:
            result = QAResult.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(
                f"QA output failed validation for ticket {ticket.id}",
                details={"errors": e.errors(include_url=False)}
            ) from e

        logger.info(f"QA for ticket {ticket.id}: {result.overall.value} ({result.score})")
        return result
