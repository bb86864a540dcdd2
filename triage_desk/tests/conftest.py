"""
pytest configuration and shared fixtures
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from triage_desk.config import Settings
from triage_desk.container import build_container
from triage_desk.models.schemas import Priority, Requester, Ticket, TicketStatus

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

DRAFT_TEXT = (
    "Hi Dana,\n\nThanks for reaching out. We are looking into this now and "
    "will follow up shortly.\n\nBest regards,\nSupport Team"
)

QA_PASS = {
    "overall": "pass",
    "score": 92,
    "criteria": {
        "proper_tone": {"pass": True, "notes": "friendly"},
        "clear_next_steps": {"pass": True, "notes": "ok"},
    },
    "fixes": [],
}


class FakeTextService:
    """
    Scriptable stand-in for the generative capability.

    - `malformed_markers`: prompts containing a marker get schema-invalid output
    - `escalations`: marker -> escalation type for classification prompts
    - `qa_error` / `generate_error`: raised from QA / generation calls
    - `classify_errors`: marker -> exception raised for matching classification prompts
    """

    def __init__(self):
        self.classification_prompts: List[str] = []
        self.qa_prompts: List[str] = []
        self.generate_prompts: List[str] = []
        self.malformed_markers: set = set()
        self.escalations: Dict[str, str] = {}
        self.urgency = 5
        self.qa_payload: Dict[str, Any] = dict(QA_PASS)
        self.qa_error: Optional[Exception] = None
        self.classify_error: Optional[Exception] = None
        self.classify_errors: Dict[str, Exception] = {}
        self.generate_error: Optional[Exception] = None
        self.draft_text = DRAFT_TEXT

    async def classify(self, prompt: str) -> Dict[str, Any]:
        if prompt.startswith("You are a QA evaluator"):
            self.qa_prompts.append(prompt)
            if self.qa_error:
                raise self.qa_error
            return self.qa_payload

        self.classification_prompts.append(prompt)
        if self.classify_error:
            raise self.classify_error
        for marker, error in self.classify_errors.items():
            if marker in prompt:
                raise error
        if any(marker in prompt for marker in self.malformed_markers):
            return {"category": "unknown", "urgency": "very"}

        escalation = "SUPPORT"
        for marker, escalation_type in self.escalations.items():
            if marker in prompt:
                escalation = escalation_type

        return {
            "ESCALATION_TYPE": escalation,
            "URGENCY_SCORE": self.urgency,
            "SUMMARY": "Customer needs help with their account.",
            "ACTION_ITEMS": ["Reply to customer"],
        }

    async def generate(self, prompt: str) -> str:
        self.generate_prompts.append(prompt)
        if self.generate_error:
            raise self.generate_error
        return self.draft_text


def make_ticket(
    ticket_id: int,
    subject: str = "Question about my account",
    body: str = "Please help me with my account settings.",
    status: TicketStatus = TicketStatus.OPEN,
    priority: Priority = Priority.MEDIUM,
    minutes: int = 0
) -> Ticket:
    return Ticket(
        id=ticket_id,
        subject=subject,
        body_text=body,
        requester=Requester(name="Dana", email="dana@example.com"),
        status=status,
        priority=priority,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def settings():
    """Isolated settings: no storage, no helpdesk, no delays"""
    return Settings(
        _env_file=None,
        supabase_url="",
        supabase_key="",
        supabase_service_role_key="",
        freshdesk_domain="",
        freshdesk_api_key="",
        batch_delay_seconds=0,
        schedule_enabled=False,
        qa_enabled=True,
    )


@pytest.fixture
def text_service():
    return FakeTextService()


@pytest.fixture
def container(settings, text_service):
    return build_container(settings, text_service=text_service)


@pytest.fixture
def ticket_factory():
    return make_ticket
