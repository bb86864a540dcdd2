"""Unit tests for ClassifierAdapter"""
import pytest
from pydantic import ValidationError

from triage_desk.exceptions import MalformedResponseError, RateLimitedError
from triage_desk.models.schemas import ClassifierPayload, EscalationType
from triage_desk.services.classifier import ClassifierAdapter

from conftest import make_ticket


class TestClassifierPayload:
    def test_accepts_upper_case_keys(self):
        payload = ClassifierPayload.model_validate({
            "ESCALATION_TYPE": "twilio",
            "URGENCY_SCORE": 7,
            "SUMMARY": "Campaign suspended",
            "ACTION_ITEMS": "Check A2P registration",
        })

        assert payload.escalation_type == EscalationType.TWILIO
        assert payload.action_items == ["Check A2P registration"]

    def test_rejects_out_of_range_urgency(self):
        with pytest.raises(ValidationError):
            ClassifierPayload.model_validate({
                "escalation_type": "BUG", "urgency_score": 11, "summary": "x"
            })


class TestClassify:
    @pytest.mark.asyncio
    async def test_valid_output_single_call(self, text_service):
        text_service.escalations["invoice"] = "BILLING"
        classifier = ClassifierAdapter(text_service)

        result = await classifier.classify(make_ticket(5, subject="Wrong invoice amount"))

        assert result.ticket_id == 5
        assert result.escalation_type == EscalationType.BILLING
        assert result.urgency_score == 5
        assert len(text_service.classification_prompts) == 1

    @pytest.mark.asyncio
    async def test_malformed_twice_raises_after_exactly_two_calls(self, text_service):
        text_service.malformed_markers.add("garbled")
        classifier = ClassifierAdapter(text_service)

        with pytest.raises(MalformedResponseError):
            await classifier.classify(make_ticket(6, subject="garbled request"))

        assert len(text_service.classification_prompts) == 2
        assert "could not be parsed" in text_service.classification_prompts[1]

    @pytest.mark.asyncio
    async def test_retry_with_strict_prompt_recovers(self, text_service):
        classifier = ClassifierAdapter(text_service)
        responses = [
            {"escalation_type": "NOT_A_TYPE", "urgency_score": 3, "summary": "x"},
            {"escalation_type": "DEV", "urgency_score": 3, "summary": "API returns 500"},
        ]

        async def scripted(prompt):
            text_service.classification_prompts.append(prompt)
            return responses.pop(0)

        text_service.classify = scripted

        result = await classifier.classify(make_ticket(8))

        assert result.escalation_type == EscalationType.DEV
        assert len(text_service.classification_prompts) == 2

    @pytest.mark.asyncio
    async def test_transient_failure_is_not_retried(self, text_service):
        text_service.classify_error = RateLimitedError("gemini", "quota exceeded")
        classifier = ClassifierAdapter(text_service)

        with pytest.raises(RateLimitedError):
            await classifier.classify(make_ticket(9))

        assert len(text_service.classification_prompts) == 1
