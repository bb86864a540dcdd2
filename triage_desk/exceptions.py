"""
Triage Desk Exceptions

Failure taxonomy for the triage pipeline:
- TransientExternalFailure: network/timeout/rate limit, retry later
- MalformedResponseError: generator returned unparseable or schema-invalid output
- InvalidTransitionError: draft workflow rejected an illegal state change
- StorageUnavailableError: durable storage could not be reached
"""
from typing import Optional


class TriageError(Exception):
    """Base exception for all triage pipeline errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class TransientExternalFailure(TriageError):
    """External call failed in a way that may succeed later."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ServiceUnavailableError(TransientExternalFailure):
    """External service unreachable, timed out or returned a server error."""


class RateLimitedError(TransientExternalFailure):
    """External service rejected the call because of rate limiting."""


class MalformedResponseError(TriageError):
    """Classifier/generator output could not be parsed or failed validation."""

    def __init__(
        self,
        message: str,
        raw_response: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.raw_response = raw_response
        super().__init__(message, details)


class InvalidTransitionError(TriageError):
    """Draft workflow rejected a state change. State is unchanged."""

    def __init__(
        self,
        draft_id: str,
        current_status: str,
        target_status: str,
        reason: Optional[str] = None
    ):
        self.draft_id = draft_id
        self.current_status = current_status
        self.target_status = target_status
        message = f"Draft {draft_id}: cannot transition {current_status} -> {target_status}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class StorageUnavailableError(TriageError):
    """Durable storage failed. Always logged and swallowed by the sync layer."""


class ResourceNotFoundError(TriageError):
    """A requested entity does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id is not None:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class DraftNotFoundError(ResourceNotFoundError):
    def __init__(self, draft_id: str):
        super().__init__("Draft", draft_id)


class TicketNotFoundError(ResourceNotFoundError):
    def __init__(self, ticket_id: int):
        super().__init__("Ticket", str(ticket_id))


class BatchInProgressError(TriageError):
    """A batch is already running against the ticket set."""
