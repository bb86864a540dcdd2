"""
Freshdesk API Client

Helpdesk ticket source for the triage pipeline:
- Paged ticket listing (requester + description embedded)
- Retry with exponential backoff on rate limit / server errors
- Normalization of raw Freshdesk rows into Ticket models
"""
import asyncio
import re
from datetime import datetime, timezone as dt_timezone
from html import unescape
from typing import Any, Dict, List, Optional

import httpx
from dateutil import parser as date_parser

from triage_desk.config import Settings, get_settings
from triage_desk.exceptions import (
    MalformedResponseError,
    RateLimitedError,
    ServiceUnavailableError,
)
from triage_desk.models.schemas import (
    Priority,
    Requester,
    Ticket,
    TicketFilter,
    TicketStatus,
)
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

FRESHDESK_STATUS = {
    2: TicketStatus.OPEN,
    3: TicketStatus.PENDING,
    4: TicketStatus.RESOLVED,
    5: TicketStatus.CLOSED,
    6: TicketStatus.WAITING_ON_CUSTOMER,
    7: TicketStatus.ON_HOLD,  # Waiting on Third Party
}

FRESHDESK_PRIORITY = {
    1: Priority.LOW,
    2: Priority.MEDIUM,
    3: Priority.HIGH,
    4: Priority.URGENT,
}

_TAG = re.compile(r"<[^>]+>")


def _html_to_text(html: Optional[str]) -> str:
    if not html:
        return ""
    return " ".join(unescape(_TAG.sub(" ", html)).split())


def _parse_datetime(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(dt_timezone.utc)
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def normalize_ticket(raw: Dict[str, Any]) -> Ticket:
    """
    Convert a raw Freshdesk ticket into a Ticket

    Args:
        raw: Ticket dictionary from the Freshdesk v2 API

    Returns:
        Normalized Ticket

    Raises:
        MalformedResponseError: Row lacks an id or subject
    """
    if not raw.get("id"):
        raise MalformedResponseError("Freshdesk ticket without id", details={"raw": raw})

    requester = raw.get("requester") or {}
    body = raw.get("description_text") or _html_to_text(raw.get("description"))

    return Ticket(
        id=int(raw["id"]),
        subject=(raw.get("subject") or "(no subject)")[:1024],
        body_text=body or "",
        requester=Requester(name=requester.get("name"), email=requester.get("email")),
        status=FRESHDESK_STATUS.get(raw.get("status"), TicketStatus.OPEN),
        priority=FRESHDESK_PRIORITY.get(raw.get("priority"), Priority.MEDIUM),
        created_at=_parse_datetime(raw.get("created_at")),
        tags=set(raw.get("tags") or []),
    )


class FreshdeskClient:
    """
    Freshdesk API integration with retry logic and error handling
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.base_url = f"https://{settings.freshdesk_domain}/api/v2"
        self.api_key = settings.freshdesk_api_key
        self.headers = {
            "Content-Type": "application/json"
        }
        self.timeout = 30.0
        self.max_retries = 3

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make HTTP request with retry logic

        Args:
            method: HTTP method (GET, POST, PUT, etc.)
            endpoint: API endpoint
            **kwargs: Additional arguments for httpx

        Returns:
            Response JSON

        Raises:
            RateLimitedError: 429 after all retries
            ServiceUnavailableError: Network failure or HTTP error
        """
        url = f"{self.base_url}/{endpoint}"

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        auth=(self.api_key, "X"),
                        headers=self.headers,
                        **kwargs
                    )
                    response.raise_for_status()
                    return response.json()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code in RETRYABLE_STATUS and attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt  # Exponential backoff
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}), "
                        f"retrying in {wait_time}s: {e}"
                    )
                    await asyncio.sleep(wait_time)
                    continue

                logger.error(f"Freshdesk request {method} {endpoint} failed: HTTP {status_code}")
                if status_code == 429:
                    raise RateLimitedError("freshdesk", str(e)) from e
                raise ServiceUnavailableError(
                    "freshdesk", f"HTTP {status_code}", details={"endpoint": endpoint}
                ) from e

            except httpx.RequestError as e:
                logger.error(f"Request failed: {e}")
                raise ServiceUnavailableError("freshdesk", str(e)) from e

    async def fetch_tickets(
        self,
        ticket_filter: Optional[TicketFilter] = None,
        per_page: int = 30
    ) -> List[Dict[str, Any]]:
        """
        Fetch tickets with optional filtering and pagination

        Args:
            ticket_filter: updated_since / max_tickets / statuses
            per_page: Number of tickets per page (max 100)

        Returns:
            List of raw ticket dictionaries (may contain duplicates across pages)
        """
        ticket_filter = ticket_filter or TicketFilter()
        max_tickets = ticket_filter.max_tickets
        all_tickets: List[Dict[str, Any]] = []
        page = 1
        per_page = min(per_page, 100)

        while True:
            params = {
                "per_page": per_page,
                "page": page,
                "order_type": "desc",
                "order_by": "updated_at",
                "include": "requester,description",
            }

            if ticket_filter.updated_since:
                params["updated_since"] = ticket_filter.updated_since.isoformat()

            logger.info(f"Fetching tickets (page={page}, per_page={per_page})")
            tickets = await self._make_request("GET", "tickets", params=params)

            if not tickets:
                break

            all_tickets.extend(tickets)
            logger.info(f"Fetched page {page}: {len(tickets)} tickets (total: {len(all_tickets)})")

            if max_tickets and len(all_tickets) >= max_tickets:
                all_tickets = all_tickets[:max_tickets]
                break

            # Less than per_page means last page
            if len(tickets) < per_page:
                break

            page += 1

        if ticket_filter.statuses:
            wanted = set(ticket_filter.statuses)
            all_tickets = [
                t for t in all_tickets
                if FRESHDESK_STATUS.get(t.get("status"), TicketStatus.OPEN) in wanted
            ]

        logger.info(f"Successfully fetched total {len(all_tickets)} tickets")
        return all_tickets

    async def fetch_normalized_tickets(
        self,
        ticket_filter: Optional[TicketFilter] = None
    ) -> List[Ticket]:
        """Fetch and normalize tickets, skipping rows that cannot be normalized"""
        tickets = []
        for raw in await self.fetch_tickets(ticket_filter):
            try:
                tickets.append(normalize_ticket(raw))
            except (MalformedResponseError, ValueError) as e:
                logger.warning(f"Skipping malformed Freshdesk ticket {raw.get('id')}: {e}")
        return tickets
