"""
Similarity Retriever - lexical casebook matching

Scores approved casebook entries against a new ticket by keyword overlap.
"""
from typing import List, Optional, Sequence, Set

from triage_desk.models.schemas import CasebookEntry, SimilarMatch, Ticket
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import tokenize

logger = get_logger(__name__)


def ticket_tokens(ticket: Ticket) -> Set[str]:
    """Lowercase words longer than three characters from subject + body"""
    return tokenize(f"{ticket.subject} {ticket.body_text}")


def find_similar(
    ticket: Ticket,
    corpus: Sequence[CasebookEntry],
    limit: int = 3
) -> List[SimilarMatch]:
    """
    Rank casebook entries by keyword overlap with a ticket

    Args:
        ticket: Ticket to find precedents for
        corpus: Casebook entries to score
        limit: Maximum number of matches

    Returns:
        Matches with match_score > 0, highest score first, most recent entry
        first on ties
    """
    if limit <= 0 or not corpus:
        return []

    tokens = ticket_tokens(ticket)
    if not tokens:
        return []

    scored = []
    for entry in corpus:
        score = len(tokens & entry.keywords)
        if score > 0:
            scored.append(SimilarMatch(entry=entry, match_score=score))

    scored.sort(key=lambda m: (m.match_score, m.entry.created_at), reverse=True)
    results = scored[:limit]

    logger.debug(
        f"Similarity for ticket {ticket.id}: {len(scored)} candidates, returning {len(results)}"
    )
    return results


class SimilarityRetriever:
    """Thin object wrapper so the pipeline can inject a retriever"""

    def __init__(self, default_limit: int = 3):
        self.default_limit = default_limit

    def find_similar(
        self,
        ticket: Ticket,
        corpus: Sequence[CasebookEntry],
        limit: Optional[int] = None
    ) -> List[SimilarMatch]:
        return find_similar(ticket, corpus, self.default_limit if limit is None else limit)
