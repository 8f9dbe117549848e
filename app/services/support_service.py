from app.core.constants import FAQ_ENTRIES, SUPPORT_TICKETS
from app.providers.database import DatabaseProvider
from app.schemas.support import (
    CreateFAQEntryParams,
    CreateSupportTicketParams,
    FAQEntry,
    FAQSearchResult,
    SupportTicket,
    SupportTicketStatus,
    UpdateFAQEntryParams,
    UpdateSupportTicketParams,
)
from datetime import datetime, timezone
from typing import List, Optional

import logging

logger = logging.getLogger(__name__)

# Relevance weights for FAQ search
WHOLE_QUERY_IN_QUESTION = 10
WHOLE_QUERY_IN_ANSWER = 5
TERM_IN_QUESTION = 3
TERM_IN_ANSWER = 1


def score_faq(entry: FAQEntry, query: str, terms: List[str]) -> int:
    question = entry.question.lower()
    answer = entry.answer.lower()

    relevance = 0
    if query in question:
        relevance += WHOLE_QUERY_IN_QUESTION
    if query in answer:
        relevance += WHOLE_QUERY_IN_ANSWER
    for term in terms:
        if term in question:
            relevance += TERM_IN_QUESTION
        if term in answer:
            relevance += TERM_IN_ANSWER
    return relevance


class SupportService:
    """Support tickets and the FAQ."""

    def __init__(self, database: DatabaseProvider):
        self.db = database

    # Tickets

    async def get_all_tickets(self) -> List[SupportTicket]:
        rows = await self.db.query(SUPPORT_TICKETS)
        return [SupportTicket(**row) for row in rows]

    async def get_user_tickets(self, user_id: str) -> List[SupportTicket]:
        rows = await self.db.query(SUPPORT_TICKETS, {"user_id": user_id})
        return [SupportTicket(**row) for row in rows]

    async def get_ticket_by_id(self, ticket_id: str) -> Optional[SupportTicket]:
        row = await self.db.get_by_id(SUPPORT_TICKETS, ticket_id)
        return SupportTicket(**row) if row else None

    async def create_ticket(self, user_id: str, params: CreateSupportTicketParams) -> SupportTicket:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(SUPPORT_TICKETS, {
            "user_id": user_id,
            "subject": params.subject,
            "message": params.message,
            "status": SupportTicketStatus.OPEN.value,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"User {user_id} opened ticket {row['id']}")
        return SupportTicket(**row)

    async def update_ticket(self, ticket_id: str, params: UpdateSupportTicketParams) -> SupportTicket:
        now = datetime.now(timezone.utc)
        changes = params.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        # A response without an explicit status moves the ticket to in_progress.
        if params.response and not params.status:
            changes["responded_at"] = now
            changes["status"] = SupportTicketStatus.IN_PROGRESS.value
        changes["updated_at"] = now

        row = await self.db.update(SUPPORT_TICKETS, ticket_id, changes)
        return SupportTicket(**row)

    async def delete_ticket(self, ticket_id: str) -> None:
        await self.db.delete(SUPPORT_TICKETS, ticket_id)

    # FAQ

    async def _load_faqs(self, filters: Optional[dict] = None) -> List[FAQEntry]:
        rows = await self.db.query(FAQ_ENTRIES, filters)
        return [FAQEntry(**row) for row in rows]

    async def get_all_faqs(self) -> List[FAQEntry]:
        faqs = await self._load_faqs()
        return sorted(faqs, key=lambda faq: (faq.category, faq.order_index))

    async def get_faqs_by_category(self, category: str) -> List[FAQEntry]:
        faqs = await self._load_faqs({"category": category})
        return sorted(faqs, key=lambda faq: faq.order_index)

    async def get_faq_by_id(self, faq_id: str) -> Optional[FAQEntry]:
        row = await self.db.get_by_id(FAQ_ENTRIES, faq_id)
        return FAQEntry(**row) if row else None

    async def search_faqs(self, query: str) -> List[FAQSearchResult]:
        """
        Rank FAQ entries against a free-text query.

        A blank query returns every entry with relevance 1. Otherwise each
        entry scores 10 if the whole query is in the question, 5 if it is in
        the answer, plus 3 per query term found in the question and 1 per
        term found in the answer. Entries scoring 0 are dropped; the rest are
        returned highest score first, keeping storage order on ties.
        """
        faqs = await self._load_faqs()

        if not query or not query.strip():
            return [FAQSearchResult(entry=faq, relevance=1) for faq in faqs]

        normalized = query.lower().strip()
        terms = normalized.split()

        results = []
        for faq in faqs:
            relevance = score_faq(faq, normalized, terms)
            if relevance > 0:
                results.append(FAQSearchResult(entry=faq, relevance=relevance))

        results.sort(key=lambda result: result.relevance, reverse=True)
        return results

    async def create_faq(self, params: CreateFAQEntryParams, created_by: Optional[str] = None) -> FAQEntry:
        now = datetime.now(timezone.utc)
        row = await self.db.insert(FAQ_ENTRIES, {
            "question": params.question,
            "answer": params.answer,
            "category": params.category,
            "order_index": params.order_index if params.order_index is not None else 0,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })
        return FAQEntry(**row)

    async def update_faq(self, faq_id: str, params: UpdateFAQEntryParams) -> FAQEntry:
        row = await self.db.update(FAQ_ENTRIES, faq_id, {
            **params.model_dump(exclude_unset=True, exclude_none=True),
            "updated_at": datetime.now(timezone.utc),
        })
        return FAQEntry(**row)

    async def delete_faq(self, faq_id: str) -> None:
        await self.db.delete(FAQ_ENTRIES, faq_id)

    async def get_faq_categories(self) -> List[str]:
        faqs = await self._load_faqs()
        return sorted({faq.category for faq in faqs})
