from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class SupportTicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SupportTicket(BaseModel):
    id: str
    user_id: str
    subject: str
    message: str
    status: SupportTicketStatus = SupportTicketStatus.OPEN
    response: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateSupportTicketParams(BaseModel):
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class UpdateSupportTicketParams(BaseModel):
    status: Optional[SupportTicketStatus] = None
    response: Optional[str] = None


class FAQEntry(BaseModel):
    id: str
    question: str
    answer: str
    category: str
    order_index: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateFAQEntryParams(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    order_index: Optional[int] = None


class UpdateFAQEntryParams(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    category: Optional[str] = None
    order_index: Optional[int] = None


class FAQSearchResult(BaseModel):
    entry: FAQEntry
    relevance: int
