from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional
from app.api.deps import get_support_service
from app.api.v1.auth import get_current_user, require_permission
from app.core.exceptions import AuthorizationError, DatabaseError, NotFoundError
from app.providers.auth import User
from app.schemas.support import (
    CreateFAQEntryParams,
    CreateSupportTicketParams,
    FAQEntry,
    FAQSearchResult,
    SupportTicket,
    UpdateFAQEntryParams,
    UpdateSupportTicketParams,
)
from app.services.permissions import ADMIN_ACCESS, PermissionsService
from app.services.support_service import SupportService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/support", tags=["Support"])

require_admin = require_permission(ADMIN_ACCESS)


def _is_admin(user: User) -> bool:
    return PermissionsService().has_permission(user.role, ADMIN_ACCESS)


async def _get_visible_ticket(service: SupportService, ticket_id: str, user: User) -> SupportTicket:
    ticket = await service.get_ticket_by_id(ticket_id)
    if not ticket:
        raise NotFoundError("Ticket", ticket_id)
    if ticket.user_id != user.id and not _is_admin(user):
        raise AuthorizationError()
    return ticket


# Tickets

@router.get("/tickets", response_model=List[SupportTicket])
async def list_tickets(
    user: User = Depends(get_current_user),
    service: SupportService = Depends(get_support_service)
):
    """Admins see every ticket, everyone else only their own."""
    try:
        if _is_admin(user):
            return await service.get_all_tickets()
        return await service.get_user_tickets(user.id)
    except DatabaseError as e:
        logger.error(f"Error fetching tickets: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch tickets")


@router.post("/tickets", response_model=SupportTicket, status_code=201)
async def create_ticket(
    params: CreateSupportTicketParams,
    user: User = Depends(get_current_user),
    service: SupportService = Depends(get_support_service)
):
    return await service.create_ticket(user.id, params)


@router.get("/tickets/{ticket_id}", response_model=SupportTicket)
async def get_ticket(
    ticket_id: str,
    user: User = Depends(get_current_user),
    service: SupportService = Depends(get_support_service)
):
    return await _get_visible_ticket(service, ticket_id, user)


@router.patch("/tickets/{ticket_id}", response_model=SupportTicket, dependencies=[Depends(require_admin)])
async def update_ticket(
    ticket_id: str,
    params: UpdateSupportTicketParams,
    service: SupportService = Depends(get_support_service)
):
    if not await service.get_ticket_by_id(ticket_id):
        raise NotFoundError("Ticket", ticket_id)
    return await service.update_ticket(ticket_id, params)


@router.delete("/tickets/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    user: User = Depends(get_current_user),
    service: SupportService = Depends(get_support_service)
):
    await _get_visible_ticket(service, ticket_id, user)
    await service.delete_ticket(ticket_id)
    return {"success": True}


# FAQ

@router.get("/faqs", response_model=List[FAQEntry])
async def list_faqs(
    category: Optional[str] = None,
    service: SupportService = Depends(get_support_service)
):
    if category:
        return await service.get_faqs_by_category(category)
    return await service.get_all_faqs()


@router.get("/faqs/search", response_model=List[FAQSearchResult])
async def search_faqs(
    q: str = Query("", description="Free-text search query"),
    service: SupportService = Depends(get_support_service)
):
    return await service.search_faqs(q)


@router.get("/faqs/categories", response_model=List[str])
async def list_faq_categories(service: SupportService = Depends(get_support_service)):
    return await service.get_faq_categories()


@router.get("/faqs/{faq_id}", response_model=FAQEntry)
async def get_faq(faq_id: str, service: SupportService = Depends(get_support_service)):
    faq = await service.get_faq_by_id(faq_id)
    if not faq:
        raise NotFoundError("FAQ entry", faq_id)
    return faq


@router.post("/faqs", response_model=FAQEntry, status_code=201)
async def create_faq(
    params: CreateFAQEntryParams,
    user: User = Depends(require_admin),
    service: SupportService = Depends(get_support_service)
):
    return await service.create_faq(params, created_by=user.id)


@router.put("/faqs/{faq_id}", response_model=FAQEntry, dependencies=[Depends(require_admin)])
async def update_faq(
    faq_id: str,
    params: UpdateFAQEntryParams,
    service: SupportService = Depends(get_support_service)
):
    if not await service.get_faq_by_id(faq_id):
        raise NotFoundError("FAQ entry", faq_id)
    return await service.update_faq(faq_id, params)


@router.delete("/faqs/{faq_id}", dependencies=[Depends(require_admin)])
async def delete_faq(faq_id: str, service: SupportService = Depends(get_support_service)):
    if not await service.get_faq_by_id(faq_id):
        raise NotFoundError("FAQ entry", faq_id)
    await service.delete_faq(faq_id)
    return {"success": True}
