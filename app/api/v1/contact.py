from fastapi import APIRouter, BackgroundTasks, Depends

from app.db.mongo import get_db_session
from app.schemas.contact import LeadCreate
from app.schemas.user import MessageResponse
from app.services.lead_service import lead_service
from app.services.notifier import NotificationService, get_notifier

router = APIRouter(tags=["Contact"])


@router.post("/contact", response_model=MessageResponse)
async def create_contact(
    lead: LeadCreate,
    background_tasks: BackgroundTasks,
    notifier: NotificationService = Depends(get_notifier),
    session=Depends(get_db_session)
):
    """Register a contact form lead and notify the team chat."""
    await lead_service.create_lead(lead.name, lead.email, lead.message, session=session)
    background_tasks.add_task(notifier.notify_new_lead, lead.name, lead.email, lead.message)
    return MessageResponse(message="Your message was sent successfully.")
