from fastapi import APIRouter, Depends
import logging

from app.api.v1.auth import get_current_identity
from app.core.exceptions import AccountNotFoundError
from app.core.security import SessionIdentity
from app.db.mongo import get_db_session
from app.schemas.dashboard import BillingOut, DashboardResponse, DocumentOut
from app.schemas.user import UserProfile
from app.services.account_service import account_service
from app.services.dashboard_service import dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse, response_model_by_alias=False)
async def get_dashboard(
    identity: SessionIdentity = Depends(get_current_identity),
    session=Depends(get_db_session)
):
    """Profile, documents and billing rows of the logged-in user."""
    user = await account_service.get_by_email(identity.email, session=session)
    if not user:
        logger.warning(f"Session for {identity.user_id} points at a missing account")
        raise AccountNotFoundError()

    user_id = str(user["_id"])
    documents = await dashboard_service.get_user_documents(user_id, session=session)
    billing = await dashboard_service.get_user_billing(user_id, session=session)

    return DashboardResponse(
        user=UserProfile(
            name=user.get("name"),
            email=user["email"],
            monitoring_status=user.get("monitoring_status"),
            device_count=user.get("device_count") or 0,
            identity_document=user.get("identity_document"),
            address=user.get("address")
        ),
        documents=[DocumentOut(**doc) for doc in documents],
        billing=[BillingOut(**row) for row in billing]
    )
