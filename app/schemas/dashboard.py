from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.schemas.user import UserProfile


class DocumentOut(BaseModel):
    """A document stored for the user."""
    id: str = Field(alias="_id")
    name: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class BillingOut(BaseModel):
    """A billing row for the user."""
    id: str = Field(alias="_id")
    payment_id: Optional[str] = None
    amount: Optional[float] = None
    status: str = "PENDING"
    payment_link: Optional[str] = None
    due_date: Optional[datetime] = None
    description: Optional[str] = None

    class Config:
        populate_by_name = True


class DashboardResponse(BaseModel):
    user: UserProfile
    documents: List[DocumentOut] = []
    billing: List[BillingOut] = []
