from fastapi import APIRouter
from app.api.v1 import auth, contact, dashboard, payments

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router)
api_router.include_router(contact.router)
api_router.include_router(dashboard.router)
api_router.include_router(payments.router)
